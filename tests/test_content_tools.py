"""
Tests for the content stage tools: planning, narration and the quality loop.
"""
from production_studio.core.utils import is_valid_session_id
from production_studio.tools.base import SessionArgs
from production_studio.tools.content import (
    NarrateScenesArgs,
    PlanVideoArgs,
    adjust_timing,
    narrate_scenes,
    plan_video,
    scene_count_for,
    validate_plan,
)


class TestPlanVideo:
    """Tests for plan_video."""

    def test_creates_session(self, context, providers):
        result = plan_video(context, PlanVideoArgs(topic="The deep ocean", target_duration=30, style="Cinematic"))
        assert result["success"] is True
        assert is_valid_session_id(result["sessionId"])
        assert result["sceneCount"] == 3
        assert result["totalDuration"] == 30.0

        plan = context.store.get(result["sessionId"])["content_plan"]
        assert plan["topic"] == "The deep ocean"
        assert plan["style"] == "Cinematic"
        assert [s["id"] for s in plan["scenes"]] == ["scene_1", "scene_2", "scene_3"]
        assert providers.planner.calls[0][2]["scene_count"] == 3

    def test_language_detected_from_topic(self, context, providers):
        result = plan_video(context, PlanVideoArgs(topic="أعماق المحيط", target_duration=20))
        assert result["language"] == "ar"

    def test_ambient_track_suggested(self, context, planned_session):
        """Scene text mentions ocean waves."""
        scenes = context.store.get(planned_session)["content_plan"]["scenes"]
        assert all(s["ambient_sfx"] == "ocean-waves" for s in scenes)

    def test_scene_count_bounds(self):
        assert scene_count_for(10) == 1
        assert scene_count_for(60) == 6
        assert scene_count_for(600) == 20

    def test_empty_plan_is_failure(self, context, providers, monkeypatch):
        monkeypatch.setattr(providers.planner, "plan_content", lambda **kwargs: {"scenes": []})
        result = plan_video(context, PlanVideoArgs(topic="Nothing", target_duration=30))
        assert result["success"] is False
        assert context.store.ids() == []


class TestNarrateScenes:
    """Tests for narrate_scenes."""

    def test_one_segment_per_scene(self, context, planned_session, providers):
        result = narrate_scenes(context, NarrateScenesArgs(content_plan_id=planned_session, voice_style="calm"))
        assert result["segmentCount"] == 3
        assert result["voice"] == "Aoede"
        segments = context.store.get(planned_session)["narration_segments"]
        assert [s["scene_id"] for s in segments] == ["scene_1", "scene_2", "scene_3"]
        assert all(s["audio"].startswith(b"RIFF") for s in segments)

    def test_existing_segments_reused(self, context, narrated_session, providers):
        narrate_scenes(context, NarrateScenesArgs(content_plan_id=narrated_session))
        assert providers.narrator.count("synthesize") == 3

    def test_scene_progress_emitted(self, context, planned_session):
        from production_studio.core.progress import SCENE_PROGRESS, ProgressEmitter
        context.emitter = ProgressEmitter()
        narrate_scenes(context, NarrateScenesArgs(content_plan_id=planned_session))
        progress = context.emitter.of_type(SCENE_PROGRESS)
        assert [e.data["currentScene"] for e in progress] == [1, 2, 3]
        assert progress[-1].data["percentage"] == 100

    def test_placeholder_id_rejected(self, context):
        result = narrate_scenes(context, NarrateScenesArgs(content_plan_id="plan_123"))
        assert result["success"] is False
        assert "placeholder" in result["error"]

    def test_unknown_session(self, context):
        result = narrate_scenes(context, NarrateScenesArgs(content_plan_id="prod_1712345678901_abcdefghi"))
        assert result["success"] is False
        assert result["error"].startswith("Session not found")


class TestQualityLoop:
    """Tests for validate_plan and adjust_timing."""

    def test_critic_score_used(self, context, narrated_session, providers):
        providers.planner.critique_scores = [65]
        result = validate_plan(context, SessionArgs(content_plan_id=narrated_session))
        assert result["score"] == 65
        assert result["approved"] is False
        assert context.store.get(narrated_session)["quality_score"] == 65

    def test_critic_failure_falls_back_to_rules(self, context, narrated_session, providers):
        providers.planner.fail_with = RuntimeError("critic offline")
        result = validate_plan(context, SessionArgs(content_plan_id=narrated_session))
        assert result["success"] is True
        assert result["score"] == 100

    def test_rule_based_when_critique_disabled(self, context, narrated_session, providers, rule_based_quality):
        result = validate_plan(context, SessionArgs(content_plan_id=narrated_session))
        assert result["approved"] is True
        assert providers.planner.count("critique_plan") == 0

    def test_adjust_timing_matches_narration(self, context, planned_session, providers):
        providers.narrator.duration = 7.5
        narrate_scenes(context, NarrateScenesArgs(content_plan_id=planned_session))
        result = adjust_timing(context, SessionArgs(content_plan_id=planned_session))
        assert result["success"] is True
        assert result["iteration"] == 1
        assert result["totalDuration"] == 22.5
        scenes = context.store.get(planned_session)["content_plan"]["scenes"]
        assert [s["duration"] for s in scenes] == [7.5, 7.5, 7.5]

    def test_adjust_timing_capped(self, context, narrated_session):
        args = SessionArgs(content_plan_id=narrated_session)
        adjust_timing(context, args)
        adjust_timing(context, args)
        result = adjust_timing(context, args)
        assert result["success"] is False
        assert "Maximum quality iterations (2)" in result["error"]

    def test_adjust_timing_needs_narration(self, context, planned_session):
        result = adjust_timing(context, SessionArgs(content_plan_id=planned_session))
        assert result["success"] is False
        assert result["suggestion"] == "Call narrate_scenes first"
