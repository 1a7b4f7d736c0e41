"""
Tests for the media and enhancement tools.
"""
from production_studio.tools.base import SceneArgs
from production_studio.tools.enhancement import (
    ConsistencyArgs,
    RestyleImageArgs,
    remove_background,
    restyle_image,
    verify_character_consistency,
)
from production_studio.tools.media import (
    AnimateImageArgs,
    GenerateMusicArgs,
    GenerateVideoArgs,
    GenerateVisualsArgs,
    PlanSfxArgs,
    animate_image,
    fill_placeholder_visuals,
    generate_music,
    generate_video,
    generate_visuals,
    plan_sfx,
)


class TestGenerateVisuals:
    """Tests for generate_visuals."""

    def test_one_image_per_scene(self, context, planned_session, providers):
        result = generate_visuals(context, GenerateVisualsArgs(content_plan_id=planned_session, style="Anime"))
        assert result["visualCount"] == 3
        assert result["imageCount"] == 3
        assert result["generated"] == 3
        visuals = context.store.get(planned_session)["visuals"]
        assert [v["scene_id"] for v in visuals] == ["scene_1", "scene_2", "scene_3"]
        assert "Style: Anime." in visuals[0]["prompt"]

    def test_leading_scenes_as_veo_clips(self, context, planned_session, providers):
        result = generate_visuals(context, GenerateVisualsArgs(content_plan_id=planned_session, veo_video_count=1))
        assert result["videoCount"] == 1
        visuals = context.store.get(planned_session)["visuals"]
        assert visuals[0]["generated_with_veo"] is True
        assert visuals[1]["type"] == "image"

    def test_retry_only_fills_missing_scenes(self, context, planned_session, providers):
        fill_placeholder_visuals(context, planned_session)
        context.store.update(planned_session, lambda s: s["visuals"].__setitem__(
            0, {"scene_id": "scene_1", "url": "https://images.test/kept.png", "type": "image"}))
        result = generate_visuals(context, GenerateVisualsArgs(content_plan_id=planned_session))
        assert result["generated"] == 2
        assert context.store.get(planned_session)["visuals"][0]["url"] == "https://images.test/kept.png"

    def test_requires_plan(self, context):
        result = generate_visuals(context, GenerateVisualsArgs(content_plan_id="prod_1712345678901_abcdefghi"))
        assert result["success"] is False


class TestSceneTools:
    """Tests for generate_video and animate_image."""

    def test_generate_video_pads_earlier_scenes(self, context, planned_session, providers):
        result = generate_video(context, GenerateVideoArgs(content_plan_id=planned_session, scene_index=2,
                                                           duration_seconds=6, use_fast_model=True))
        assert result["duration"] == 6
        assert result["model"] == "veo-3.1-fast-generate-preview"
        visuals = context.store.get(planned_session)["visuals"]
        assert [v.get("is_placeholder") for v in visuals] == [True, True, False]

    def test_scene_index_out_of_range(self, context, planned_session):
        result = generate_video(context, GenerateVideoArgs(content_plan_id=planned_session, scene_index=5))
        assert result["success"] is False
        assert "out of range" in result["error"]

    def test_animate_image(self, context, illustrated_session, providers):
        result = animate_image(context, AnimateImageArgs(content_plan_id=illustrated_session, scene_index=1))
        assert result["success"] is True
        assert result["motionPrompt"] == "Slow push in with drifting particles"
        visual = context.store.get(illustrated_session)["visuals"][1]
        assert visual["is_animated"] is True
        assert visual["video_url"] == result["videoUrl"]

    def test_animate_needs_image(self, context, planned_session):
        result = animate_image(context, AnimateImageArgs(content_plan_id=planned_session, scene_index=0))
        assert result["success"] is False
        assert result["suggestion"] == "Run generate_visuals first"


class TestSoundTools:
    """Tests for plan_sfx and generate_music."""

    def test_plan_sfx_offline_catalog(self, context, planned_session):
        result = plan_sfx(context, PlanSfxArgs(content_plan_id=planned_session))
        assert result["sceneCount"] == 3
        assert result["tracksResolved"] == 0
        plan = context.store.get(planned_session)["sfx_plan"]
        assert [entry["start"] for entry in plan["scenes"]] == [0.0, 10.0, 20.0]
        assert plan["scenes"][0]["track_id"] == "ocean-waves"

    def test_plan_sfx_resolves_when_configured(self, context, planned_session, providers):
        providers.sfx.configured = True
        result = plan_sfx(context, PlanSfxArgs(content_plan_id=planned_session))
        assert result["tracksResolved"] == 3
        assert context.store.get(planned_session)["sfx_plan"]["scenes"][0]["url"] == \
            "https://sfx.test/ocean-waves.mp3"

    def test_music_attaches_to_sfx_plan(self, context, planned_session, providers):
        plan_sfx(context, PlanSfxArgs(content_plan_id=planned_session))
        result = generate_music(context, GenerateMusicArgs(content_plan_id=planned_session,
                                                           style="ambient orchestral", mood="calm"))
        assert result["musicUrl"] == "https://music.test/score.mp3"
        assert result["duration"] == 30
        state = context.store.get(planned_session)
        assert state["music_task_id"] == "task-1"
        assert state["sfx_plan"]["background_music"]["url"] == "https://music.test/score.mp3"


class TestEnhancement:
    """Tests for image edits and consistency checks."""

    def test_remove_background_keeps_original(self, context, illustrated_session):
        before = context.store.get(illustrated_session)["visuals"][0]["url"]
        result = remove_background(context, SceneArgs(content_plan_id=illustrated_session, scene_index=0))
        assert result["originalUrl"] == before
        visual = context.store.get(illustrated_session)["visuals"][0]
        assert visual["url"].endswith("-nobg.png")
        assert visual["original_url"] == before

    def test_second_edit_keeps_first_original(self, context, illustrated_session):
        before = context.store.get(illustrated_session)["visuals"][0]["url"]
        remove_background(context, SceneArgs(content_plan_id=illustrated_session, scene_index=0))
        result = restyle_image(context, RestyleImageArgs(content_plan_id=illustrated_session, scene_index=0,
                                                         style="Watercolor"))
        assert result["originalUrl"] == before
        visual = context.store.get(illustrated_session)["visuals"][0]
        assert visual["edits"] == ["remove_background", "restyle:Watercolor"]

    def test_video_clips_not_editable(self, context, planned_session):
        generate_video(context, GenerateVideoArgs(content_plan_id=planned_session, scene_index=0))
        result = remove_background(context, SceneArgs(content_plan_id=planned_session, scene_index=0))
        assert result["success"] is False
        assert "video clip" in result["error"]

    def test_consistency_needs_characters(self, context, planned_session):
        result = verify_character_consistency(context, ConsistencyArgs(session_id=planned_session))
        assert result["success"] is False
        assert result["suggestion"] == "Run generate_characters first"
