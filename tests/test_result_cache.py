"""
Tests for step identifiers, duplicate suppression and the result cache.
"""
from production_studio.agents.result_cache import StepTracker, check_cached_result, create_step_identifier


class TestStepIdentifier:
    """Tests for create_step_identifier."""

    def test_session_and_scene(self):
        step = create_step_identifier("animate_image", {"contentPlanId": "prod_1_abcdefghi", "sceneIndex": 2})
        assert step == "animate_image_prod_1_abcdefghi_scene_2"

    def test_session_only(self):
        assert create_step_identifier("narrate_scenes", {"contentPlanId": "prod_1_abcdefghi"}) == \
            "narrate_scenes_prod_1_abcdefghi"

    def test_story_session_key(self):
        assert create_step_identifier("create_screenplay", {"sessionId": "story_1712345678901"}) == \
            "create_screenplay_story_1712345678901"

    def test_url_and_bare(self):
        assert create_step_identifier("import_youtube_content", {"url": "https://youtu.be/x"}) == \
            "import_youtube_content_https://youtu.be/x"
        assert create_step_identifier("list_export_presets", None) == "list_export_presets"

    def test_quality_loop_steps_are_per_iteration(self):
        """validate_plan may run again after adjust_timing."""
        args = {"contentPlanId": "prod_1_abcdefghi"}
        first = create_step_identifier("validate_plan", args, {"quality_iterations": 0})
        second = create_step_identifier("validate_plan", args, {"quality_iterations": 1})
        assert first == "validate_plan_prod_1_abcdefghi_iter_0"
        assert first != second


class TestStepTracker:
    def test_mark_and_clear(self):
        tracker = StepTracker()
        tracker.mark_executed("plan_video")
        assert tracker.is_executed("plan_video")
        assert len(tracker) == 1
        tracker.clear()
        assert not tracker.is_executed("plan_video")


class TestResultCache:
    """Tests for check_cached_result."""

    def test_uncacheable_tool(self, store, narrated_session):
        assert check_cached_result("plan_video", {"contentPlanId": narrated_session}, store) is None

    def test_missing_session(self, store):
        assert check_cached_result("narrate_scenes", {"contentPlanId": "prod_9_abcdefghi"}, store) is None
        assert check_cached_result("narrate_scenes", {}, store) is None

    def test_narration_hit(self, store, narrated_session):
        cached = check_cached_result("narrate_scenes", {"contentPlanId": narrated_session}, store)
        assert cached["success"] is True
        assert cached["cached"] is True
        assert cached["sessionId"] == narrated_session
        assert cached["segmentCount"] == 3
        assert cached["totalDuration"] == 30.0

    def test_partial_visuals_miss(self, store, planned_session):
        store.update(planned_session, lambda s: s.update({"visuals": [{"url": "https://images.test/1.png"}]}))
        assert check_cached_result("generate_visuals", {"contentPlanId": planned_session}, store) is None

    def test_visuals_hit(self, store, illustrated_session):
        cached = check_cached_result("generate_visuals", {"contentPlanId": illustrated_session}, store)
        assert cached["visualCount"] == 3
        assert cached["videoCount"] == 0

    def test_animation_per_scene(self, store, illustrated_session):
        store.update(illustrated_session,
                     lambda s: s["visuals"][1].update({"video_url": "https://animation.test/1.mp4"}))
        args = {"contentPlanId": illustrated_session}
        assert check_cached_result("animate_image", {**args, "sceneIndex": 0}, store) is None
        hit = check_cached_result("animate_image", {**args, "sceneIndex": 1}, store)
        assert hit["videoUrl"] == "https://animation.test/1.mp4"
        assert check_cached_result("animate_image", {**args, "sceneIndex": 7}, store) is None

    def test_export_hit_requires_video(self, store, illustrated_session):
        args = {"contentPlanId": illustrated_session}
        store.update(illustrated_session, lambda s: s.update({"export_result": {"download_url": "x"}}))
        assert check_cached_result("export_final_video", args, store) is None
        store.update(illustrated_session, lambda s: s["export_result"].update({"video": b"mp4", "format": "mp4"}))
        assert check_cached_result("export_final_video", args, store)["format"] == "mp4"
