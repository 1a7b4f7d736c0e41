"""
Tests for ToolDispatcher: duplicate suppression, caching, retries, fallbacks
and session capture.
"""
import pytest

from production_studio.agents.dispatcher import ToolDispatcher
from production_studio.core.errors import CloudflareBlockedError, ProviderError
from production_studio.core.progress import FALLBACK, FALLBACK_PREFIX, RETRY, TOOL_CALL, TOOL_RESULT, ProgressEmitter
from production_studio.tools import build_default_registry


@pytest.fixture
def dispatcher(context, sleeps):
    context.emitter = ProgressEmitter()
    return ToolDispatcher(build_default_registry(include_music=False), context, sleep=sleeps)


PLAN_ARGS = {"topic": "The deep ocean", "targetDuration": 30}


class TestDispatch:
    """Tests for the basic dispatch path."""

    def test_unknown_tool(self, dispatcher):
        payload = dispatcher.dispatch("make_coffee", {})
        assert payload["success"] is False
        assert payload["error"] == "Unknown tool: make_coffee"
        assert "plan_video" in payload["suggestion"]
        assert dispatcher.tracker.errors[0]["category"] == "validation"
        assert not dispatcher.is_fatal

    def test_success_captures_session(self, dispatcher, context):
        payload = dispatcher.dispatch("plan_video", PLAN_ARGS)
        assert payload["success"] is True
        assert dispatcher.session_id == payload["sessionId"]
        assert dispatcher.tracker.succeeded == 1
        emitter = context.emitter
        assert emitter.of_type(TOOL_CALL)[0].data["tool"] == "plan_video"
        assert emitter.of_type(TOOL_RESULT)[0].data["success"] is True

    def test_later_plans_do_not_replace_session(self, dispatcher):
        first = dispatcher.dispatch("plan_video", PLAN_ARGS)
        dispatcher.dispatch("plan_video", {"topic": "Coral reefs", "targetDuration": 20})
        assert dispatcher.session_id == first["sessionId"]

    def test_invalid_arguments_not_retried(self, dispatcher, sleeps):
        payload = dispatcher.dispatch("plan_video", {"targetDuration": 30})
        assert payload["success"] is False
        assert payload["category"] == "validation"
        assert payload["suggestion"] == "Check the tool arguments against its schema"
        assert sleeps.delays == []
        assert not dispatcher.is_fatal

    def test_in_band_failure_leaves_step_open(self, dispatcher, providers):
        args = {"contentPlanId": "prod_1712345678901_abcdefghi"}
        payload = dispatcher.dispatch("narrate_scenes", args)
        assert payload["success"] is False
        error = dispatcher.tracker.errors[0]
        assert error["recoverable"] is True
        assert error["category"] == "permanent"
        assert not dispatcher.steps.is_executed("narrate_scenes_prod_1712345678901_abcdefghi")


class TestDuplicatesAndCache:
    """Tests for step tracking and cached results."""

    def test_duplicate_call_skipped(self, dispatcher, providers, planned_session):
        args = {"contentPlanId": planned_session}
        dispatcher.dispatch("narrate_scenes", args)
        payload = dispatcher.dispatch("narrate_scenes", args)
        assert payload["skipped"] is True
        assert payload["segmentCount"] == 3
        assert providers.narrator.count("synthesize") == 3

    def test_cached_result_marks_step(self, dispatcher, providers, narrated_session):
        payload = dispatcher.dispatch("narrate_scenes", {"contentPlanId": narrated_session})
        assert payload["cached"] is True
        assert providers.narrator.count("synthesize") == 3
        assert dispatcher.steps.is_executed(f"narrate_scenes_{narrated_session}")

    def test_second_export_is_cached(self, dispatcher, illustrated_session):
        args = {"contentPlanId": illustrated_session}
        first = dispatcher.dispatch("export_final_video", args)
        second = dispatcher.dispatch("export_final_video", args)

        assert first["success"] is True
        assert second["cached"] is True
        assert second["downloadUrl"] == first["downloadUrl"]


class TestRecovery:
    """Tests for retries, fallbacks and fatal failures."""

    def test_visuals_fall_back_to_placeholders(self, dispatcher, context, providers, planned_session, sleeps):
        providers.images.fail_with = ProviderError("upstream unavailable", status_code=503)
        payload = dispatcher.dispatch("generate_visuals", {"contentPlanId": planned_session})

        assert payload["success"] is True
        assert payload["fallbackApplied"] == "use-placeholder-visual"
        assert payload["placeholderCount"] == 3
        assert len(sleeps.delays) == 3
        assert providers.images.count("generate_image") == 4

        state = context.store.get(planned_session)
        assert all(v["is_placeholder"] for v in state["visuals"])
        assert state["errors"][0]["fallback_applied"] == "use-placeholder-visual"
        assert state["errors"][0]["retry_count"] == 3

        assert len(context.emitter.of_type(RETRY)) == 3
        assert context.emitter.of_type(FALLBACK)[0].data["fallbackAction"] == "use-placeholder-visual"
        assert context.emitter.of_type(TOOL_RESULT)[-1].message.startswith(FALLBACK_PREFIX)
        assert dispatcher.tracker.fallback_count == 1
        assert not dispatcher.is_fatal

    def test_auth_failure_with_placeholders_is_not_fatal(self, dispatcher, context, providers, planned_session):
        providers.images.fail_with = ProviderError("unauthorized", status_code=401)
        payload = dispatcher.dispatch("generate_visuals", {"contentPlanId": planned_session})

        assert payload["success"] is True
        assert payload["fallbackApplied"] == "use-placeholder-visual"
        error = context.store.get(planned_session)["errors"][0]
        assert error["category"] == "authentication"
        assert error["recoverable"] is True
        assert not dispatcher.is_fatal
        assert not dispatcher.tracker.has_fatal_errors()

    def test_blocked_animation_switches_to_text_to_video(self, dispatcher, context, providers,
                                                         illustrated_session):
        providers.animator.fail_with = CloudflareBlockedError("Just a moment...", status_code=403)
        payload = dispatcher.dispatch("animate_image", {"contentPlanId": illustrated_session, "sceneIndex": 1})

        assert payload["success"] is True
        assert payload["fallbackApplied"] == "veo-text-to-video"
        visual = context.store.get(illustrated_session)["visuals"][1]
        assert visual["type"] == "video"
        assert visual["generated_with_veo"] is True
        assert providers.video.count("generate_video") == 1
        assert context.emitter.of_type(TOOL_RESULT)[-1].message.startswith(FALLBACK_PREFIX)
        assert not dispatcher.is_fatal

    def test_export_failure_returns_asset_bundle(self, dispatcher, providers, illustrated_session):
        providers.renderer.fail_with = ProviderError("encoder crashed", status_code=500)
        payload = dispatcher.dispatch("export_final_video", {"contentPlanId": illustrated_session})
        assert payload["success"] is False
        assert payload["fallbackApplied"] == "provide-asset-bundle"
        assert payload["assetBundle"]["sceneCount"] == 3
        assert payload["assetBundle"]["visualCount"] == 3
        assert len(payload["assetBundleData"]["scenes"]) == 3
        assert not dispatcher.steps.is_executed(f"export_final_video_{illustrated_session}")

    def test_plan_failure_is_fatal(self, dispatcher, providers, sleeps):
        providers.planner.fail_with = ProviderError("bad request", status_code=400)
        payload = dispatcher.dispatch("plan_video", PLAN_ARGS)
        assert payload["success"] is False
        assert payload["category"] == "permanent"
        assert payload["suggestion"] == "plan_video is required; the production cannot continue without it"
        assert sleeps.delays == []
        assert dispatcher.is_fatal
        assert dispatcher.tracker.has_fatal_errors()

    def test_downgrade_fatal(self, dispatcher, providers):
        assert dispatcher.downgrade_fatal("topic-workflow") is None
        providers.importer.fail_with = ProviderError("video unavailable", status_code=404)
        dispatcher.dispatch("import_youtube_content", {"url": "https://youtu.be/dQw4w9WgXcQ"})
        assert dispatcher.is_fatal

        error = dispatcher.downgrade_fatal("topic-workflow")
        assert error["recoverable"] is True
        assert error["fallback_applied"] == "topic-workflow"
        assert not dispatcher.is_fatal
        assert not dispatcher.tracker.has_fatal_errors()
        assert dispatcher.tracker.fallback_count == 1


class TestSessionTracking:
    """Tests for import carry-over and reported errors."""

    def test_import_session_replaced_by_production(self, dispatcher, context):
        imported = dispatcher.dispatch("import_youtube_content", {"url": "https://youtu.be/dQw4w9WgXcQ"})
        assert dispatcher.session_id == imported["sessionId"]

        planned = dispatcher.dispatch("plan_video", PLAN_ARGS)
        assert dispatcher.session_id == planned["sessionId"]
        carried = context.store.get(planned["sessionId"])["imported_content"]
        assert carried["source_url"] == "https://youtu.be/dQw4w9WgXcQ"

    def test_reported_errors_tracked(self, dispatcher, context, narrated_session):
        context.error_sink = dispatcher.record_reported_error
        payload = dispatcher.dispatch("mark_complete", {"contentPlanId": narrated_session})
        assert payload["exported"] is False

        assert dispatcher.tracker.total_attempted == 1
        assert dispatcher.tracker.errors[0]["tool"] == "mark_complete"
        errors = context.store.get(narrated_session)["errors"]
        assert len(errors) == 1
        assert errors[0]["error"].startswith("Export skipped")
