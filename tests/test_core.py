"""
Tests for the session store, state helpers, progress events and id utilities.
"""
import pytest

from production_studio.core.errors import SessionNotFoundError
from production_studio.core.progress import SCENE_PROGRESS, ProgressEmitter
from production_studio.core.session_store import SessionStore
from production_studio.core.state import create_production_state, get_scenes, serialize_state
from production_studio.core.utils import (
    detect_language_from_text,
    generate_session_id,
    generate_story_id,
    is_valid_session_id,
    validate_session_id,
)


class TestSessionStore:
    """Tests for the in-process session store."""

    def test_create_and_get(self, store):
        """A created session is readable and carries its own id."""
        state = store.create("prod_1712345678901_abc123def")
        assert store.has("prod_1712345678901_abc123def")
        assert store.get("prod_1712345678901_abc123def") is state
        assert state["session_id"] == "prod_1712345678901_abc123def"
        assert state["errors"] == []

    def test_duplicate_id_rejected(self, store):
        store.create("prod_1_abcdefghi")
        with pytest.raises(ValueError):
            store.create("prod_1_abcdefghi")

    def test_deleted_id_is_never_reused(self, store):
        """Deleting retires the id."""
        store.create("prod_1_abcdefghi")
        assert store.delete("prod_1_abcdefghi") is True
        assert store.get("prod_1_abcdefghi") is None
        with pytest.raises(ValueError):
            store.create("prod_1_abcdefghi")

    def test_delete_unknown_returns_false(self, store):
        assert store.delete("prod_2_abcdefghi") is False

    def test_require_unknown_raises(self, store):
        with pytest.raises(SessionNotFoundError) as exc:
            store.require("prod_3_abcdefghi")
        assert "prod_3_abcdefghi" in str(exc.value)

    def test_update_mutates_in_place(self, store):
        store.create("prod_1_abcdefghi")
        state = store.update("prod_1_abcdefghi", lambda s: s.update({"quality_score": 85}))
        assert state["quality_score"] == 85
        assert store.get("prod_1_abcdefghi")["quality_score"] == 85

    def test_mirror_sees_writes_and_deletes(self):
        """The mirror gets the state on every write and None on delete."""
        seen = []
        mirrored = SessionStore(mirror=lambda sid, state: seen.append((sid, state is None)))
        mirrored.create("prod_1_abcdefghi")
        mirrored.update("prod_1_abcdefghi", lambda s: None)
        mirrored.delete("prod_1_abcdefghi")
        assert seen == [("prod_1_abcdefghi", False), ("prod_1_abcdefghi", False), ("prod_1_abcdefghi", True)]

    def test_mirror_failure_does_not_break_writes(self):
        def broken(session_id, state):
            raise RuntimeError("redis down")

        mirrored = SessionStore(mirror=broken)
        mirrored.create("prod_1_abcdefghi")
        mirrored.update("prod_1_abcdefghi", lambda s: s.update({"is_complete": True}))
        assert mirrored.get("prod_1_abcdefghi")["is_complete"] is True

    def test_clear_retires_every_id(self, store):
        store.create("prod_1_abcdefghi")
        store.create("prod_2_abcdefghi")
        store.clear()
        assert store.ids() == []
        with pytest.raises(ValueError):
            store.create("prod_2_abcdefghi")


class TestStateHelpers:
    """Tests for state construction and serialization."""

    def test_get_scenes_without_plan(self):
        assert get_scenes(None) == []
        assert get_scenes(create_production_state("prod_1_abcdefghi")) == []

    def test_serialize_replaces_blobs_with_sizes(self):
        state = create_production_state("prod_1_abcdefghi")
        state["narration_segments"] = [{"scene_id": "scene_1", "audio": b"12345"}]
        serialized = serialize_state(state)
        assert serialized["narration_segments"][0]["audio"] == {"bytes": 5}
        # Original untouched
        assert state["narration_segments"][0]["audio"] == b"12345"

    def test_serialize_can_inline_blobs(self):
        state = create_production_state("prod_1_abcdefghi")
        state["export_result"] = {"video": b"abc"}
        serialized = serialize_state(state, include_blobs=True)
        assert serialized["export_result"]["video"] == {"base64": "YWJj"}


class TestProgressEmitter:
    """Tests for progress event fan-out."""

    def test_events_reach_callback_as_dicts(self):
        received = []
        emitter = ProgressEmitter(received.append)
        emitter.emit("starting", "Starting production")
        assert received[0]["type"] == "starting"
        assert received[0]["message"] == "Starting production"
        assert "timestamp" in received[0]

    def test_scene_progress_percentage(self):
        emitter = ProgressEmitter()
        event = emitter.scene_progress("narrate_scenes", 1, 3)
        assert event.type == SCENE_PROGRESS
        assert event.data["percentage"] == 33
        assert event.data["currentScene"] == 1
        assert event.data["totalScenes"] == 3

    def test_callback_failure_is_contained(self):
        def broken(event):
            raise RuntimeError("socket closed")

        emitter = ProgressEmitter(broken)
        emitter.emit("tool_call", "Calling plan_video")
        assert len(emitter.events) == 1

    def test_released_emitter_drops_events(self):
        received = []
        emitter = ProgressEmitter(received.append)
        emitter.release()
        emitter.emit("complete", "done")
        assert received == []
        assert emitter.events == []

    def test_event_data_is_read_only(self):
        event = ProgressEmitter().emit("warning", "careful", iteration=18)
        with pytest.raises(TypeError):
            event.data["iteration"] = 1


class TestSessionIds:
    """Tests for session id generation and validation."""

    def test_generated_ids_are_valid(self):
        assert is_valid_session_id(generate_session_id("prod"))
        assert is_valid_session_id(generate_session_id("import"))
        assert is_valid_session_id(generate_story_id())

    def test_production_id_shape(self):
        prefix, timestamp, suffix = generate_session_id("prod").split("_")
        assert prefix == "prod"
        assert timestamp.isdigit()
        assert len(suffix) == 9

    @pytest.mark.parametrize("value", ["plan_123", "cp_01", "session_abc", "<sessionId>", "contentPlanId",
                                       "your_session_id"])
    def test_placeholders_rejected(self, value):
        assert not is_valid_session_id(value)
        assert "placeholder" in validate_session_id(value)

    def test_missing_id_message(self):
        assert validate_session_id(None).startswith("Missing contentPlanId")

    def test_wrong_shape_message(self):
        assert "format" in validate_session_id("prod-123")


class TestLanguageDetection:
    """Tests for script-based language detection."""

    @pytest.mark.parametrize("text, expected", [
        ("مرحبا بكم في هذا الفيديو", "ar"),
        ("שלום לכולם", "he"),
        ("Привет всем", "ru"),
        ("こんにちは", "ja"),
        ("The deep ocean", "en"),
        ("", "en"),
    ])
    def test_dominant_script(self, text, expected):
        assert detect_language_from_text(text) == expected

    def test_mixed_text_falls_back_to_english(self):
        assert detect_language_from_text("Hello wonderful 世界") == "en"
