"""
Tests for audio mixing, subtitles, export, cloud upload and status tools.
"""
import pytest

from production_studio.core.progress import SCENE_PROGRESS, STAGE_PROGRESS, ProgressEmitter
from production_studio.tools.audio_mixing import MixAudioArgs, mix_audio_tracks
from production_studio.tools.base import SessionArgs
from production_studio.tools.cloud import UploadArgs, upload_production_to_cloud
from production_studio.tools.export import (
    EXPORT_PRESETS,
    ExportArgs,
    ListPresetsArgs,
    ValidateExportArgs,
    estimate_file_size_mb,
    export_final_video,
    list_export_presets,
    validate_export,
)
from production_studio.tools.media import GenerateVideoArgs, PlanSfxArgs, generate_video, plan_sfx
from production_studio.tools.status import get_production_status, mark_complete
from production_studio.tools.subtitles import (
    GenerateSubtitlesArgs,
    build_subtitle_items,
    format_timestamp,
    generate_subtitles,
    parse_subtitles,
    serialize_subtitles,
)


class TestMixAudio:
    """Tests for mix_audio_tracks."""

    def test_narration_only(self, context, narrated_session, providers):
        result = mix_audio_tracks(context, MixAudioArgs(content_plan_id=narrated_session))
        assert result["tracks"] == {"narration": True, "music": False, "sfx": False, "videoAudio": False}
        assert result["duration"] == 30.0
        assert result["duckingApplied"] is False
        assert result["audioUrl"] == f"https://assets.test/{narrated_session}/audio/mix.wav"
        assert context.store.get(narrated_session)["mixed_audio"]["audio"].startswith(b"RIFF")

    def test_layers_music_sfx_and_veo_audio(self, context, narrated_session, providers):
        providers.sfx.configured = True
        plan_sfx(context, PlanSfxArgs(content_plan_id=narrated_session))
        generate_video(context, GenerateVideoArgs(content_plan_id=narrated_session, scene_index=0))
        context.store.update(narrated_session, lambda s: s.update({"music_url": "https://music.test/score.mp3"}))

        result = mix_audio_tracks(context, MixAudioArgs(content_plan_id=narrated_session, music_volume=0.2))
        assert result["tracks"] == {"narration": True, "music": True, "sfx": True, "videoAudio": True}
        assert result["duckingApplied"] is True
        _, _, kwargs = providers.mixer.calls[0]
        assert kwargs["volumes"]["music"] == 0.2
        assert len(kwargs["sfx_tracks"]) == 3
        assert kwargs["video_audio_urls"] == ["https://video.test/clip-1.mp4"]

    def test_omitted_sources_skipped(self, context, narrated_session, providers):
        providers.sfx.configured = True
        plan_sfx(context, PlanSfxArgs(content_plan_id=narrated_session))
        context.store.update(narrated_session, lambda s: s["audio_omissions"].append("sfx"))
        result = mix_audio_tracks(context, MixAudioArgs(content_plan_id=narrated_session))
        assert result["tracks"]["sfx"] is False
        assert result["skippedSources"] == ["sfx"]

    def test_requires_narration(self, context, planned_session):
        result = mix_audio_tracks(context, MixAudioArgs(content_plan_id=planned_session))
        assert result["success"] is False
        assert "narrationUrl" in result["suggestion"]


class TestSubtitles:
    """Tests for subtitle timing and formats."""

    def test_timestamps(self):
        assert format_timestamp(3661.5) == "01:01:01,500"
        assert format_timestamp(0.25, "vtt") == "00:00:00.250"

    def test_cues_split_by_word_count(self):
        state = {"narration_segments": [
            {"transcript": "one two three four five", "audio_duration": 5.0},
            {"transcript": "six seven", "audio_duration": 2.0},
        ]}
        items = build_subtitle_items(state, max_words=3)
        assert [(i["text"], i["start"], i["end"]) for i in items] == [
            ("one two three", 0.0, 3.0),
            ("four five", 3.0, 5.0),
            ("six seven", 5.0, 7.0),
        ]

    def test_srt_parse_round_trip(self):
        items = [{"id": 1, "start": 0.0, "end": 1.5, "text": "Hello there"},
                 {"id": 2, "start": 1.5, "end": 3.0, "text": "General"}]
        content = serialize_subtitles(items, "srt")
        assert content.startswith("1\n00:00:00,000 --> 00:00:01,500\nHello there\n\n2\n")
        assert parse_subtitles(content) == items

    def test_vtt_header(self):
        content = serialize_subtitles([{"id": 1, "start": 0.0, "end": 1.0, "text": "Hi"}], "vtt")
        assert content.startswith("WEBVTT\n\n1\n00:00:00.000 --> 00:00:01.000\nHi")
        assert parse_subtitles(content)[0]["text"] == "Hi"

    def test_rtl_cues_wrapped(self):
        content = serialize_subtitles([{"id": 1, "start": 0.0, "end": 1.0, "text": "مرحبا"}], "srt", "ar")
        assert "\u202b\u200fمرحبا\u202c" in content
        assert parse_subtitles(content)[0]["text"] == "مرحبا"

    def test_generate_subtitles(self, context, narrated_session):
        result = generate_subtitles(context, GenerateSubtitlesArgs(content_plan_id=narrated_session,
                                                                   format="vtt", max_words_per_segment=4))
        assert result["success"] is True
        assert result["isRTL"] is False
        assert result["totalDuration"] == 30.0
        subtitles = context.store.get(narrated_session)["subtitles"]
        assert subtitles["content"].startswith("WEBVTT")
        assert subtitles["segment_count"] == result["segmentCount"]

    def test_subtitles_need_narration(self, context, planned_session):
        result = generate_subtitles(context, GenerateSubtitlesArgs(content_plan_id=planned_session))
        assert result["success"] is False


class TestExport:
    """Tests for presets, readiness checks and rendering."""

    def test_presets_listed(self, context):
        result = list_export_presets(context, ListPresetsArgs())
        assert len(result["presets"]) == len(EXPORT_PRESETS)
        shorts = next(p for p in result["presets"] if p["id"] == "youtube-shorts")
        assert shorts["aspectRatio"] == "9:16"
        assert shorts["maxDuration"] == 60

    def test_file_size_estimate(self):
        # (5000 + 192) kbps for 60s
        assert estimate_file_size_mb(60, "standard") == 38.0

    def test_validate_not_ready_without_assets(self, context, planned_session):
        result = validate_export(context, ValidateExportArgs(content_plan_id=planned_session))
        assert result["isReady"] is False
        assert "No visuals generated" in result["errors"]
        assert "No narration generated" in result["errors"]

    def test_validate_preset_limits(self, context, illustrated_session):
        result = validate_export(context, ValidateExportArgs(content_plan_id=illustrated_session,
                                                             preset="instagram-story"))
        assert result["isReady"] is False
        assert result["errors"] == ["Duration 30s exceeds the Instagram Story maximum of 15s"]

        result = validate_export(context, ValidateExportArgs(content_plan_id=illustrated_session,
                                                             preset="youtube-landscape"))
        assert result["isReady"] is True
        assert result["warnings"] == ["Duration 30s is shorter than the YouTube (Landscape) minimum of 60s"]

    def test_export_with_preset(self, context, illustrated_session, providers):
        generate_subtitles(context, GenerateSubtitlesArgs(content_plan_id=illustrated_session))
        result = export_final_video(context, ExportArgs(content_plan_id=illustrated_session, preset="tiktok"))
        assert result["success"] is True
        assert result["aspectRatio"] == "9:16"
        assert result["quality"] == "standard"
        assert result["includedAssets"]["subtitles"] is True
        _, (scenes,), kwargs = providers.renderer.calls[0]
        assert kwargs["fps"] == 30
        assert kwargs["subtitles"]["format"] == "srt"
        assert [s["type"] for s in scenes] == ["image", "image", "image"]

        state = context.store.get(illustrated_session)
        assert state["export_result"]["download_url"] == result["downloadUrl"]
        assert state["exported_video"]["format"] == "mp4"

    def test_render_reports_scene_progress(self, context, illustrated_session):
        context.emitter = ProgressEmitter()
        export_final_video(context, ExportArgs(content_plan_id=illustrated_session))

        progress = context.emitter.of_type(SCENE_PROGRESS)
        assert [(e.data["currentScene"], e.data["totalScenes"]) for e in progress] == [(0, 3), (3, 3)]
        assert all(e.data["tool"] == "export_final_video" for e in progress)
        assert context.emitter.of_type(STAGE_PROGRESS) == []

    def test_explicit_parameters_win_over_preset(self, context, illustrated_session):
        result = export_final_video(context, ExportArgs(content_plan_id=illustrated_session, preset="tiktok",
                                                        aspect_ratio="1:1", quality="high", format="webm"))
        assert result["aspectRatio"] == "1:1"
        assert result["quality"] == "high"
        assert result["downloadUrl"].endswith(".webm")

    def test_each_export_gets_new_id(self, context, illustrated_session):
        first = export_final_video(context, ExportArgs(content_plan_id=illustrated_session))
        second = export_final_video(context, ExportArgs(content_plan_id=illustrated_session))
        assert first["exportId"] != second["exportId"]

    def test_placeholder_warning(self, context, narrated_session):
        from production_studio.tools.media import fill_placeholder_visuals
        fill_placeholder_visuals(context, narrated_session)
        result = export_final_video(context, ExportArgs(content_plan_id=narrated_session))
        assert result["warnings"] == ["3 scene(s) rendered from placeholder visuals"]

    def test_export_needs_visuals(self, context, narrated_session):
        result = export_final_video(context, ExportArgs(content_plan_id=narrated_session))
        assert result["success"] is False
        assert result["suggestion"] == "Run generate_visuals first"

    def test_invalid_preset_rejected(self):
        with pytest.raises(ValueError):
            ExportArgs(content_plan_id="prod_1_abcdefghi", preset="myspace")


class TestCloudUpload:
    """Tests for upload_production_to_cloud."""

    def test_upload_exported_production(self, context, illustrated_session, providers):
        export_final_video(context, ExportArgs(content_plan_id=illustrated_session))
        result = upload_production_to_cloud(context, UploadArgs(content_plan_id=illustrated_session,
                                                                include_visuals=False, make_public=True))
        assert result["success"] is True
        names = [c[1][1] for c in providers.assets.calls if c[0] == "upload_production"]
        assert names[0] == "final-video.mp4"
        assert "narration.wav" in names
        assert "subtitles.srt" in names and "subtitles.vtt" in names
        assert names[-2:] == ["metadata.json", "production.log"]
        assert result["bucketPath"] == f"gs://test-bucket/DEV/productions/{result['folderName']}"
        assert result["publicUrls"]["metadata.json"].startswith("https://storage.googleapis.com/")
        assert context.store.get(illustrated_session)["cloud_upload"]["folder_name"] == result["folderName"]

    def test_local_visual_files_uploaded(self, context, narrated_session, tmp_path, providers):
        image = tmp_path / "scene.png"
        image.write_bytes(b"\x89PNG")
        context.store.update(narrated_session, lambda s: s.update({"visuals": [
            {"scene_id": "scene_1", "url": str(image), "type": "image"}]}))
        upload_production_to_cloud(context, UploadArgs(content_plan_id=narrated_session))
        names = [c[1][1] for c in providers.assets.calls if c[0] == "upload_production"]
        assert "visuals/scene-1.png" in names

    def test_partial_failures_reported(self, context, narrated_session, providers):
        providers.assets.failures = [RuntimeError("bucket hiccup")]
        result = upload_production_to_cloud(context, UploadArgs(content_plan_id=narrated_session,
                                                                include_visuals=False))
        assert result["success"] is True
        assert result["filesUploaded"] == result["totalFiles"] - 1
        assert result["errors"][0].endswith("bucket hiccup")

    def test_nothing_uploaded_is_failure(self, context, planned_session, providers):
        providers.assets.fail_with = RuntimeError("bucket gone")
        result = upload_production_to_cloud(context, UploadArgs(content_plan_id=planned_session))
        assert result["success"] is False
        assert len(result["errors"]) == 2


class TestStatusTools:
    """Tests for get_production_status and mark_complete."""

    def test_status_counts_assets(self, context, illustrated_session):
        result = get_production_status(context, SessionArgs(content_plan_id=illustrated_session))
        assets = result["assets"]
        assert assets["sceneCount"] == 3
        assert assets["narrationSegments"] == 3
        assert assets["visualCount"] == 3
        assert assets["hasExport"] is False
        assert result["isComplete"] is False

    def test_mark_complete_after_export(self, context, illustrated_session):
        export_final_video(context, ExportArgs(content_plan_id=illustrated_session))
        result = mark_complete(context, SessionArgs(content_plan_id=illustrated_session))
        assert result["exported"] is True
        assert "warning" not in result
        state = context.store.get(illustrated_session)
        assert state["is_complete"] is True
        assert state["errors"] == []

    def test_mark_complete_without_export_records_error(self, context, narrated_session):
        result = mark_complete(context, SessionArgs(content_plan_id=narrated_session))
        assert result["success"] is True
        assert result["exported"] is False
        errors = context.store.get(narrated_session)["errors"]
        assert errors[0]["tool"] == "mark_complete"
        assert errors[0]["error"].startswith("Export skipped")
        assert errors[0]["recoverable"] is True
