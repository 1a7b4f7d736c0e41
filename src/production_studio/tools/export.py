"""
Export tools: presets, readiness checks and final rendering

Rendering takes each scene's visual (animated clip when available), the
mixed audio (or plain narration) and optionally burned-in subtitles. When
rendering keeps failing, the recovery layer hands back an asset bundle
built by ``build_asset_bundle`` so the user can assemble the video manually.
"""

import logging
import uuid
from typing import Any, Dict, List, Literal, Optional, Tuple

from ..core.config import EXPORT_CONFIG
from ..core.context import ToolContext
from ..core.state import ProductionState
from .audio_mixing import session_narration
from .base import SessionArgs, ToolArgs, failure, require_plan

logger = logging.getLogger(__name__)

EXPORT_PRESETS: Dict[str, Dict[str, Any]] = {
    "youtube-landscape": {"name": "YouTube (Landscape)", "aspect_ratio": "16:9", "fps": 24,
                          "quality": "high", "min_duration": 60},
    "youtube-shorts": {"name": "YouTube Shorts", "aspect_ratio": "9:16", "fps": 30,
                       "quality": "high", "min_duration": 15, "max_duration": 60},
    "tiktok": {"name": "TikTok", "aspect_ratio": "9:16", "fps": 30,
               "quality": "standard", "min_duration": 15, "max_duration": 180},
    "instagram-feed": {"name": "Instagram Feed", "aspect_ratio": "1:1", "fps": 30,
                       "quality": "standard", "max_duration": 60},
    "instagram-reels": {"name": "Instagram Reels", "aspect_ratio": "9:16", "fps": 30,
                        "quality": "high", "min_duration": 15, "max_duration": 90},
    "instagram-story": {"name": "Instagram Story", "aspect_ratio": "9:16", "fps": 30,
                        "quality": "standard", "max_duration": 15},
    "twitter": {"name": "Twitter / X", "aspect_ratio": "16:9", "fps": 30,
                "quality": "standard", "max_duration": 140},
    "linkedin": {"name": "LinkedIn", "aspect_ratio": "16:9", "fps": 24,
                 "quality": "high", "min_duration": 30, "max_duration": 600},
    "draft-preview": {"name": "Draft Preview", "aspect_ratio": "16:9", "fps": 15, "quality": "draft"},
    "high-quality": {"name": "High Quality", "aspect_ratio": "16:9", "fps": 30, "quality": "high"},
    "podcast-video": {"name": "Podcast Video", "aspect_ratio": "16:9", "fps": 24,
                      "quality": "standard", "min_duration": 120},
}

PresetName = Literal[
    "youtube-landscape", "youtube-shorts", "tiktok", "instagram-feed", "instagram-reels",
    "instagram-story", "twitter", "linkedin", "draft-preview", "high-quality", "podcast-video",
]

CONTENT_TYPES = {"mp4": "video/mp4", "webm": "video/webm"}


class ListPresetsArgs(ToolArgs):
    pass


class ValidateExportArgs(SessionArgs):
    preset: Optional[PresetName] = None


class ExportArgs(SessionArgs):
    preset: Optional[PresetName] = None
    format: Literal["mp4", "webm"] = EXPORT_CONFIG["default_format"]
    aspect_ratio: Optional[Literal["16:9", "9:16", "1:1"]] = None
    include_subtitles: bool = True
    quality: Optional[Literal["draft", "standard", "high"]] = None
    use_mixed_audio: bool = True


def _visual_source(visual: Dict[str, Any]) -> Tuple[Optional[str], str]:
    """(url, type) to render for a visual; animated clips win over their still"""
    if visual.get("is_placeholder"):
        return None, "placeholder"
    if visual.get("video_url"):
        return visual["video_url"], "video"
    return visual.get("url"), visual.get("type") or "image"


def _scene_duration(state: ProductionState, index: int) -> float:
    scene = state["content_plan"]["scenes"][index]
    return float(scene.get("duration") or 0)


def estimate_file_size_mb(duration: float, quality: str) -> float:
    preset = EXPORT_CONFIG["quality_presets"].get(quality, EXPORT_CONFIG["quality_presets"]["standard"])
    kbps = preset["video_bitrate_kbps"] + EXPORT_CONFIG["audio_bitrate_kbps"]
    return round(duration * kbps / 8 / 1024, 1)


def build_asset_bundle(state: ProductionState) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Counts and per-scene URLs for a manual-assembly download

    Returns:
        (bundle, bundle_data)
    """
    scenes = (state.get("content_plan") or {}).get("scenes") or []
    visuals = state.get("visuals") or []
    segments = state.get("narration_segments") or []
    mixed = state.get("mixed_audio") or {}
    subtitles = state.get("subtitles") or {}

    scene_data: List[Dict[str, Any]] = []
    for i, scene in enumerate(scenes):
        visual = visuals[i] if i < len(visuals) else {}
        url, visual_type = _visual_source(visual)
        segment = segments[i] if i < len(segments) else {}
        scene_data.append({
            "index": i,
            "name": scene.get("name"),
            "duration": scene.get("duration"),
            "visualUrl": url,
            "visualType": visual_type if visual else None,
            "isPlaceholder": bool(visual.get("is_placeholder")),
            "narrationDuration": segment.get("audio_duration"),
            "transcript": segment.get("transcript"),
        })

    bundle = {
        "sceneCount": len(scenes),
        "visualCount": len([v for v in visuals if v.get("url") and not v.get("is_placeholder")]),
        "placeholderCount": len([v for v in visuals if v.get("is_placeholder")]),
        "narrationSegments": len(segments),
        "hasMixedAudio": bool(mixed),
        "hasMusic": bool(state.get("music_url")),
        "hasSubtitles": bool(subtitles.get("content")),
    }
    bundle_data = {
        "scenes": scene_data,
        "musicUrl": state.get("music_url"),
        "mixedAudioUrl": mixed.get("url"),
        "subtitles": subtitles.get("content"),
        "subtitleFormat": subtitles.get("format"),
    }
    return bundle, bundle_data


def list_export_presets(context: ToolContext, args: ListPresetsArgs) -> Dict[str, Any]:
    """List the platform export presets (aspect ratio, frame rate, quality, duration limits)."""
    presets = []
    for preset_id, preset in EXPORT_PRESETS.items():
        presets.append({
            "id": preset_id,
            "name": preset["name"],
            "aspectRatio": preset["aspect_ratio"],
            "fps": preset["fps"],
            "quality": preset["quality"],
            "minDuration": preset.get("min_duration"),
            "maxDuration": preset.get("max_duration"),
        })
    return {"success": True, "presets": presets, "message": f"{len(presets)} export presets available"}


def validate_export(context: ToolContext, args: ValidateExportArgs) -> Dict[str, Any]:
    """Check whether a production is ready to export and estimate its duration and file size."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    scenes = state["content_plan"]["scenes"]
    visuals = state.get("visuals") or []
    segments = state.get("narration_segments") or []
    placeholders = [i for i, v in enumerate(visuals) if v.get("is_placeholder")]
    errors: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []

    if not visuals:
        errors.append("No visuals generated")
        suggestions.append("Run generate_visuals")
    elif len(visuals) < len(scenes):
        warnings.append(f"Only {len(visuals)}/{len(scenes)} scenes have visuals; the rest render as blank frames")
    if placeholders:
        warnings.append(f"{len(placeholders)} scene(s) use placeholder visuals: "
                        f"{', '.join(str(i + 1) for i in placeholders)}")
    if not segments:
        errors.append("No narration generated")
        suggestions.append("Run narrate_scenes")
    if not state.get("mixed_audio"):
        suggestions.append("Run mix_audio_tracks to add music and ambient sound")
    if not state.get("sfx_plan") and not state.get("music_url"):
        suggestions.append("Add background music or ambient SFX with plan_sfx or generate_music")
    if not state.get("subtitles"):
        suggestions.append("Run generate_subtitles to include captions")

    duration = sum(float(s.get("duration") or 0) for s in scenes)
    quality = EXPORT_CONFIG["default_quality"]
    if args.preset:
        preset = EXPORT_PRESETS[args.preset]
        quality = preset["quality"]
        if preset.get("min_duration") and duration < preset["min_duration"]:
            warnings.append(f"Duration {duration:.0f}s is shorter than the {preset['name']} "
                            f"minimum of {preset['min_duration']}s")
        if preset.get("max_duration") and duration > preset["max_duration"]:
            errors.append(f"Duration {duration:.0f}s exceeds the {preset['name']} "
                          f"maximum of {preset['max_duration']}s")

    return {
        "success": True,
        "isReady": not errors,
        "estimatedDuration": round(duration, 1),
        "estimatedFileSizeMB": estimate_file_size_mb(duration, quality),
        "assets": {
            "scenes": len(scenes),
            "visuals": len(visuals),
            "placeholders": len(placeholders),
            "narrationSegments": len(segments),
            "mixedAudio": bool(state.get("mixed_audio")),
            "music": bool(state.get("music_url")),
            "sfx": bool(state.get("sfx_plan")),
            "subtitles": bool(state.get("subtitles")),
        },
        "warnings": warnings,
        "errors": errors,
        "suggestions": suggestions,
    }


def export_final_video(context: ToolContext, args: ExportArgs) -> Dict[str, Any]:
    """Render the final video (mp4 or webm) from visuals, mixed audio and subtitles.

    A preset fills in aspect ratio, frame rate and quality; explicit parameters win.
    """
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    if not state.get("narration_segments"):
        return failure("No narration found for this session", "Run narrate_scenes first")
    if not state.get("visuals"):
        return failure("No visuals found for this session", "Run generate_visuals first")

    preset = EXPORT_PRESETS.get(args.preset) if args.preset else None
    aspect_ratio = args.aspect_ratio or (preset or {}).get("aspect_ratio") or EXPORT_CONFIG["default_aspect_ratio"]
    quality = args.quality or (preset or {}).get("quality") or EXPORT_CONFIG["default_quality"]
    fps = (preset or {}).get("fps")

    mixed = state.get("mixed_audio") or {}
    if args.use_mixed_audio and mixed.get("audio"):
        audio = mixed["audio"]
    else:
        audio = session_narration(state)
    if not audio:
        return failure("No audio available for export", "Run narrate_scenes or mix_audio_tracks first")

    visuals = state["visuals"]
    render_scenes = []
    for i in range(len(state["content_plan"]["scenes"])):
        url, visual_type = _visual_source(visuals[i]) if i < len(visuals) else (None, "placeholder")
        render_scenes.append({"url": url, "type": visual_type, "duration": _scene_duration(state, i)})

    subtitles = state.get("subtitles") if args.include_subtitles else None
    context.emit_scene_progress("export_final_video", 0, len(render_scenes),
                                f"Rendering {len(render_scenes)} scenes ({args.format}, {aspect_ratio})")
    rendered = context.providers.renderer.render(
        render_scenes,
        audio,
        output_format=args.format,
        aspect_ratio=aspect_ratio,
        quality=quality,
        subtitles={"format": subtitles["format"], "content": subtitles["content"]} if subtitles else None,
        fps=fps,
    )
    context.emit_scene_progress("export_final_video", len(render_scenes), len(render_scenes))

    # New id per attempt
    export_id = uuid.uuid4().hex[:12]
    download_url = context.providers.assets.save(rendered["video"], args.content_plan_id, "exports",
                                                 f"{export_id}.{args.format}",
                                                 content_type=CONTENT_TYPES[args.format])
    file_size_mb = round(len(rendered["video"]) / (1024 * 1024), 2)

    placeholder_count = len([v for v in visuals if v.get("is_placeholder")])
    warnings = []
    if placeholder_count:
        warnings.append(f"{placeholder_count} scene(s) rendered from placeholder visuals")
    missing = len(state["content_plan"]["scenes"]) - len(visuals)
    if missing > 0:
        warnings.append(f"{missing} scene(s) had no visual and rendered as blank frames")

    tracks = mixed.get("tracks") or {}
    included_assets = {
        "visuals": True,
        "narration": True,
        "music": bool(args.use_mixed_audio and tracks.get("music")),
        "sfx": bool(args.use_mixed_audio and tracks.get("sfx")),
        "subtitles": bool(subtitles),
    }

    def mutate(s: ProductionState):
        s["export_result"] = {
            "export_id": export_id,
            "video": rendered["video"],
            "download_url": download_url,
            "format": args.format,
            "aspect_ratio": aspect_ratio,
            "quality": quality,
            "duration": rendered["duration"],
            "resolution": rendered.get("resolution"),
            "file_size_mb": file_size_mb,
            "included_assets": included_assets,
        }
        s["exported_video"] = {
            "url": download_url,
            "format": args.format,
            "duration": rendered["duration"],
            "file_size_mb": file_size_mb,
        }

    context.store.update(args.content_plan_id, mutate)
    logger.info(f"[Export] {args.content_plan_id}: {file_size_mb} MB {args.format} -> {download_url}")
    payload = {
        "success": True,
        "exportId": export_id,
        "downloadUrl": download_url,
        "format": args.format,
        "aspectRatio": aspect_ratio,
        "quality": quality,
        "duration": rendered["duration"],
        "fileSizeMB": file_size_mb,
        "includedAssets": included_assets,
        "message": f"Exported {rendered['duration']:.0f}s {args.format.upper()} ({file_size_mb} MB)",
    }
    if warnings:
        payload["warnings"] = warnings
    return payload
