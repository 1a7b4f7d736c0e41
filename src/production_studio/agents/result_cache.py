"""
Result cache and duplicate-call suppression

Two independent checks run before a tool is dispatched:
- check_cached_result looks at the session state and answers "is this
  already done?" with a synthetic ``cached: true`` payload.
- StepTracker remembers which steps succeeded during the current run so the
  same call is not executed twice. Steps whose payload said
  ``success: false`` are never marked, so the agent can retry them.
"""

import logging
from typing import Any, Callable, Dict, Optional, Set

from ..core.session_store import SessionStore
from ..core.state import ProductionState, get_scenes

logger = logging.getLogger(__name__)

# Tools that legitimately run more than once per run (quality loop)
ITERATION_SCOPED_TOOLS = ("validate_plan", "adjust_timing")


def _session_id(arguments: Dict[str, Any]) -> Optional[str]:
    return arguments.get("contentPlanId") or arguments.get("sessionId")


def _scene_index(arguments: Dict[str, Any]) -> Optional[int]:
    value = arguments.get("sceneIndex")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def create_step_identifier(tool_name: str, arguments: Optional[Dict[str, Any]],
                           state: Optional[ProductionState] = None) -> str:
    """Key one logical step: tool name plus session id and scene index when present"""
    arguments = arguments or {}
    session_id = _session_id(arguments)
    scene_index = _scene_index(arguments)

    if session_id and scene_index is not None:
        step = f"{tool_name}_{session_id}_scene_{scene_index}"
    elif session_id:
        step = f"{tool_name}_{session_id}"
    elif arguments.get("url"):
        step = f"{tool_name}_{arguments['url']}"
    elif arguments.get("audioPath"):
        step = f"{tool_name}_{arguments['audioPath']}"
    else:
        step = tool_name

    if tool_name in ITERATION_SCOPED_TOOLS and state is not None:
        step = f"{step}_iter_{state.get('quality_iterations', 0)}"
    return step


class StepTracker:
    """Steps executed successfully in the current run"""

    def __init__(self):
        self._executed: Set[str] = set()

    def is_executed(self, step_id: str) -> bool:
        return step_id in self._executed

    def mark_executed(self, step_id: str):
        self._executed.add(step_id)

    def clear(self):
        self._executed.clear()

    def __len__(self) -> int:
        return len(self._executed)


# --- Cache rules (one per cacheable tool) ---

def _visuals_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    scenes = get_scenes(state)
    visuals = state.get("visuals") or []
    if not scenes or len(visuals) < len(scenes):
        return None
    if not all(visual.get("url") for visual in visuals[:len(scenes)]):
        return None
    return {
        "visualCount": len(visuals),
        "videoCount": len([v for v in visuals if v.get("type") == "video"]),
        "message": f"Visuals already generated for all {len(scenes)} scenes",
    }


def _narration_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    scenes = get_scenes(state)
    segments = state.get("narration_segments") or []
    if not scenes or len(segments) < len(scenes):
        return None
    if not all(segment.get("audio") for segment in segments[:len(scenes)]):
        return None
    total = sum(segment.get("audio_duration", 0) for segment in segments)
    return {
        "segmentCount": len(segments),
        "totalDuration": round(total, 2),
        "message": f"Narration already exists for all {len(scenes)} scenes",
    }


def _sfx_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    plan = state.get("sfx_plan")
    if not plan or not plan.get("scenes"):
        return None
    return {"sceneCount": len(plan["scenes"]), "message": "Sound effects already planned"}


def _mix_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    mixed = state.get("mixed_audio")
    if not mixed or not mixed.get("audio"):
        return None
    return {
        "duration": mixed.get("duration"),
        "tracks": mixed.get("tracks"),
        "duckingApplied": mixed.get("ducking_applied", False),
        "message": "Audio already mixed",
    }


def _subtitles_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    subtitles = state.get("subtitles")
    if not subtitles or not subtitles.get("content"):
        return None
    return {
        "format": subtitles.get("format"),
        "language": subtitles.get("language"),
        "segmentCount": subtitles.get("segment_count"),
        "isRTL": subtitles.get("is_rtl", False),
        "message": "Subtitles already generated",
    }


def _export_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    result = state.get("export_result")
    if not result or not result.get("video"):
        return None
    return {
        "downloadUrl": result.get("download_url"),
        "format": result.get("format"),
        "aspectRatio": result.get("aspect_ratio"),
        "quality": result.get("quality"),
        "duration": result.get("duration"),
        "fileSizeMB": result.get("file_size_mb"),
        "includedAssets": result.get("included_assets"),
        "message": "Video already exported",
    }


def _scene_visual(state: ProductionState, arguments: Dict[str, Any]):
    index = _scene_index(arguments)
    visuals = state.get("visuals") or []
    if index is None or index < 0 or index >= len(visuals):
        return None, index
    return visuals[index], index


def _animation_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    visual, index = _scene_visual(state, arguments)
    if not visual:
        return None
    video_url = visual.get("video_url") or (visual.get("url") if visual.get("generated_with_veo") else None)
    if not video_url:
        return None
    return {"sceneIndex": index, "videoUrl": video_url, "message": f"Scene {index + 1} is already animated"}


def _video_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    visual, index = _scene_visual(state, arguments)
    if not visual or visual.get("type") != "video" or not visual.get("url"):
        return None
    return {"sceneIndex": index, "videoUrl": visual["url"], "message": f"Scene {index + 1} already has a video"}


def _music_cached(state: ProductionState, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not state.get("music_url"):
        return None
    track = state.get("music_track") or {}
    return {
        "taskId": state.get("music_task_id"),
        "musicUrl": state["music_url"],
        "duration": track.get("duration"),
        "message": "Music already generated",
    }


CACHE_RULES: Dict[str, Callable[[ProductionState, Dict[str, Any]], Optional[Dict[str, Any]]]] = {
    "generate_visuals": _visuals_cached,
    "narrate_scenes": _narration_cached,
    "plan_sfx": _sfx_cached,
    "mix_audio_tracks": _mix_cached,
    "generate_subtitles": _subtitles_cached,
    "export_final_video": _export_cached,
    "animate_image": _animation_cached,
    "generate_video": _video_cached,
    "generate_music": _music_cached,
}


def check_cached_result(tool_name: str, arguments: Optional[Dict[str, Any]],
                        store: SessionStore) -> Optional[Dict[str, Any]]:
    """Synthesize a cached success payload when the state already satisfies the call"""
    rule = CACHE_RULES.get(tool_name)
    if rule is None:
        return None
    arguments = arguments or {}
    session_id = _session_id(arguments)
    if not session_id:
        return None
    state = store.get(session_id)
    if state is None:
        return None

    cached = rule(state, arguments)
    if cached is None:
        return None
    logger.info(f"[Cache] Hit for {tool_name} on {session_id}")
    return {"success": True, "cached": True, "sessionId": session_id, **cached}
