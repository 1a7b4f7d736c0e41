"""State definitions for a production session"""

import base64
import copy
import time
from typing import List, Dict, Any, Optional, TypedDict


class Scene(TypedDict, total=False):
    id: str
    name: str
    duration: float  # seconds
    narration_script: str
    visual_description: str
    emotional_tone: str
    ambient_sfx: Optional[str]  # Suggested ambient track id


class ContentPlan(TypedDict, total=False):
    title: str
    topic: str
    scenes: List[Scene]
    total_duration: float
    target_duration: Optional[int]
    language: str
    style: Optional[str]
    audience: Optional[str]
    video_purpose: Optional[str]


class NarrationSegment(TypedDict, total=False):
    scene_id: str
    transcript: str
    audio: bytes  # WAV blob
    mime_type: str
    audio_duration: float  # Measured seconds
    voice: str


class Visual(TypedDict, total=False):
    scene_id: str
    url: str  # Image or video URL, empty for placeholders
    type: str  # "image" | "video"
    prompt: str
    is_placeholder: bool
    is_animated: bool
    generated_with_veo: bool
    video_url: Optional[str]  # Set by animate_image
    original_url: Optional[str]  # Kept by enhancement tools


class SubtitleItem(TypedDict, total=False):
    id: int
    start: float
    end: float
    text: str
    words: List[Dict[str, Any]]  # [{"word", "start", "end"}]


class Subtitles(TypedDict, total=False):
    format: str  # "srt" | "vtt"
    content: str
    language: str
    segment_count: int
    is_rtl: bool
    items: List[SubtitleItem]


class ToolError(TypedDict):
    tool: str
    error: str
    category: str  # transient | recoverable | permanent | validation | authentication
    timestamp: float
    retry_count: int
    recoverable: bool
    fallback_applied: Optional[str]


class PartialSuccessReport(TypedDict):
    total_attempted: int
    succeeded: int
    fallback_applied: int
    failed: int
    errors: List[ToolError]
    summary: str
    is_usable: bool


class ProductionState(TypedDict, total=False):
    session_id: str

    # Pipeline artifacts (index i always refers to content_plan["scenes"][i])
    content_plan: Optional[ContentPlan]
    narration_segments: List[NarrationSegment]
    visuals: List[Visual]
    sfx_plan: Optional[Dict[str, Any]]  # {"scenes": [...], "background_music": {...}, "mood": str}
    music_task_id: Optional[str]
    music_url: Optional[str]
    music_track: Optional[Dict[str, Any]]
    mixed_audio: Optional[Dict[str, Any]]  # {"audio", "duration", "tracks", "volumes", "ducking_applied"}
    audio_omissions: List[str]  # Sources skipped by fallbacks ("sfx", "music", "video_audio")
    subtitles: Optional[Subtitles]
    export_result: Optional[Dict[str, Any]]
    exported_video: Optional[Dict[str, Any]]
    imported_content: Optional[Dict[str, Any]]
    cloud_upload: Optional[Dict[str, Any]]

    # Screenplay mode
    story: Optional[Dict[str, Any]]  # {"breakdown", "screenplay", "characters", "shotlist"}

    # Quality tracking
    quality_score: Optional[int]
    best_quality_score: int
    quality_iterations: int
    quality_report: Optional[Dict[str, Any]]

    # Error tracking
    errors: List[ToolError]
    partial_success_report: Optional[PartialSuccessReport]
    is_complete: bool


def create_production_state(session_id: str, content_plan: Optional[ContentPlan] = None) -> ProductionState:
    """Build an empty production state for a new session"""
    return {
        "session_id": session_id,
        "content_plan": content_plan,
        "narration_segments": [],
        "visuals": [],
        "sfx_plan": None,
        "music_task_id": None,
        "music_url": None,
        "music_track": None,
        "mixed_audio": None,
        "audio_omissions": [],
        "subtitles": None,
        "export_result": None,
        "exported_video": None,
        "imported_content": None,
        "cloud_upload": None,
        "story": None,
        "quality_score": None,
        "best_quality_score": 0,
        "quality_iterations": 0,
        "quality_report": None,
        "errors": [],
        "partial_success_report": None,
        "is_complete": False,
    }


def get_scenes(state: Optional[ProductionState]) -> List[Scene]:
    """Scenes of the content plan, or an empty list"""
    if not state or not state.get("content_plan"):
        return []
    return state["content_plan"].get("scenes") or []


def serialize_state(state: ProductionState, include_blobs: bool = False) -> Dict[str, Any]:
    """Make a JSON-safe copy of the state

    Binary blobs (audio, video) are replaced by a size marker unless
    ``include_blobs`` is set, in which case they are base64 encoded.
    """
    def _convert(value):
        if isinstance(value, (bytes, bytearray)):
            if include_blobs:
                return {"base64": base64.b64encode(value).decode("ascii")}
            return {"bytes": len(value)}
        if isinstance(value, dict):
            return {k: _convert(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_convert(v) for v in value]
        return value

    return _convert(copy.copy(state))


def make_tool_error(tool: str, error: str, category: str, retry_count: int = 0,
                    recoverable: bool = True, fallback_applied: Optional[str] = None) -> ToolError:
    return {
        "tool": tool,
        "error": error,
        "category": category,
        "timestamp": time.time(),
        "retry_count": retry_count,
        "recoverable": recoverable,
        "fallback_applied": fallback_applied,
    }
