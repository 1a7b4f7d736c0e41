"""
Audio mixing tool

Narration comes from the session (or an explicit URL). Music, ambient SFX
and the native audio of Veo clips are layered when present; sources that a
fallback skipped (``audio_omissions``) are left out.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.config import AUDIO_MIX_CONFIG
from ..core.context import ToolContext
from ..core.state import ProductionState
from ..providers.ffmpeg_audio import concat_wav_segments
from ..storage.gcs_utils import download_to_bytes
from .base import SessionArgs, failure, require_plan

logger = logging.getLogger(__name__)


class MixAudioArgs(SessionArgs):
    narration_url: Optional[str] = Field(default=None, description="Narration audio; defaults to the session narration")
    narration_volume: float = Field(default=AUDIO_MIX_CONFIG["narration_volume"], ge=0, le=2)
    music_volume: float = Field(default=AUDIO_MIX_CONFIG["music_volume"], ge=0, le=2)
    sfx_volume: float = Field(default=AUDIO_MIX_CONFIG["sfx_volume"], ge=0, le=2)
    video_audio_volume: float = Field(default=AUDIO_MIX_CONFIG["video_audio_volume"], ge=0, le=2)
    include_video_audio: bool = True
    ducking_enabled: bool = True
    sfx_plan: Optional[Dict[str, Any]] = Field(default=None, description="Override the session SFX plan")
    scenes: Optional[List[Dict[str, Any]]] = Field(default=None, description="Override scene timing")


def session_narration(state: ProductionState) -> Optional[bytes]:
    """All narration segments joined in scene order"""
    segments = [segment["audio"] for segment in state.get("narration_segments") or [] if segment.get("audio")]
    if not segments:
        return None
    return concat_wav_segments(segments)


def _narration_duration(state: ProductionState) -> float:
    return sum(segment.get("audio_duration") or 0 for segment in state.get("narration_segments") or [])


def narration_only_mix(context: ToolContext, session_id: str) -> Dict[str, Any]:
    """Store the plain narration as the mix; used when layering fails"""
    state = context.store.require(session_id)
    audio = session_narration(state)
    if audio is None:
        raise ValueError("No narration available for a narration-only mix")
    duration = _narration_duration(state)
    tracks = {"narration": True, "music": False, "sfx": False, "videoAudio": False}

    def mutate(s: ProductionState):
        s["mixed_audio"] = {
            "audio": audio,
            "duration": duration,
            "tracks": tracks,
            "volumes": {"narration": 1.0},
            "ducking_applied": False,
        }
        for source in ("music", "sfx", "video_audio"):
            if source not in s["audio_omissions"]:
                s["audio_omissions"].append(source)

    context.store.update(session_id, mutate)
    return {"duration": duration, "tracks": tracks}


def _sfx_layers(sfx_plan: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    layers = []
    for entry in (sfx_plan or {}).get("scenes") or []:
        if entry.get("url"):
            layers.append({
                "url": entry["url"],
                "start": entry.get("start") or 0,
                "duration": entry.get("duration"),
                "volume": entry.get("suggested_volume") or 0.3,
            })
    return layers


def _video_audio_urls(state: ProductionState) -> List[str]:
    # Veo clips carry their own soundtrack; DeAPI animations are silent
    return [v["url"] for v in state.get("visuals") or [] if v.get("generated_with_veo") and v.get("url")]


def mix_audio_tracks(context: ToolContext, args: MixAudioArgs) -> Dict[str, Any]:
    """Mix narration, background music, ambient SFX and video audio into one track.

    Narration is fetched from the session automatically; missing tracks are skipped.
    """
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    if args.narration_url:
        narration = download_to_bytes(args.narration_url)
    else:
        narration = session_narration(state)
    if not narration:
        return failure("No narration found for this session",
                       "Run narrate_scenes first or provide a narrationUrl parameter")

    omissions = set(state.get("audio_omissions") or [])
    duration = _narration_duration(state) or float(state["content_plan"].get("total_duration") or 0)
    if args.scenes:
        duration = sum(float(scene.get("duration") or 0) for scene in args.scenes) or duration

    music_url = None if "music" in omissions else (
        state.get("music_url") or ((state.get("sfx_plan") or {}).get("background_music") or {}).get("url")
    )
    sfx_layers = [] if "sfx" in omissions else _sfx_layers(args.sfx_plan or state.get("sfx_plan"))
    video_urls = [] if ("video_audio" in omissions or not args.include_video_audio) else _video_audio_urls(state)

    volumes = {
        "narration": args.narration_volume,
        "music": args.music_volume,
        "sfx": args.sfx_volume,
        "video_audio": args.video_audio_volume,
    }
    result = context.providers.mixer.mix(
        narration,
        duration,
        music_url=music_url,
        sfx_tracks=sfx_layers,
        video_audio_urls=video_urls,
        volumes=volumes,
        ducking=args.ducking_enabled,
    )

    tracks = {
        "narration": True,
        "music": bool(music_url),
        "sfx": bool(sfx_layers),
        "videoAudio": bool(video_urls),
    }
    ducking_applied = bool(result.get("ducking_applied"))
    audio_url = context.providers.assets.save(result["audio"], args.content_plan_id, "audio", "mix.wav",
                                              content_type="audio/wav")

    def mutate(s: ProductionState):
        s["mixed_audio"] = {
            "audio": result["audio"],
            "url": audio_url,
            "duration": result["duration"],
            "tracks": tracks,
            "volumes": volumes,
            "ducking_applied": ducking_applied,
        }

    context.store.update(args.content_plan_id, mutate)
    return {
        "success": True,
        "audioUrl": audio_url,
        "duration": result["duration"],
        "tracks": tracks,
        "duckingApplied": ducking_applied,
        "skippedSources": sorted(omissions),
        "message": f"Mixed {sum(tracks.values())} track type(s) ({result['duration']:.0f}s)",
    }
