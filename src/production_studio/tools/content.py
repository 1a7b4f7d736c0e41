"""
Content stage tools: planning, narration and the quality loop
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..agents.quality import (
    NarrationMissing,
    QualityLimitReached,
    apply_narration_timing,
    evaluate_plan,
    record_validation,
)
from ..core.config import CONTENT_PLAN_CONFIG, ENABLE_AI_CRITIQUE, MAX_QUALITY_ITERATIONS, TTS_CONFIG
from ..core.context import ToolContext
from ..core.state import ContentPlan, NarrationSegment, Scene, create_production_state
from ..core.utils import detect_language_from_text, generate_session_id
from ..providers.sfx import AMBIENT_CATALOG, suggest_ambient_track
from .base import SessionArgs, ToolArgs, failure, require_plan

logger = logging.getLogger(__name__)


class PlanVideoArgs(ToolArgs):
    topic: str = Field(description="What the video is about (or the imported transcript)")
    target_duration: int = Field(default=CONTENT_PLAN_CONFIG["default_duration"],
                                 ge=CONTENT_PLAN_CONFIG["min_duration"], le=CONTENT_PLAN_CONFIG["max_duration"],
                                 description="Target length in seconds")
    style: Optional[str] = Field(default=None, description="Visual style, e.g. Cinematic, Anime, Documentary")
    audience: Optional[str] = None
    language: Optional[str] = Field(default=None, description="ISO language code of the narration")
    video_purpose: Optional[str] = Field(default=None, description="e.g. educational, marketing, storytelling")


class NarrateScenesArgs(SessionArgs):
    language: Optional[str] = None
    voice_style: Optional[str] = Field(default=None, description="narrator, calm, energetic, dramatic or friendly")


def scene_count_for(target_duration: int) -> int:
    count = round(target_duration / CONTENT_PLAN_CONFIG["seconds_per_scene"])
    return max(1, min(CONTENT_PLAN_CONFIG["max_scenes"], count))


def _build_scenes(raw_scenes: List[Dict[str, Any]], target_duration: int) -> List[Scene]:
    scenes = []
    default_duration = target_duration / max(len(raw_scenes), 1)
    for i, raw in enumerate(raw_scenes):
        text = f"{raw.get('visual_description', '')} {raw.get('narration_script', '')}"
        ambient = raw.get("ambient_sfx")
        if ambient not in AMBIENT_CATALOG:
            ambient = suggest_ambient_track(text, raw.get("emotional_tone"))
        scenes.append({
            "id": f"scene_{i + 1}",
            "name": raw.get("name") or f"Scene {i + 1}",
            "duration": float(raw.get("duration") or default_duration),
            "narration_script": raw.get("narration_script") or "",
            "visual_description": raw.get("visual_description") or "",
            "emotional_tone": raw.get("emotional_tone") or "neutral",
            "ambient_sfx": ambient,
        })
    return scenes


def plan_video(context: ToolContext, args: PlanVideoArgs) -> Dict[str, Any]:
    """Create a scene-by-scene content plan for a topic and open a new production session.

    Returns the sessionId every other tool needs as contentPlanId.
    """
    language = args.language or detect_language_from_text(args.topic)
    scene_count = scene_count_for(args.target_duration)

    raw = context.providers.planner.plan_content(
        topic=args.topic,
        target_duration=args.target_duration,
        scene_count=scene_count,
        style=args.style,
        audience=args.audience,
        language=language,
        video_purpose=args.video_purpose,
    )
    scenes = _build_scenes(raw.get("scenes") or [], args.target_duration)
    if not scenes:
        return failure("The planner returned no scenes", "Try again with a more specific topic")

    plan: ContentPlan = {
        "title": raw.get("title") or args.topic[:60],
        "topic": args.topic,
        "scenes": scenes,
        "total_duration": sum(scene["duration"] for scene in scenes),
        "target_duration": args.target_duration,
        "language": raw.get("language") or language,
        "style": args.style,
        "audience": args.audience,
        "video_purpose": args.video_purpose,
    }
    session_id = generate_session_id("prod")
    context.store.create(session_id, create_production_state(session_id, plan))
    logger.info(f"[Content] Planned {len(scenes)} scenes for {session_id}")

    return {
        "success": True,
        "sessionId": session_id,
        "title": plan["title"],
        "sceneCount": len(scenes),
        "totalDuration": plan["total_duration"],
        "language": plan["language"],
        "scenes": [{"index": i, "name": s["name"], "duration": s["duration"]} for i, s in enumerate(scenes)],
        "message": f"Created a {len(scenes)}-scene plan. Use contentPlanId=\"{session_id}\" for the next tools.",
    }


def narrate_scenes(context: ToolContext, args: NarrateScenesArgs) -> Dict[str, Any]:
    """Generate voice narration for every scene of the plan."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    scenes = state["content_plan"]["scenes"]
    language = args.language or state["content_plan"].get("language") or "en"
    voice = TTS_CONFIG["voice_styles"].get((args.voice_style or "").lower(), TTS_CONFIG["default_voice"])
    existing = state.get("narration_segments") or []

    segments: List[NarrationSegment] = []
    for i, scene in enumerate(scenes):
        context.emit_scene_progress("narrate_scenes", i + 1, len(scenes),
                                    f"Narrating scene {i + 1}/{len(scenes)}: {scene.get('name')}")
        if i < len(existing) and existing[i].get("audio") and existing[i].get("scene_id") == scene["id"]:
            segments.append(existing[i])
            continue
        text = scene.get("narration_script") or scene.get("name") or f"Scene {i + 1}"
        result = context.providers.narrator.synthesize(text, voice=voice, language=language)
        segments.append({
            "scene_id": scene["id"],
            "transcript": text,
            "audio": result["audio"],
            "mime_type": result.get("mime_type", "audio/wav"),
            "audio_duration": float(result["duration"]),
            "voice": result.get("voice", voice),
        })

    context.store.update(args.content_plan_id, lambda s: s.update({"narration_segments": segments}))
    total = sum(segment["audio_duration"] for segment in segments)
    return {
        "success": True,
        "segmentCount": len(segments),
        "totalDuration": round(total, 2),
        "language": language,
        "voice": voice,
        "message": f"Narrated {len(segments)} scenes ({total:.1f}s)",
    }


def validate_plan(context: ToolContext, args: SessionArgs) -> Dict[str, Any]:
    """Score the plan and its narration (0-100) and report issues with suggestions."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    critic = context.providers.planner if ENABLE_AI_CRITIQUE else None
    try:
        evaluation = evaluate_plan(state, critic)
    except Exception as e:
        logger.warning(f"[Content] AI critique failed, using rule-based score: {e}")
        evaluation = evaluate_plan(state)

    report = {}
    context.store.update(args.content_plan_id, lambda s: report.update(record_validation(s, evaluation)))
    verdict = "approved" if report["approved"] else "needs improvement"
    return {"success": True, **report, "message": f"Quality score {report['score']}/100 ({verdict})"}


def adjust_timing(context: ToolContext, args: SessionArgs) -> Dict[str, Any]:
    """Set each scene duration to its measured narration length. Allowed at most twice per session."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    result = {}
    try:
        context.store.update(args.content_plan_id, lambda s: result.update(apply_narration_timing(s)))
    except QualityLimitReached as e:
        return failure(str(e), "Continue with the best score so far and move on to export",
                       iterations=MAX_QUALITY_ITERATIONS)
    except NarrationMissing as e:
        return failure(str(e), "Call narrate_scenes first")

    return {
        "success": True,
        **result,
        "message": f"Timing adjusted (iteration {result['iteration']}/{MAX_QUALITY_ITERATIONS}), "
                   f"total {result['totalDuration']:.1f}s",
    }
