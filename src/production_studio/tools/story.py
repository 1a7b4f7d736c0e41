"""
Screenplay mode tools

A story session (``story_{ms}``) goes breakdown -> screenplay -> characters
-> shot list. The shot list step mirrors the screenplay into a regular
content plan so the production tools (narration, visuals, export) work on
story sessions unchanged.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.config import CONTENT_PLAN_CONFIG
from ..core.context import ToolContext
from ..core.state import ContentPlan, ProductionState, Scene, create_production_state
from ..core.utils import detect_language_from_text, generate_story_id
from ..providers.sfx import suggest_ambient_track
from .base import ToolArgs, failure, load_session

logger = logging.getLogger(__name__)


class BreakdownArgs(ToolArgs):
    topic: str = Field(description="Story idea")
    genre: Optional[str] = None
    target_duration: int = Field(default=CONTENT_PLAN_CONFIG["default_duration"],
                                 ge=CONTENT_PLAN_CONFIG["min_duration"], le=CONTENT_PLAN_CONFIG["max_duration"])


class StoryArgs(ToolArgs):
    session_id: str = Field(description="The story sessionId returned by generate_breakdown")


def _story(context: ToolContext, session_id: str, *required: str):
    """Load a story session and check that the earlier steps ran"""
    state, error = load_session(context, session_id, field="sessionId")
    if error:
        return None, error
    story = state.get("story") or {}
    for key in required:
        if not story.get(key):
            step = {"breakdown": "generate_breakdown", "screenplay": "create_screenplay",
                    "characters": "generate_characters"}[key]
            return None, failure(f"No {key} found for this story", f"Run {step} first")
    return story, None


def _update_story(context: ToolContext, session_id: str, **changes):
    context.store.update(session_id, lambda s: s["story"].update(changes))


def generate_breakdown(context: ToolContext, args: BreakdownArgs) -> Dict[str, Any]:
    """Break a story idea into acts and beats and open a new story session."""
    breakdown = context.providers.story.breakdown(args.topic, args.genre, args.target_duration)
    session_id = generate_story_id()
    state = create_production_state(session_id)
    state["story"] = {
        "topic": args.topic,
        "genre": args.genre or breakdown.get("genre"),
        "target_duration": args.target_duration,
        "breakdown": breakdown,
        "screenplay": None,
        "characters": [],
        "shotlist": [],
    }
    context.store.create(session_id, state)
    acts = breakdown.get("acts") or []
    logger.info(f"[Story] Breakdown for {session_id}: {len(acts)} acts")
    return {
        "success": True,
        "sessionId": session_id,
        "title": breakdown.get("title"),
        "logline": breakdown.get("logline"),
        "actCount": len(acts),
        "message": f"Story breakdown ready. Use sessionId=\"{session_id}\" for the next steps.",
    }


def create_screenplay(context: ToolContext, args: StoryArgs) -> Dict[str, Any]:
    """Write screenplay scenes (action, dialogue, narration) from the breakdown."""
    story, error = _story(context, args.session_id, "breakdown")
    if error:
        return error
    screenplay = context.providers.story.screenplay(story["breakdown"], story["target_duration"])
    scenes = screenplay.get("scenes") or []
    if not scenes:
        return failure("The screenplay has no scenes", "Run create_screenplay again")
    _update_story(context, args.session_id, screenplay=screenplay)
    dialogue_lines = sum(len(scene.get("dialogue") or []) for scene in scenes)
    return {
        "success": True,
        "sceneCount": len(scenes),
        "dialogueLines": dialogue_lines,
        "message": f"Screenplay written: {len(scenes)} scenes",
    }


def generate_characters(context: ToolContext, args: StoryArgs) -> Dict[str, Any]:
    """Create a character sheet (role, appearance, personality) for everyone in the screenplay."""
    story, error = _story(context, args.session_id, "screenplay")
    if error:
        return error
    characters = context.providers.story.characters(story["screenplay"])
    _update_story(context, args.session_id, characters=characters)
    return {
        "success": True,
        "characterCount": len(characters),
        "characters": [c.get("name") for c in characters],
        "message": f"Created {len(characters)} character sheet(s)",
    }


def _scene_narration(scene: Dict[str, Any]) -> str:
    if scene.get("narration"):
        return scene["narration"]
    lines = [scene.get("action") or ""]
    lines.extend(f"{d.get('character')}: {d.get('line')}" for d in scene.get("dialogue") or [])
    return " ".join(line for line in lines if line)


def _appearance_notes(names: List[str], characters: List[Dict[str, Any]]) -> str:
    sheets = {c.get("name"): c for c in characters}
    notes = [f"{name} ({sheets[name]['appearance']})" for name in names if sheets.get(name, {}).get("appearance")]
    return "; ".join(notes)


def screenplay_to_content_plan(story: Dict[str, Any]) -> ContentPlan:
    """Mirror screenplay scenes and shots into a content plan"""
    screenplay_scenes = story["screenplay"].get("scenes") or []
    shots = story.get("shotlist") or []
    characters = story.get("characters") or []
    default_duration = story["target_duration"] / max(len(screenplay_scenes), 1)

    scenes: List[Scene] = []
    for i, raw in enumerate(screenplay_scenes):
        scene_shots = [shot for shot in shots if shot.get("scene_index") == i]
        description = scene_shots[0]["description"] if scene_shots else raw.get("action", "")
        names = sorted({name for shot in scene_shots for name in shot.get("characters") or []})
        appearance = _appearance_notes(names, characters)
        if appearance:
            description = f"{description} Characters: {appearance}."
        narration = _scene_narration(raw)
        scenes.append({
            "id": f"scene_{i + 1}",
            "name": raw.get("heading") or f"Scene {i + 1}",
            "duration": float(raw.get("duration") or default_duration),
            "narration_script": narration,
            "visual_description": description,
            "emotional_tone": raw.get("emotional_tone") or "neutral",
            "ambient_sfx": suggest_ambient_track(f"{raw.get('heading', '')} {description}"),
        })

    all_text = " ".join(scene["narration_script"] for scene in scenes)
    return {
        "title": (story.get("breakdown") or {}).get("title") or story.get("topic", "")[:60],
        "topic": story.get("topic", ""),
        "scenes": scenes,
        "total_duration": sum(scene["duration"] for scene in scenes),
        "target_duration": story["target_duration"],
        "language": detect_language_from_text(all_text),
        "style": "Cinematic",
    }


def generate_shotlist(context: ToolContext, args: StoryArgs) -> Dict[str, Any]:
    """Plan camera shots per screenplay scene and turn the story into a producible content plan."""
    story, error = _story(context, args.session_id, "screenplay", "characters")
    if error:
        return error
    shots = context.providers.story.shotlist(story["screenplay"], story["characters"])
    _update_story(context, args.session_id, shotlist=shots)

    plan = screenplay_to_content_plan({**story, "shotlist": shots})

    def mutate(state: ProductionState):
        state["content_plan"] = plan
        state["narration_segments"] = []
        state["visuals"] = []

    context.store.update(args.session_id, mutate)
    return {
        "success": True,
        "shotCount": len(shots),
        "sceneCount": len(plan["scenes"]),
        "totalDuration": plan["total_duration"],
        "message": f"{len(shots)} shots planned. The story is ready for narrate_scenes with "
                   f"contentPlanId=\"{args.session_id}\".",
    }
