"""Enhancement tools: image edits and character consistency checks"""

import logging
from typing import Any, Dict, Optional

from pydantic import Field

from ..core.context import ToolContext
from ..core.state import ProductionState
from .base import SceneArgs, ToolArgs, failure, load_session, require_plan

logger = logging.getLogger(__name__)


class RestyleImageArgs(SceneArgs):
    style: str = Field(description="Target style, e.g. Watercolor, Anime, Noir")


class ConsistencyArgs(ToolArgs):
    session_id: str = Field(description="The story sessionId")
    character_name: Optional[str] = Field(default=None, description="Check a single character only")


def _editable_image(state: ProductionState, index: int):
    visuals = state.get("visuals") or []
    if index >= len(visuals) or not visuals[index].get("url") or visuals[index].get("is_placeholder"):
        return None, failure(f"Scene {index + 1} has no image to edit", "Run generate_visuals first")
    if visuals[index].get("type") == "video":
        return None, failure(f"Scene {index + 1} is a video clip, not an image",
                             "Image edits only apply to still images")
    return visuals[index], None


def _replace_image(context: ToolContext, session_id: str, index: int, new_url: str, edit: str) -> str:
    original = {}

    def mutate(state: ProductionState):
        visual = state["visuals"][index]
        original["url"] = visual.get("original_url") or visual["url"]
        visual["original_url"] = original["url"]
        visual["url"] = new_url
        visual.setdefault("edits", []).append(edit)

    context.store.update(session_id, mutate)
    return original["url"]


def remove_background(context: ToolContext, args: SceneArgs) -> Dict[str, Any]:
    """Remove the background from a scene image, keeping the main subject."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    visual, error = _editable_image(state, args.scene_index)
    if error:
        return error

    new_url = context.providers.images.remove_background(visual["url"], session_id=args.content_plan_id)
    original_url = _replace_image(context, args.content_plan_id, args.scene_index, new_url, "remove_background")
    return {
        "success": True,
        "sceneIndex": args.scene_index,
        "imageUrl": new_url,
        "originalUrl": original_url,
        "message": f"Background removed for scene {args.scene_index + 1}",
    }


def restyle_image(context: ToolContext, args: RestyleImageArgs) -> Dict[str, Any]:
    """Redraw a scene image in another visual style with the same composition."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    visual, error = _editable_image(state, args.scene_index)
    if error:
        return error

    new_url = context.providers.images.restyle(visual["url"], args.style, session_id=args.content_plan_id)
    original_url = _replace_image(context, args.content_plan_id, args.scene_index, new_url,
                                  f"restyle:{args.style}")
    return {
        "success": True,
        "sceneIndex": args.scene_index,
        "imageUrl": new_url,
        "originalUrl": original_url,
        "style": args.style,
        "message": f"Scene {args.scene_index + 1} restyled as {args.style}",
    }


def verify_character_consistency(context: ToolContext, args: ConsistencyArgs) -> Dict[str, Any]:
    """Check that each character is described consistently across the shot list."""
    state, error = load_session(context, args.session_id, field="sessionId")
    if error:
        return error
    story = state.get("story") or {}
    characters = story.get("characters") or []
    if not characters:
        return failure("No characters found for this session", "Run generate_characters first")
    if args.character_name and args.character_name not in [c.get("name") for c in characters]:
        return failure(f"Unknown character: {args.character_name}",
                       f"Known characters: {', '.join(c.get('name', '') for c in characters)}")

    reports = context.providers.story.check_consistency(characters, story.get("shotlist") or [],
                                                        args.character_name)
    context.store.update(args.session_id, lambda s: s["story"].update({"consistency": reports}))

    consistent = [r for r in reports if r.get("consistent")]
    average = round(sum(r.get("score", 0) for r in reports) / len(reports)) if reports else 0
    return {
        "success": True,
        "reports": reports,
        "consistentCount": len(consistent),
        "checkedCount": len(reports),
        "averageScore": average,
        "message": f"{len(consistent)}/{len(reports)} character(s) consistent (average score {average})",
    }
