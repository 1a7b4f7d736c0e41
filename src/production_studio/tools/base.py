"""Shared argument models and payload helpers for production tools"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.context import ToolContext
from ..core.state import ProductionState
from ..core.utils import validate_session_id


class ToolArgs(BaseModel):
    """Tool arguments arrive camelCase from the LLM; Python code reads snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionArgs(ToolArgs):
    content_plan_id: str = Field(description="The sessionId returned by plan_video (e.g. prod_1712345678901_ab12cd34e)")


class SceneArgs(SessionArgs):
    scene_index: int = Field(ge=0, description="0-based scene index")


def failure(error: str, suggestion: Optional[str] = None, **extra) -> Dict[str, Any]:
    """In-band failure payload"""
    payload = {"success": False, "error": error}
    if suggestion:
        payload["suggestion"] = suggestion
    payload.update(extra)
    return payload


def load_session(context: ToolContext, session_id: str,
                 field: str = "contentPlanId") -> Tuple[Optional[ProductionState], Optional[Dict[str, Any]]]:
    """Resolve a session for a tool call

    Returns:
        (state, None) when usable, else (None, failure payload)
    """
    problem = validate_session_id(session_id, field)
    if problem:
        return None, failure(problem, "Use the sessionId from the plan_video result")
    state = context.store.get(session_id)
    if state is None:
        return None, failure(f"Session not found: {session_id}",
                             "Run plan_video first, then pass its sessionId")
    return state, None


def require_plan(context: ToolContext, session_id: str) -> Tuple[Optional[ProductionState], Optional[Dict[str, Any]]]:
    """Like load_session but also insists on a content plan with scenes"""
    state, error = load_session(context, session_id)
    if error:
        return None, error
    if not state.get("content_plan") or not state["content_plan"].get("scenes"):
        return None, failure("No content plan found for this session", "Run plan_video first")
    return state, None
