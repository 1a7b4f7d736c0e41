"""
Shared helpers for the production agents
"""

import json
import logging
import re
from typing import Any, Dict

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*(?:```)?$", re.DOTALL)


def format_time(seconds: float) -> str:
    """Format a duration as ``1m 5.0s`` / ``5.0s``"""
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.1f}s" if minutes else f"{rest:.1f}s"


def clean_json_response(response_text: str) -> str:
    """
    Strip a markdown code fence around model JSON and drop surplus trailing
    closing braces (at most 3).

    Args:
        response_text: Raw model text

    Returns:
        Text ready for json.loads
    """
    text = response_text.strip()
    match = _FENCE.match(text)
    if match:
        text = match.group(1)

    for _ in range(3):
        if text.count("}") > text.count("{") and text.endswith("}"):
            text = text[:-1].rstrip()
        else:
            break
    return text


def parse_tool_payload(raw: Any) -> Dict[str, Any]:
    """Normalize a tool return value into a payload dict with a ``success`` flag"""
    if isinstance(raw, dict):
        payload = raw
    elif isinstance(raw, str):
        try:
            payload = json.loads(clean_json_response(raw))
        except json.JSONDecodeError:
            payload = {"success": True, "message": raw}
        if not isinstance(payload, dict):
            payload = {"success": True, "result": payload}
    elif raw is None:
        payload = {"success": True}
    else:
        payload = {"success": True, "result": raw}
    payload.setdefault("success", True)
    return payload


def dump_payload(payload: Dict[str, Any]) -> str:
    """Serialize a payload for a ToolMessage"""
    return json.dumps(payload, default=str, ensure_ascii=False)
