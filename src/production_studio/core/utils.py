"""Session id helpers and text utilities shared by tools"""

import random
import re
import string
import time
from typing import Optional

PRODUCTION_SESSION_PATTERN = re.compile(r"^prod_[0-9]+_[a-z0-9]{5,12}$")
STORY_SESSION_PATTERN = re.compile(r"^story_[0-9]+$")
IMPORT_SESSION_PATTERN = re.compile(r"^import_[0-9]+_[a-z0-9]{5,12}$")

SESSION_PATTERNS = (PRODUCTION_SESSION_PATTERN, STORY_SESSION_PATTERN, IMPORT_SESSION_PATTERN)

# Shapes LLM callers invent when they lose track of the real id
PLACEHOLDER_PATTERN = re.compile(
    r"^(plan_\d+|cp_\d+|session_\w+|plan_\w{3,8}|cp_\w{3,8}|content_?plan_?id|<.*>|\{.*\}|your_.*|sessionid)$",
    re.IGNORECASE
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def generate_session_id(prefix: str = "prod") -> str:
    """Generate a production or import session id: ``{prefix}_{ms}_{9 base36 chars}``"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{_timestamp_ms()}_{suffix}"


def generate_story_id() -> str:
    return f"story_{_timestamp_ms()}"


def is_valid_session_id(value: Optional[str]) -> bool:
    """True when value has one of the generated session id shapes"""
    if not value or not isinstance(value, str):
        return False
    if PLACEHOLDER_PATTERN.match(value):
        return False
    return any(pattern.match(value) for pattern in SESSION_PATTERNS)


def validate_session_id(value: Optional[str], field: str = "contentPlanId") -> Optional[str]:
    """Return an error message for a bad session id, or None when it is usable"""
    if not value:
        return (f"Missing {field}. You must provide the sessionId returned by "
                f"plan_video, generate_breakdown or import_youtube_content.")
    if PLACEHOLDER_PATTERN.match(value):
        return (f"Invalid {field}: \"{value}\". You must use the ACTUAL sessionId returned by "
                f"plan_video or generate_breakdown. Never use placeholder values.")
    if not is_valid_session_id(value):
        return (f"Invalid {field} format: \"{value}\". Expected prod_TIMESTAMP_HASH, story_TIMESTAMP "
                f"or import_TIMESTAMP_HASH. Make sure you are using the exact sessionId returned by plan_video.")
    return None


# Unicode script ranges checked by detect_language_from_text, in priority order
_SCRIPT_RANGES = (
    ("ar", ((0x0600, 0x06FF), (0x0750, 0x077F))),
    ("he", ((0x0590, 0x05FF),)),
    ("zh", ((0x4E00, 0x9FFF),)),
    ("ja", ((0x3040, 0x30FF),)),
    ("ko", ((0xAC00, 0xD7AF),)),
    ("ru", ((0x0400, 0x04FF),)),
    ("el", ((0x0370, 0x03FF),)),
    ("latin", ((0x0041, 0x005A), (0x0061, 0x007A), (0x00C0, 0x024F))),
)


def detect_language_from_text(text: Optional[str]) -> str:
    """Guess an ISO language code from the dominant Unicode script

    A script wins when it covers more than 20% of the alphabetic characters
    and is at least as frequent as every other script. Latin or mixed text
    falls back to English.
    """
    if not text or not text.strip():
        return "en"

    counts = {code: 0 for code, _ in _SCRIPT_RANGES}
    total = 0
    for char in text:
        point = ord(char)
        for code, ranges in _SCRIPT_RANGES:
            if any(low <= point <= high for low, high in ranges):
                counts[code] += 1
                total += 1
                break

    threshold = total * 0.2
    for code, _ in _SCRIPT_RANGES:
        if code == "latin":
            continue
        count = counts[code]
        if count > threshold and count >= max(v for k, v in counts.items() if k != code):
            return code
    return "en"


def truncate(text: Optional[str], limit: int = 200) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit].rstrip() + "..."
