"""
Subtitle generation from narration transcripts

Each narration segment is split into cues of at most N words. Cue timing is
proportional to word count within the segment's measured audio. Cues in
right-to-left languages are wrapped in bidi embedding marks so players
render punctuation on the correct side.
"""

import logging
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..core.config import SUBTITLE_CONFIG
from ..core.context import ToolContext
from ..core.state import ProductionState, SubtitleItem, Subtitles
from ..core.utils import detect_language_from_text
from .base import SessionArgs, failure, require_plan

logger = logging.getLogger(__name__)

RTL_LANGUAGES = ("ar", "he", "fa", "ur")

RLE = "\u202b"  # right-to-left embedding
RLM = "\u200f"  # right-to-left mark
PDF = "\u202c"  # pop directional formatting

_TIMING_LINE = re.compile(
    r"^(\d{2}):(\d{2}):(\d{2})[,.](\d{3}) --> (\d{2}):(\d{2}):(\d{2})[,.](\d{3})$"
)


class GenerateSubtitlesArgs(SessionArgs):
    language: Optional[str] = None
    format: Literal["srt", "vtt"] = SUBTITLE_CONFIG["default_format"]
    max_words_per_segment: int = Field(default=SUBTITLE_CONFIG["max_words_per_segment"], ge=1, le=20)


def is_rtl_language(language: Optional[str]) -> bool:
    return (language or "").split("-")[0].lower() in RTL_LANGUAGES


def wrap_rtl(text: str) -> str:
    return f"{RLE}{RLM}{text}{PDF}"


def strip_rtl(text: str) -> str:
    if text.startswith(RLE + RLM) and text.endswith(PDF):
        return text[2:-1]
    return text


def format_timestamp(seconds: float, subtitle_format: str = "srt") -> str:
    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3600 * 1000)
    minutes, remainder = divmod(remainder, 60 * 1000)
    secs, ms = divmod(remainder, 1000)
    separator = "," if subtitle_format == "srt" else "."
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{ms:03d}"


def build_subtitle_items(state: ProductionState, max_words: int) -> List[SubtitleItem]:
    """Split narration transcripts into timed cues"""
    items: List[SubtitleItem] = []
    offset = 0.0
    for segment in state.get("narration_segments") or []:
        duration = float(segment.get("audio_duration") or 0)
        words = (segment.get("transcript") or "").split()
        if words and duration > 0:
            per_word = duration / len(words)
            for start_word in range(0, len(words), max_words):
                chunk = words[start_word:start_word + max_words]
                start = offset + start_word * per_word
                items.append({
                    "id": len(items) + 1,
                    "start": start,
                    "end": start + len(chunk) * per_word,
                    "text": " ".join(chunk),
                })
        offset += duration
    return items


def serialize_subtitles(items: List[SubtitleItem], subtitle_format: str = "srt",
                        language: Optional[str] = None) -> str:
    rtl = is_rtl_language(language)
    blocks = []
    for item in items:
        text = wrap_rtl(item["text"]) if rtl else item["text"]
        timing = f"{format_timestamp(item['start'], subtitle_format)} --> {format_timestamp(item['end'], subtitle_format)}"
        blocks.append(f"{item['id']}\n{timing}\n{text}")
    body = "\n\n".join(blocks) + "\n" if blocks else ""
    return f"WEBVTT\n\n{body}" if subtitle_format == "vtt" else body


def _seconds(hours: str, minutes: str, secs: str, ms: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + int(secs) + int(ms) / 1000


def parse_subtitles(content: str) -> List[SubtitleItem]:
    """Parse SRT or VTT text back into cues (bidi marks removed)"""
    text = content
    if text.startswith("WEBVTT"):
        text = text.split("\n\n", 1)[1] if "\n\n" in text else ""

    items: List[SubtitleItem] = []
    for block in text.strip("\n").split("\n\n"):
        lines = block.split("\n")
        if len(lines) < 3:
            continue
        match = _TIMING_LINE.match(lines[1])
        if not match:
            continue
        groups = match.groups()
        items.append({
            "id": int(lines[0]),
            "start": _seconds(*groups[:4]),
            "end": _seconds(*groups[4:]),
            "text": strip_rtl("\n".join(lines[2:])),
        })
    return items


def generate_subtitles(context: ToolContext, args: GenerateSubtitlesArgs) -> Dict[str, Any]:
    """Create SRT or VTT subtitles from the narration (right-to-left languages supported)."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    if not state.get("narration_segments"):
        return failure("No narration found for this session", "Run narrate_scenes first")

    transcript_text = " ".join(s.get("transcript") or "" for s in state["narration_segments"])
    language = args.language or state["content_plan"].get("language") or detect_language_from_text(transcript_text)

    items = build_subtitle_items(state, args.max_words_per_segment)
    if not items:
        return failure("Narration has no transcript text to subtitle")
    content = serialize_subtitles(items, args.format, language)
    parsed = parse_subtitles(content)
    rtl = is_rtl_language(language)

    subtitles: Subtitles = {
        "format": args.format,
        "content": content,
        "language": language,
        "segment_count": len(parsed),
        "is_rtl": rtl,
        "items": parsed,
    }
    context.store.update(args.content_plan_id, lambda s: s.update({"subtitles": subtitles}))
    total_duration = parsed[-1]["end"]
    return {
        "success": True,
        "format": args.format,
        "language": language,
        "segmentCount": len(parsed),
        "isRTL": rtl,
        "totalDuration": round(total_duration, 3),
        "message": f"Generated {len(parsed)} {args.format.upper()} cues in {language}",
    }
