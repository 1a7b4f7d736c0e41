"""
Import tools: YouTube / X audio and local audio files

Both paths end in an ``import_`` session whose ``imported_content`` holds the
audio bytes and a timed transcript. The transcript then seeds ``plan_video``.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.context import ToolContext
from ..core.session_store import SessionStore
from ..core.state import create_production_state
from ..core.utils import generate_session_id, truncate
from ..providers.media_import import is_supported_url
from .base import SessionArgs, ToolArgs, failure, load_session

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".webm": "audio/webm",
    ".aac": "audio/aac",
}


class ImportYouTubeArgs(ToolArgs):
    url: str = Field(description="YouTube (youtube.com, youtu.be) or X (x.com, twitter.com) video URL")


class TranscribeAudioArgs(SessionArgs):
    language: Optional[str] = Field(default=None, description="ISO language hint; detected when omitted")


def _transcript(result: Dict[str, Any]) -> Dict[str, Any]:
    segments: List[Dict[str, Any]] = [
        {"text": s.get("text", "").strip(), "start": float(s.get("start") or 0), "end": float(s.get("end") or 0)}
        for s in result.get("segments") or []
    ]
    return {
        "language": result.get("language") or "en",
        "segments": segments,
        "text": " ".join(s["text"] for s in segments if s["text"]),
    }


def _transcript_duration(transcript: Dict[str, Any]) -> float:
    segments = transcript.get("segments") or []
    return segments[-1]["end"] if segments else 0.0


def register_audio_file(store: SessionStore, path: str) -> str:
    """Load a local audio file into a new import session and return its id

    Raises:
        ValueError: Unsupported extension
        OSError: File cannot be read
    """
    extension = os.path.splitext(path)[1].lower()
    if extension not in AUDIO_MIME_TYPES:
        raise ValueError(f"Unsupported audio format: {extension or path}. "
                         f"Supported: {', '.join(sorted(AUDIO_MIME_TYPES))}")
    with open(path, "rb") as f:
        audio = f.read()

    session_id = generate_session_id("import")
    state = create_production_state(session_id)
    state["imported_content"] = {
        "source": "file",
        "source_url": path,
        "audio": audio,
        "mime_type": AUDIO_MIME_TYPES[extension],
        "transcript": None,
        "duration": 0.0,
        "metadata": {"title": os.path.basename(path)},
    }
    store.create(session_id, state)
    logger.info(f"[Import] Registered {path} ({len(audio) / 1024:.0f} KB) as {session_id}")
    return session_id


def import_youtube_content(context: ToolContext, args: ImportYouTubeArgs) -> Dict[str, Any]:
    """Import audio from a YouTube or X (Twitter) video and transcribe it. Returns a sessionId."""
    if not is_supported_url(args.url):
        return failure("Invalid YouTube/X URL",
                       "Provide a youtube.com, youtu.be, x.com or twitter.com video URL")

    media = context.providers.importer.fetch_audio(args.url)
    transcript = _transcript(context.providers.transcriber.transcribe(media["audio"], media["mime_type"]))
    duration = _transcript_duration(transcript)

    session_id = generate_session_id("import")
    state = create_production_state(session_id)
    state["imported_content"] = {
        "source": media["source"],
        "source_url": args.url,
        "audio": media["audio"],
        "mime_type": media["mime_type"],
        "transcript": transcript,
        "duration": duration,
        "metadata": {"title": media.get("title")},
    }
    context.store.create(session_id, state)
    return {
        "success": True,
        "sessionId": session_id,
        "source": media["source"],
        "sourceUrl": args.url,
        "duration": duration,
        "transcriptSegments": len(transcript["segments"]),
        "transcriptPreview": truncate(transcript["text"], 200),
        "message": f"Imported audio from {media['source']} ({duration:.0f}s, {len(transcript['segments'])} segments). "
                   f"Use the transcript as the topic for plan_video.",
    }


def transcribe_audio_file(context: ToolContext, args: TranscribeAudioArgs) -> Dict[str, Any]:
    """Transcribe the audio of an import session with timed segments."""
    state, error = load_session(context, args.content_plan_id)
    if error:
        return error
    imported = state.get("imported_content")
    if not imported or not imported.get("audio"):
        return failure("No imported audio found for this session",
                       "Import content first with import_youtube_content")

    transcript = imported.get("transcript")
    if transcript and transcript.get("segments"):
        message = f"Transcript already exists ({len(transcript['segments'])} segments)"
    else:
        result = context.providers.transcriber.transcribe(imported["audio"], imported["mime_type"], args.language)
        transcript = _transcript(result)
        duration = _transcript_duration(transcript)

        def mutate(s):
            s["imported_content"]["transcript"] = transcript
            s["imported_content"]["duration"] = duration

        context.store.update(args.content_plan_id, mutate)
        message = f"Transcribed audio with {len(transcript['segments'])} segments (~{duration:.0f}s)"

    return {
        "success": True,
        "sessionId": args.content_plan_id,
        "segmentCount": len(transcript["segments"]),
        "language": transcript["language"],
        "duration": _transcript_duration(transcript),
        "transcriptPreview": truncate(transcript["text"], 200),
        "message": message + ". Use the transcript as the topic for plan_video.",
    }
