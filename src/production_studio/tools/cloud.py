"""
Cloud upload of a finished production

Layout under ``{env}/productions/{folder}/``::

    final-video.mp4
    narration.wav
    mixed-audio.wav
    visuals/scene-1.png
    subtitles.srt / subtitles.vtt
    production.log
    metadata.json
"""

import json
import logging
import os
import time
from typing import Any, Dict, List, Tuple

import requests

from ..core.config import SUBTITLE_CONFIG
from ..core.context import ToolContext
from ..core.errors import ProductionError, ProviderNotConfiguredError
from ..core.state import ProductionState
from ..storage.gcs_utils import download_to_bytes
from .audio_mixing import session_narration
from .base import SessionArgs, failure, load_session
from .subtitles import build_subtitle_items, serialize_subtitles

logger = logging.getLogger(__name__)

EXTENSIONS = {"image": "png", "video": "mp4"}


class UploadArgs(SessionArgs):
    make_public: bool = False
    include_narration_audio: bool = True
    include_mixed_audio: bool = True
    include_visuals: bool = True
    include_subtitles: bool = True


def _read_asset(url: str) -> bytes:
    if os.path.isfile(url):
        with open(url, "rb") as f:
            return f.read()
    return download_to_bytes(url)


def _subtitle_files(state: ProductionState) -> List[Tuple[str, str]]:
    subtitles = state.get("subtitles")
    if subtitles and subtitles.get("content"):
        return [(f"subtitles.{subtitles['format']}", subtitles["content"])]
    language = (state.get("content_plan") or {}).get("language")
    items = build_subtitle_items(state, SUBTITLE_CONFIG["max_words_per_segment"])
    if not items:
        return []
    return [(f"subtitles.{fmt}", serialize_subtitles(items, fmt, language)) for fmt in ("srt", "vtt")]


def _collect_files(state: ProductionState, args: UploadArgs, logs: List[str]) -> List[Tuple[str, bytes, str]]:
    """(filename, data, content_type) for everything selected"""
    files: List[Tuple[str, bytes, str]] = []

    export = state.get("export_result") or {}
    if export.get("video"):
        files.append((f"final-video.{export['format']}", export["video"], f"video/{export['format']}"))
        logs.append(f"Video ready ({export.get('file_size_mb')} MB)")
    else:
        logs.append("No exported video found; run export_final_video first")

    if args.include_narration_audio:
        narration = session_narration(state)
        if narration:
            files.append(("narration.wav", narration, "audio/wav"))
            logs.append(f"Narration audio ready ({len(state['narration_segments'])} segments)")

    mixed = state.get("mixed_audio") or {}
    if args.include_mixed_audio and mixed.get("audio"):
        files.append(("mixed-audio.wav", mixed["audio"], "audio/wav"))
        logs.append("Mixed audio ready")

    if args.include_visuals:
        visuals = [(i, v) for i, v in enumerate(state.get("visuals") or [])
                   if v.get("url") and not v.get("is_placeholder")]
        fetched = 0
        for i, visual in visuals:
            url = visual.get("video_url") or visual["url"]
            kind = "video" if visual.get("video_url") or visual.get("type") == "video" else "image"
            try:
                data = _read_asset(url)
            except (requests.RequestException, OSError, ProductionError) as e:
                logs.append(f"Could not fetch visual for scene {i + 1}: {e}")
                continue
            files.append((f"visuals/scene-{i + 1}.{EXTENSIONS[kind]}", data, f"{kind}/{EXTENSIONS[kind]}"))
            fetched += 1
        logs.append(f"{fetched}/{len(visuals)} visuals ready")

    if args.include_subtitles:
        for filename, content in _subtitle_files(state):
            files.append((filename, content.encode("utf-8"), "text/plain; charset=utf-8"))
        logs.append("Subtitles ready")

    return files


def upload_production_to_cloud(context: ToolContext, args: UploadArgs) -> Dict[str, Any]:
    """Upload the exported video and its assets (audio, visuals, subtitles, metadata) to Cloud Storage."""
    state, error = load_session(context, args.content_plan_id)
    if error:
        return error

    plan = state.get("content_plan") or {}
    folder_name = f"{args.content_plan_id}_{int(time.time())}"
    logs = [f"Production upload started at {time.strftime('%Y-%m-%dT%H:%M:%S')}"]
    files = _collect_files(state, args, logs)
    metadata = {
        "productionId": args.content_plan_id,
        "topic": plan.get("topic") or "Unknown",
        "language": plan.get("language") or "en",
        "sceneCount": len(plan.get("scenes") or []),
        "duration": sum(s.get("audio_duration") or 0 for s in state.get("narration_segments") or []),
    }
    files.append(("metadata.json", json.dumps(metadata, indent=2).encode("utf-8"), "application/json"))
    files.append(("production.log", "\n".join(logs).encode("utf-8"), "text/plain"))

    uploaded: List[str] = []
    public_urls: Dict[str, str] = {}
    errors: List[str] = []
    total_bytes = 0
    for filename, data, content_type in files:
        try:
            gs_path, public_url = context.providers.assets.upload_production(
                data, folder_name, filename, content_type=content_type, make_public=args.make_public
            )
        except ProviderNotConfiguredError:
            raise
        except Exception as e:
            logger.error(f"[CloudUpload] {filename} failed: {e}")
            errors.append(f"{filename}: {e}")
            continue
        uploaded.append(gs_path)
        total_bytes += len(data)
        if public_url:
            public_urls[filename] = public_url

    if not uploaded:
        return failure("No files could be uploaded", "Check the bucket configuration and credentials",
                       errors=errors)

    bucket_path = uploaded[0].split(f"/{folder_name}/")[0] + f"/{folder_name}"
    total_size_mb = round(total_bytes / (1024 * 1024), 2)
    cloud_upload = {
        "folder_name": folder_name,
        "bucket_path": bucket_path,
        "files": uploaded,
        "public_urls": public_urls,
        "uploaded_at": time.time(),
    }
    context.store.update(args.content_plan_id, lambda s: s.update({"cloud_upload": cloud_upload}))

    payload = {
        "success": True,
        "folderName": folder_name,
        "bucketPath": bucket_path,
        "filesUploaded": len(uploaded),
        "totalFiles": len(files),
        "totalSizeMB": total_size_mb,
        "message": f"Uploaded {len(uploaded)}/{len(files)} files ({total_size_mb}MB) to {bucket_path}",
    }
    if args.make_public:
        payload["publicUrls"] = public_urls
    if errors:
        payload["errors"] = errors
    return payload
