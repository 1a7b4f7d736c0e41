"""
YouTube / X audio import

Audio extraction runs in a separate media service (yt-dlp behind an HTTP
endpoint); this client only posts the URL and receives the mp3 bytes.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ..core.config import MEDIA_IMPORT_ENDPOINT, MEDIA_IMPORT_TIMEOUT
from ..core.errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)

ALLOWED_HOSTS = (
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "youtu.be",
    "x.com",
    "www.x.com",
    "twitter.com",
    "www.twitter.com",
    "mobile.twitter.com",
)

_VIDEO_ID_PATTERN = re.compile(r"(?:v=|youtu\.be/|shorts/|embed/|live/)([A-Za-z0-9_-]{11})")


def is_supported_url(url: Optional[str]) -> bool:
    """True for http(s) URLs on the YouTube / X host whitelist"""
    if not url:
        return False
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https"):
        return False
    return (parsed.hostname or "").lower() in ALLOWED_HOSTS


def extract_video_id(url: str) -> Optional[str]:
    match = _VIDEO_ID_PATTERN.search(url or "")
    return match.group(1) if match else None


class MediaImporter:
    """Client for the audio extraction service"""

    def __init__(self, endpoint: str = MEDIA_IMPORT_ENDPOINT, timeout: float = MEDIA_IMPORT_TIMEOUT):
        self.endpoint = (endpoint or "").rstrip("/")
        self.timeout = timeout

    def fetch_audio(self, url: str) -> Dict[str, Any]:
        """Download the audio track of a video

        Returns:
            {"audio": bytes, "mime_type": str, "source": "youtube" | "x", "title": str | None}

        Raises:
            ProviderError: Service failure or empty download
        """
        if not self.endpoint:
            raise ProviderNotConfiguredError("Media import service", "MEDIA_IMPORT_ENDPOINT")

        logger.info(f"[MediaImport] Importing {url}")
        response = requests.post(f"{self.endpoint}/api/import/youtube", json={"url": url}, timeout=self.timeout)
        if not response.ok:
            message = f"Failed to import media (HTTP {response.status_code})"
            try:
                message = response.json().get("error") or message
            except ValueError:
                pass
            raise ProviderError(message, status_code=response.status_code, body=response.text[:500],
                                provider="media-import")

        audio = response.content
        if not audio:
            raise ProviderError("Downloaded audio is empty", provider="media-import")

        host = (urlparse(url).hostname or "").lower()
        source = "x" if host.endswith(("x.com", "twitter.com")) else "youtube"
        video_id = extract_video_id(url)
        logger.info(f"[MediaImport] Received {len(audio) / 1024:.0f} KB of audio from {source}")
        return {
            "audio": audio,
            "mime_type": response.headers.get("Content-Type", "audio/mpeg").split(";")[0],
            "source": source,
            "title": f"YouTube Video {video_id}" if video_id else None,
        }
