"""Background music generation via the Suno API"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from ..core.config import MUSIC_GENERATION_CONFIG, SUNO_API_KEY
from ..core.errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)

FAILED_STATUSES = ("FAILED", "CREATE_TASK_FAILED", "GENERATE_AUDIO_FAILED", "CALLBACK_EXCEPTION",
                   "SENSITIVE_WORD_ERROR")


class SunoMusicGenerator:
    """Submit a generation task and poll ``record-info`` until tracks are ready"""

    def __init__(self, api_key: str = SUNO_API_KEY, endpoint: str = MUSIC_GENERATION_CONFIG["endpoint"],
                 sleep=time.sleep):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.api_key:
            raise ProviderNotConfiguredError("Suno", "SUNO_API_KEY")
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        response = requests.request(method, f"{self.endpoint}/{path}", headers=headers, timeout=60, **kwargs)
        if not response.ok:
            raise ProviderError(f"Suno request failed ({response.status_code})", status_code=response.status_code,
                                body=response.text[:500], provider="suno")
        payload = response.json()
        # Suno reports API-level errors with HTTP 200 and a non-200 "code"
        code = payload.get("code", 200)
        if code != 200:
            raise ProviderError(f"Suno: {payload.get('msg') or 'request rejected'}", status_code=code, provider="suno")
        return payload.get("data") or {}

    def submit(self, prompt: str, style: str, title: Optional[str] = None, instrumental: bool = True) -> str:
        body = {
            "prompt": prompt,
            "customMode": True,
            "style": style,
            "title": title or prompt[:50] or "AI Generated Track",
            "instrumental": instrumental,
            "model": MUSIC_GENERATION_CONFIG["model"],
            "callBackUrl": "playground",
        }
        data = self._request("POST", "generate", json=body)
        task_id = data.get("taskId")
        if not task_id:
            raise ProviderError("Suno returned no taskId", provider="suno")
        logger.info(f"[Suno] Task submitted: {task_id}")
        return task_id

    def wait_for_track(self, task_id: str, max_wait_time: int = MUSIC_GENERATION_CONFIG["max_wait_time"],
                       poll_interval: int = MUSIC_GENERATION_CONFIG["check_interval"]) -> Dict[str, Any]:
        start_time = time.time()
        while time.time() - start_time < max_wait_time:
            data = self._request("GET", "generate/record-info", params={"taskId": task_id})
            status = (data.get("status") or "PENDING").upper()
            if status == "SUCCESS":
                tracks = (data.get("response") or {}).get("sunoData") or []
                if not tracks:
                    raise ProviderError("Suno finished without tracks", provider="suno")
                track = tracks[0]
                return {
                    "id": track.get("id"),
                    "title": track.get("title") or "Untitled",
                    "url": track.get("audioUrl"),
                    "duration": track.get("duration") or 0,
                    "style": track.get("tags"),
                }
            if status in FAILED_STATUSES:
                raise ProviderError(f"Suno generation failed: {data.get('errorMessage') or status}", provider="suno")
            logger.info(f"[Suno] {task_id} status {status} ({int(time.time() - start_time)}s elapsed)")
            self._sleep(poll_interval)

        raise ProviderError(f"Suno generation timed out after {max_wait_time}s", status_code=504, provider="suno")

    def generate(self, prompt: str, style: str, duration: Optional[int] = None,
                 instrumental: bool = True) -> Dict[str, Any]:
        """Generate one track; returns {"task_id", "url", "duration", "title"}"""
        if duration:
            prompt = f"{prompt} Length about {duration} seconds."
        task_id = self.submit(prompt, style, instrumental=instrumental)
        track = self.wait_for_track(task_id)
        return {"task_id": task_id, **track}
