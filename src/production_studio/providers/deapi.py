"""
DeAPI image-to-video client

The img2video endpoint sits behind Cloudflare bot protection and may answer
server-side requests with a challenge page instead of JSON. Those answers
raise CloudflareBlockedError so the recovery harness can switch provider.
"""

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from ..core.config import DEAPI_API_KEY, DEAPI_CONFIG
from ..core.errors import CloudflareBlockedError, ProviderError, ProviderNotConfiguredError
from ..storage.gcs_utils import download_to_bytes

logger = logging.getLogger(__name__)

CLOUDFLARE_BODY_MARKERS = ("Just a moment", "challenge-platform", "_cf_chl", "cf-browser-verification")

RESOLUTIONS = {
    "16:9": (768, 432),
    "9:16": (432, 768),
    "1:1": (512, 512),
}

_HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) ProductionStudio/1.0"}


def looks_like_cloudflare(body: str) -> bool:
    return any(marker in (body or "") for marker in CLOUDFLARE_BODY_MARKERS)


class DeApiAnimator:
    """Animate a still image into a short clip"""

    def __init__(self, api_key: str = DEAPI_API_KEY, endpoint: str = DEAPI_CONFIG["endpoint"],
                 sleep=time.sleep):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ProviderNotConfiguredError("DeAPI", "DEAPI_API_KEY")
        return {**_HEADERS, "Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    def _raise_for_response(self, response: requests.Response):
        if response.ok:
            return
        body = response.text
        if looks_like_cloudflare(body):
            raise CloudflareBlockedError(
                "DeAPI img2video blocked by Cloudflare bot protection",
                status_code=response.status_code, body=body[:500], provider="deapi"
            )
        message = f"DeAPI request failed ({response.status_code})"
        try:
            payload = response.json()
            message = f"DeAPI: {payload.get('message') or payload.get('error') or message}"
        except ValueError:
            if body:
                message = f"DeAPI request failed ({response.status_code}): {body[:200]}"
        raise ProviderError(message, status_code=response.status_code, body=body[:500], provider="deapi")

    @staticmethod
    def _unwrap(payload: Dict[str, Any]) -> Dict[str, Any]:
        # Responses come either flat or nested under "data"
        return payload.get("data") or payload

    def submit(self, image: bytes, prompt: str, aspect_ratio: str = "16:9") -> Tuple[Optional[str], Optional[str]]:
        """Submit an img2video request; returns (result_url, request_id)"""
        width, height = RESOLUTIONS.get(aspect_ratio, RESOLUTIONS["16:9"])
        form = {
            "prompt": prompt,
            "frames": str(DEAPI_CONFIG["frames"]),
            "width": str(width),
            "height": str(height),
            "fps": str(DEAPI_CONFIG["fps"]),
            "model": DEAPI_CONFIG["model"],
            "guidance": "3",
            "steps": "1",
            "seed": "-1",
        }
        files = {"first_frame_image": ("frame0.png", image, "image/png")}
        logger.info(f"[DeAPI] Submitting img2video {width}x{height}: {prompt[:60]}...")
        response = requests.post(f"{self.endpoint}/img2video", headers=self._headers(), data=form,
                                 files=files, timeout=60)
        self._raise_for_response(response)

        data = self._unwrap(response.json())
        if data.get("status") == "error":
            raise ProviderError(data.get("error") or "Generation failed at provider", provider="deapi")
        if not data.get("result_url") and not data.get("request_id"):
            raise ProviderError("No request_id or result_url received from DeAPI", provider="deapi")
        return data.get("result_url"), data.get("request_id")

    def poll(self, request_id: str, max_wait_time: int = DEAPI_CONFIG["max_wait_time"],
             poll_interval: int = DEAPI_CONFIG["check_interval"]) -> str:
        start_time = time.time()
        while time.time() - start_time < max_wait_time:
            response = requests.get(f"{self.endpoint}/request-status/{request_id}", headers=self._headers(),
                                    timeout=30)
            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"[DeAPI] Polling got {response.status_code}, backing off")
                self._sleep(poll_interval * 2)
                continue
            self._raise_for_response(response)

            data = self._unwrap(response.json())
            if data.get("status") == "done" and data.get("result_url"):
                return data["result_url"]
            if data.get("status") == "error":
                raise ProviderError(data.get("error") or "Generation failed at provider", provider="deapi")
            self._sleep(poll_interval)

        raise ProviderError(f"DeAPI generation timed out after {max_wait_time}s", status_code=504, provider="deapi")

    def animate(self, image_url: str, prompt: str, aspect_ratio: str = "16:9") -> str:
        """Animate the image at ``image_url``; returns the video URL"""
        image = download_to_bytes(image_url)
        result_url, request_id = self.submit(image, prompt, aspect_ratio)
        if result_url:
            return result_url
        return self.poll(request_id)
