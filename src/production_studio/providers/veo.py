"""
Google Veo video generation using google-genai SDK
"""

import logging
import time
from typing import Any, Dict, Optional

from google import genai
from google.genai import types
from google.genai.types import GenerateVideosConfig, Image

from ..core.config import BUCKET_NAME, DEPLOYMENT_ENV, GOOGLE_VEO_CONFIG, LOCATION, PROJECT_ID, get_google_credentials
from ..core.errors import ProviderError

logger = logging.getLogger(__name__)


def _mime_for(uri: str) -> str:
    return "image/png" if uri.endswith(".png") else "image/jpeg"


class VeoVideoGenerator:
    """Text-to-video and image-to-video clips via Veo on Vertex AI"""

    def __init__(self, project_id: Optional[str] = None, location: str = LOCATION,
                 sleep=time.sleep):
        self.project_id = project_id or PROJECT_ID
        self.location = location
        self._client = None
        self._sleep = sleep

    @property
    def client(self) -> genai.Client:
        """Lazy client initialization"""
        if self._client is None:
            self._client = genai.Client(
                vertexai=True,
                project=self.project_id,
                location=self.location,
                credentials=get_google_credentials()
            )
        return self._client

    def submit(self, prompt: str, model: str, aspect_ratio: str = "16:9", duration_seconds: int = 8,
               image_uri: Optional[str] = None, session_id: str = "") -> str:
        """
        Submit a generation task

        Args:
            prompt: Video prompt describing subject and motion
            model: Veo model name
            aspect_ratio: "16:9" or "9:16"
            duration_seconds: One of GOOGLE_VEO_CONFIG["durations"]
            image_uri: Optional gs:// start frame (image-to-video)
            session_id: Used for the output GCS prefix

        Returns:
            Operation name to poll
        """
        config_params = {"aspect_ratio": aspect_ratio, "duration_seconds": duration_seconds}
        if BUCKET_NAME:
            environment = DEPLOYMENT_ENV.lower() if DEPLOYMENT_ENV else "local"
            config_params["output_gcs_uri"] = f"gs://{BUCKET_NAME}/{environment}/sessions/{session_id}/videos/"

        request_params = {"model": model, "prompt": prompt, "config": GenerateVideosConfig(**config_params)}
        if image_uri:
            request_params["image"] = Image(gcs_uri=image_uri, mime_type=_mime_for(image_uri))

        logger.info(f"[GoogleVeo] Submitting {model} ({aspect_ratio}, {duration_seconds}s): {prompt[:120]}...")
        operation = self.client.models.generate_videos(**request_params)
        logger.info(f"[GoogleVeo] Task submitted: {operation.name}")
        return operation.name

    def query_task(self, operation_name: str) -> Dict[str, Any]:
        """
        Query task status

        Returns:
            Dict with task_status ("processing", "succeed", "failed") and video_url when done
        """
        operation = self.client.operations.get(types.GenerateVideosOperation(name=operation_name))
        if not operation.done:
            return {"task_status": "processing"}

        if operation.response:
            videos = operation.result.generated_videos
            if videos:
                return {"task_status": "succeed", "video_url": videos[0].video.uri}
            return {"task_status": "failed", "message": "No videos in result"}

        message = str(operation.error) if operation.error else "Unknown error"
        return {"task_status": "failed", "message": message}

    def wait_for_completion(self, operation_name: str,
                            max_wait_time: int = GOOGLE_VEO_CONFIG["max_wait_time"],
                            poll_interval: int = GOOGLE_VEO_CONFIG["check_interval"]) -> str:
        """Poll until the clip is ready and return its URL

        Raises:
            ProviderError: On failure or timeout (timeouts are retryable)
        """
        start_time = time.time()
        while time.time() - start_time < max_wait_time:
            result = self.query_task(operation_name)
            status = result["task_status"]
            if status == "succeed":
                logger.info(f"[GoogleVeo] Task completed: {result['video_url']}")
                return result["video_url"]
            if status == "failed":
                raise ProviderError(f"Veo generation failed: {result.get('message')}", provider="veo")
            logger.info(f"[GoogleVeo] Waiting... ({int(time.time() - start_time)}s elapsed)")
            self._sleep(poll_interval)

        raise ProviderError(f"Veo generation timed out after {max_wait_time}s", status_code=504, provider="veo")

    def generate_video(self, prompt: str, aspect_ratio: str = "16:9", duration_seconds: int = 8,
                       use_fast_model: bool = False, image_uri: Optional[str] = None,
                       session_id: str = "") -> str:
        """Submit and wait; returns the video URL"""
        model = GOOGLE_VEO_CONFIG["fast_model"] if use_fast_model else GOOGLE_VEO_CONFIG["default_model"]
        operation_name = self.submit(prompt, model, aspect_ratio, duration_seconds, image_uri, session_id)
        return self.wait_for_completion(operation_name)
