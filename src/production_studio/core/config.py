"""Configuration and setup for the production studio"""

import os
import json
from dotenv import load_dotenv
from google.oauth2 import service_account

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# GCP Configuration
PROJECT_ID = os.getenv('GCP_PROJECT_ID')
LOCATION = os.getenv('GOOGLE_CLOUD_REGION', 'us-central1')

# Storage Configuration
BUCKET_NAME = os.getenv('BUCKET_NAME', '')
PUBLIC_BUCKET_NAME = os.getenv('PUBLIC_BUCKET_NAME', '')
DEPLOYMENT_ENV = os.getenv('DEPLOYMENT_ENV', 'DEV')
OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'output')  # Local asset directory when no bucket is set

# Session mirror (optional)
REDIS_URL = os.getenv('REDIS_URL', '')
SESSION_TTL_SECONDS = 86400  # 24 hours

# Orchestration Configuration
MAX_ITERATIONS = 20
ORCHESTRATION_MODE = os.getenv('ORCHESTRATION_MODE', 'monolithic')  # "monolithic" or "supervisor"
SUBAGENT_MAX_ITERATIONS = 12
ENABLE_MUSIC_GENERATION = _env_flag('ENABLE_MUSIC_GENERATION')

# Retry Configuration
DEFAULT_MAX_RETRIES = 3

# Quality Control Configuration
QUALITY_THRESHOLD = 80
MAX_QUALITY_ITERATIONS = 2
ENABLE_AI_CRITIQUE = _env_flag('ENABLE_AI_CRITIQUE', 'true')

# Model Configuration
ORCHESTRATOR_MODEL = os.getenv('ORCHESTRATOR_MODEL', 'gemini-2.5-flash')
CONTENT_MODEL = os.getenv('CONTENT_MODEL', 'gemini-2.5-flash')
TRANSCRIPTION_MODEL = os.getenv('TRANSCRIPTION_MODEL', 'gemini-2.5-flash')

# Gemini API Aspect Ratio Mapping
GEMINI_ASPECT_RATIOS = {
    "vertical": "9:16",
    "horizontal": "16:9",
    "square": "1:1",
    "portrait": "9:16",
    "landscape": "16:9",
    "9:16": "9:16",
    "16:9": "16:9",
    "1:1": "1:1",
}

# Content planning defaults
CONTENT_PLAN_CONFIG = {
    "default_duration": 60,  # seconds
    "min_duration": 10,
    "max_duration": 600,
    "seconds_per_scene": 10,
    "max_scenes": 20,
    "default_language": "en",
}

# Image Generation Settings (Gemini image models via google-genai)
IMAGE_GENERATION_CONFIG = {
    "model": os.getenv('IMAGE_MODEL', 'gemini-2.5-flash-image'),
    "edit_model": os.getenv('IMAGE_EDIT_MODEL', 'gemini-2.5-flash-image'),
    "default_aspect_ratio": "16:9",
    "output_mime_type": "image/png",
}

# Narration Settings (Gemini TTS)
TTS_CONFIG = {
    "model": os.getenv('TTS_MODEL', 'gemini-2.5-flash-preview-tts'),
    "default_voice": "Kore",
    "voice_styles": {
        "narrator": "Kore",
        "calm": "Aoede",
        "energetic": "Puck",
        "dramatic": "Charon",
        "friendly": "Leda",
    },
    "sample_rate": 24000,
    "sample_width": 2,
    "channels": 1,
}

# Google Veo Configuration
GOOGLE_VEO_CONFIG = {
    "default_model": "veo-3.1-generate-preview",
    "fast_model": "veo-3.1-fast-generate-preview",
    "max_wait_time": 600,
    "check_interval": 10,
    "aspect_ratios": {
        "vertical": "9:16",
        "horizontal": "16:9"
    },
    "durations": [4, 6, 8],
}

# DeAPI image-to-video Configuration
DEAPI_API_KEY = os.getenv('DEAPI_API_KEY', '')
DEAPI_CONFIG = {
    "endpoint": os.getenv('DEAPI_ENDPOINT', 'https://api.deapi.ai/api/v1/client'),
    "model": "Ltxv_13B_0_9_8_Distilled_FP8",
    "frames": 120,
    "fps": 30,
    "max_wait_time": 300,
    "check_interval": 5,
}

# Music Generation Settings (Suno)
SUNO_API_KEY = os.getenv('SUNO_API_KEY', '')
MUSIC_GENERATION_CONFIG = {
    "endpoint": os.getenv('SUNO_API_ENDPOINT', 'https://api.sunoapi.org/api/v1'),
    "model": "V4_5",
    "default_duration": 60,  # seconds
    "max_duration": 240,
    "max_wait_time": 300,
    "check_interval": 10,
}

# Ambient SFX library (Freesound)
FREESOUND_API_KEY = os.getenv('FREESOUND_API_KEY', '')
FREESOUND_API_BASE = "https://freesound.org/apiv2"

# Media import service (YouTube / X audio extraction)
MEDIA_IMPORT_ENDPOINT = os.getenv('MEDIA_IMPORT_ENDPOINT', 'http://localhost:3001')
MEDIA_IMPORT_TIMEOUT = 120.0  # seconds

# Audio Mixing Settings
AUDIO_MIX_CONFIG = {
    "sample_rate": 44100,
    "narration_volume": 1.0,
    "music_volume": 0.3,
    "sfx_volume": 0.5,
    "video_audio_volume": 0.3,
    "ducking_threshold": 0.05,
    "ducking_ratio": 8,
}

# Subtitle Settings
SUBTITLE_CONFIG = {
    "default_format": "srt",
    "max_words_per_segment": 8,
}

# Export Settings
EXPORT_CONFIG = {
    "default_format": "mp4",
    "default_aspect_ratio": "16:9",
    "default_quality": "standard",
    "resolutions": {
        "16:9": (1920, 1080),
        "9:16": (1080, 1920),
        "1:1": (1080, 1080),
    },
    "quality_presets": {
        "draft": {"crf": 32, "preset": "ultrafast", "video_bitrate_kbps": 1500, "fps": 15},
        "standard": {"crf": 23, "preset": "veryfast", "video_bitrate_kbps": 5000, "fps": 24},
        "high": {"crf": 18, "preset": "medium", "video_bitrate_kbps": 10000, "fps": 30},
    },
    "audio_bitrate_kbps": 192,
}


# Lazily resolved Google credentials
_CREDENTIALS = None


def get_google_credentials():
    """Resolve service account credentials from the ``credentials_dict`` env var

    Returns None when the variable is unset, letting google clients fall back
    to application default credentials.
    """
    global _CREDENTIALS
    if _CREDENTIALS is None:
        credentials_json = os.getenv('credentials_dict')
        if not credentials_json:
            return None
        credentials_info = json.loads(credentials_json)
        _CREDENTIALS = service_account.Credentials.from_service_account_info(
            credentials_info,
            scopes=['https://www.googleapis.com/auth/cloud-platform']
        )
    return _CREDENTIALS
