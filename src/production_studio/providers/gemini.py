"""
Gemini-backed providers: content planning, screenplay writing, narration,
image generation and transcription
"""

import io
import json
import logging
import uuid
import wave
from typing import Any, Dict, List, Optional

from google.genai import types

from ..core.config import (
    CONTENT_MODEL,
    GEMINI_ASPECT_RATIOS,
    IMAGE_GENERATION_CONFIG,
    TRANSCRIPTION_MODEL,
    TTS_CONFIG,
)
from ..core.errors import ProviderError
from ..core.llm import create_genai_client, generate_structured
from ..prompts import (
    CHARACTER_CONSISTENCY_PROMPT_TEMPLATE,
    CHARACTERS_PROMPT_TEMPLATE,
    CONTENT_PLAN_PROMPT_TEMPLATE,
    MOTION_PROMPT_TEMPLATE,
    PLAN_CRITIQUE_PROMPT_TEMPLATE,
    SCREENPLAY_PROMPT_TEMPLATE,
    SHOTLIST_PROMPT_TEMPLATE,
    STORY_BREAKDOWN_PROMPT_TEMPLATE,
    TRANSCRIPT_PROMPT_TEMPLATE,
)
from ..storage.gcs_utils import download_to_bytes, upload_bytes_to_gcs
from .sfx import AMBIENT_TRACK_IDS

logger = logging.getLogger(__name__)

_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_NONE"),
]


class GeminiContentPlanner:
    """Scene plans, plan critiques and motion prompts"""

    def __init__(self, model_name: str = CONTENT_MODEL):
        self.model_name = model_name

    def plan_content(self, topic: str, target_duration: int, scene_count: int, style: Optional[str] = None,
                     audience: Optional[str] = None, language: str = "en",
                     video_purpose: Optional[str] = None) -> Dict[str, Any]:
        prompt = CONTENT_PLAN_PROMPT_TEMPLATE["template"].format(
            topic=topic,
            target_duration=target_duration,
            scene_count=scene_count,
            style=style or "Cinematic",
            audience=audience or "general audience",
            video_purpose=video_purpose or "informative",
            language=language,
            ambient_ids=", ".join(AMBIENT_TRACK_IDS),
        )
        logger.info(f"[Gemini Planner] Planning {scene_count} scenes for: {topic[:80]}")
        return generate_structured(prompt, CONTENT_PLAN_PROMPT_TEMPLATE["schema"], model_name=self.model_name)

    def critique_plan(self, content_plan: Dict[str, Any]) -> Dict[str, Any]:
        prompt = PLAN_CRITIQUE_PROMPT_TEMPLATE["template"].format(
            content_plan=json.dumps(content_plan, ensure_ascii=False, default=str)
        )
        return generate_structured(prompt, PLAN_CRITIQUE_PROMPT_TEMPLATE["schema"],
                                   model_name=self.model_name, temperature=0.2)

    def motion_prompt(self, visual_description: str, emotional_tone: str = "", duration: int = 5) -> str:
        prompt = MOTION_PROMPT_TEMPLATE["template"].format(
            visual_description=visual_description,
            emotional_tone=emotional_tone or "neutral",
            duration=duration,
        )
        result = generate_structured(prompt, MOTION_PROMPT_TEMPLATE["schema"], model_name=self.model_name)
        return result.get("motion_prompt") or visual_description


class GeminiStoryWriter:
    """Screenplay mode: breakdown, screenplay, characters, shot list and consistency checks"""

    def __init__(self, model_name: str = CONTENT_MODEL):
        self.model_name = model_name

    def _run(self, template: Dict[str, str], **fields) -> Dict[str, Any]:
        prompt = template["template"].format(**fields)
        return generate_structured(prompt, template["schema"], model_name=self.model_name)

    def breakdown(self, topic: str, genre: Optional[str], target_duration: int) -> Dict[str, Any]:
        return self._run(STORY_BREAKDOWN_PROMPT_TEMPLATE, topic=topic, genre=genre or "drama",
                         target_duration=target_duration)

    def screenplay(self, breakdown: Dict[str, Any], target_duration: int) -> Dict[str, Any]:
        return self._run(SCREENPLAY_PROMPT_TEMPLATE, breakdown=json.dumps(breakdown, ensure_ascii=False),
                         target_duration=target_duration)

    def characters(self, screenplay: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = self._run(CHARACTERS_PROMPT_TEMPLATE, screenplay=json.dumps(screenplay, ensure_ascii=False))
        return result.get("characters") or []

    def shotlist(self, screenplay: Dict[str, Any], characters: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        result = self._run(SHOTLIST_PROMPT_TEMPLATE,
                           screenplay=json.dumps(screenplay, ensure_ascii=False),
                           characters=json.dumps(characters, ensure_ascii=False))
        return result.get("shots") or []

    def check_consistency(self, characters: List[Dict[str, Any]], shots: List[Dict[str, Any]],
                          character_name: Optional[str] = None) -> List[Dict[str, Any]]:
        result = self._run(CHARACTER_CONSISTENCY_PROMPT_TEMPLATE,
                           characters=json.dumps(characters, ensure_ascii=False),
                           shots=json.dumps(shots, ensure_ascii=False),
                           character_filter=character_name or "all characters")
        return result.get("reports") or []


def pcm_to_wav(pcm: bytes, sample_rate: int, sample_width: int = 2, channels: int = 1) -> bytes:
    """Wrap raw PCM samples in a WAV container"""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(sample_width)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return buffer.getvalue()


def wav_duration(data: bytes) -> float:
    """Duration in seconds of a WAV blob"""
    with wave.open(io.BytesIO(data), "rb") as wav_file:
        return wav_file.getnframes() / float(wav_file.getframerate())


class GeminiNarrator:
    """Text-to-speech with Gemini TTS models, returning WAV audio"""

    def __init__(self, model_name: str = TTS_CONFIG["model"]):
        self.model_name = model_name

    def synthesize(self, text: str, voice: Optional[str] = None, language: str = "en") -> Dict[str, Any]:
        client = create_genai_client(self.model_name)
        voice_name = voice or TTS_CONFIG["default_voice"]
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_name)
                ),
                language_code=language if language and language != "auto" else None,
            ),
        )
        response = client.models.generate_content(model=self.model_name, contents=text, config=config)

        pcm = b""
        if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
            for part in response.candidates[0].content.parts:
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    pcm += part.inline_data.data
        if not pcm:
            raise ProviderError("TTS returned no audio", provider="gemini-tts")

        audio = pcm_to_wav(pcm, TTS_CONFIG["sample_rate"], TTS_CONFIG["sample_width"], TTS_CONFIG["channels"])
        return {"audio": audio, "duration": wav_duration(audio), "mime_type": "audio/wav", "voice": voice_name}


class GeminiImageGenerator:
    """Scene images and image edits with Gemini image models, stored in GCS"""

    def __init__(self, model_name: str = IMAGE_GENERATION_CONFIG["model"],
                 edit_model_name: str = IMAGE_GENERATION_CONFIG["edit_model"]):
        self.model_name = model_name
        self.edit_model_name = edit_model_name

    def _generate(self, model: str, contents: List[Any], aspect_ratio: Optional[str]) -> bytes:
        client = create_genai_client(model)
        config_params = {
            "response_modalities": ["IMAGE"],
            "candidate_count": 1,
            "safety_settings": _SAFETY_SETTINGS,
        }
        if aspect_ratio:
            config_params["image_config"] = types.ImageConfig(
                aspect_ratio=GEMINI_ASPECT_RATIOS.get(aspect_ratio, "16:9")
            )
        response = client.models.generate_content(
            model=model, contents=contents, config=types.GenerateContentConfig(**config_params)
        )

        if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
            for part in response.candidates[0].content.parts:
                if getattr(part, "thought", None):
                    continue
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    return part.inline_data.data
        raise ProviderError("No image generated in response", provider="gemini-image")

    def _store(self, image_bytes: bytes, session_id: str, asset_type: str) -> str:
        filename = f"{uuid.uuid4().hex[:12]}.png"
        return upload_bytes_to_gcs(image_bytes, session_id, asset_type, filename,
                                   content_type=IMAGE_GENERATION_CONFIG["output_mime_type"])

    def generate_image(self, prompt: str, aspect_ratio: str = "16:9", style: Optional[str] = None,
                       session_id: str = "") -> str:
        full_prompt = f"{prompt}\n\nVisual style: {style}." if style else prompt
        image_bytes = self._generate(self.model_name, [full_prompt], aspect_ratio)
        return self._store(image_bytes, session_id, "images")

    def _edit(self, image_url: str, instruction: str, session_id: str) -> str:
        source = download_to_bytes(image_url)
        contents = [types.Part.from_bytes(data=source, mime_type="image/png"), instruction]
        edited = self._generate(self.edit_model_name, contents, None)
        return self._store(edited, session_id, "images_edited")

    def remove_background(self, image_url: str, session_id: str = "") -> str:
        return self._edit(image_url, "Remove the background completely. Keep the main subject unchanged "
                                     "on a plain white background.", session_id)

    def restyle(self, image_url: str, style: str, session_id: str = "") -> str:
        return self._edit(image_url, f"Redraw this image in a {style} style. Keep the composition, "
                                     f"subjects and framing identical.", session_id)


class GeminiTranscriber:
    """Timed transcripts from audio bytes"""

    def __init__(self, model_name: str = TRANSCRIPTION_MODEL):
        self.model_name = model_name

    def transcribe(self, audio: bytes, mime_type: str = "audio/mpeg", language: Optional[str] = None) -> Dict[str, Any]:
        prompt = TRANSCRIPT_PROMPT_TEMPLATE["template"].format(language=language or "auto")
        result = generate_structured(
            prompt,
            TRANSCRIPT_PROMPT_TEMPLATE["schema"],
            model_name=self.model_name,
            temperature=0.0,
            contents_prefix=[types.Part.from_bytes(data=audio, mime_type=mime_type)],
        )
        segments = result.get("segments") or []
        logger.info(f"[Gemini Transcriber] {len(segments)} segment(s), language={result.get('language')}")
        return {"language": result.get("language") or language or "en", "segments": segments}
