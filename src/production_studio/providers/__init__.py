"""External generative and media services used by the production tools"""

from dataclasses import dataclass
from typing import Any

from ..core.config import BUCKET_NAME, OUTPUT_DIR


@dataclass
class Providers:
    """Service clients handed to tools through ToolContext.providers

    Tests swap any field for a fake with the same method names.
    """
    planner: Any
    story: Any
    narrator: Any
    images: Any
    video: Any
    animator: Any
    music: Any
    sfx: Any
    mixer: Any
    renderer: Any
    importer: Any
    transcriber: Any
    assets: Any


def build_providers() -> Providers:
    """Default production clients (nothing connects until first use)"""
    from .assets import GcsAssetStore, LocalAssetStore
    from .deapi import DeApiAnimator
    from .ffmpeg_audio import FFmpegAudioMixer
    from .ffmpeg_render import FFmpegRenderer
    from .gemini import (
        GeminiContentPlanner,
        GeminiImageGenerator,
        GeminiNarrator,
        GeminiStoryWriter,
        GeminiTranscriber,
    )
    from .media_import import MediaImporter
    from .sfx import FreesoundLibrary
    from .suno import SunoMusicGenerator
    from .veo import VeoVideoGenerator

    return Providers(
        planner=GeminiContentPlanner(),
        story=GeminiStoryWriter(),
        narrator=GeminiNarrator(),
        images=GeminiImageGenerator(),
        video=VeoVideoGenerator(),
        animator=DeApiAnimator(),
        music=SunoMusicGenerator(),
        sfx=FreesoundLibrary(),
        mixer=FFmpegAudioMixer(),
        renderer=FFmpegRenderer(),
        importer=MediaImporter(),
        transcriber=GeminiTranscriber(),
        assets=GcsAssetStore() if BUCKET_NAME else LocalAssetStore(OUTPUT_DIR),
    )


__all__ = ['Providers', 'build_providers']
