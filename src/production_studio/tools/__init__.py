"""Production tools and the default registry wiring"""

from ..core.config import ENABLE_MUSIC_GENERATION
from ..core.tool_registry import ToolDefinition, ToolGroup, ToolRegistry
from . import audio_mixing, cloud, content, enhancement, export, importing, media, status, story, subtitles
from .base import SceneArgs, SessionArgs

# (name, group, func, args model, dependencies)
DEFAULT_TOOLS = [
    ("import_youtube_content", ToolGroup.IMPORT, importing.import_youtube_content, importing.ImportYouTubeArgs, []),
    ("transcribe_audio_file", ToolGroup.IMPORT, importing.transcribe_audio_file, importing.TranscribeAudioArgs, []),

    ("plan_video", ToolGroup.CONTENT, content.plan_video, content.PlanVideoArgs, []),
    ("narrate_scenes", ToolGroup.CONTENT, content.narrate_scenes, content.NarrateScenesArgs, ["plan_video"]),
    ("validate_plan", ToolGroup.CONTENT, content.validate_plan, SessionArgs, ["plan_video"]),
    ("adjust_timing", ToolGroup.CONTENT, content.adjust_timing, SessionArgs, ["narrate_scenes"]),
    ("generate_breakdown", ToolGroup.CONTENT, story.generate_breakdown, story.BreakdownArgs, []),
    ("create_screenplay", ToolGroup.CONTENT, story.create_screenplay, story.StoryArgs, ["generate_breakdown"]),
    ("generate_characters", ToolGroup.CONTENT, story.generate_characters, story.StoryArgs, ["create_screenplay"]),
    ("generate_shotlist", ToolGroup.CONTENT, story.generate_shotlist, story.StoryArgs,
     ["create_screenplay", "generate_characters"]),

    ("generate_visuals", ToolGroup.MEDIA, media.generate_visuals, media.GenerateVisualsArgs, ["plan_video"]),
    ("generate_video", ToolGroup.MEDIA, media.generate_video, media.GenerateVideoArgs, ["plan_video"]),
    ("animate_image", ToolGroup.MEDIA, media.animate_image, media.AnimateImageArgs, ["generate_visuals"]),
    ("plan_sfx", ToolGroup.MEDIA, media.plan_sfx, media.PlanSfxArgs, ["plan_video"]),

    ("verify_character_consistency", ToolGroup.ENHANCEMENT, enhancement.verify_character_consistency,
     enhancement.ConsistencyArgs, []),
    ("remove_background", ToolGroup.ENHANCEMENT, enhancement.remove_background, SceneArgs, ["generate_visuals"]),
    ("restyle_image", ToolGroup.ENHANCEMENT, enhancement.restyle_image, enhancement.RestyleImageArgs,
     ["generate_visuals"]),
    ("mix_audio_tracks", ToolGroup.ENHANCEMENT, audio_mixing.mix_audio_tracks, audio_mixing.MixAudioArgs,
     ["narrate_scenes"]),

    ("generate_subtitles", ToolGroup.EXPORT, subtitles.generate_subtitles, subtitles.GenerateSubtitlesArgs,
     ["narrate_scenes"]),
    ("validate_export", ToolGroup.EXPORT, export.validate_export, export.ValidateExportArgs, []),
    ("list_export_presets", ToolGroup.EXPORT, export.list_export_presets, export.ListPresetsArgs, []),
    ("export_final_video", ToolGroup.EXPORT, export.export_final_video, export.ExportArgs,
     ["generate_visuals", "narrate_scenes"]),
    ("upload_production_to_cloud", ToolGroup.EXPORT, cloud.upload_production_to_cloud, cloud.UploadArgs,
     ["export_final_video"]),

    ("get_production_status", ToolGroup.UTILITY, status.get_production_status, SessionArgs, []),
    ("mark_complete", ToolGroup.UTILITY, status.mark_complete, SessionArgs, []),
]

MUSIC_TOOL = ("generate_music", ToolGroup.MEDIA, media.generate_music, media.GenerateMusicArgs, ["plan_video"])


def build_default_registry(include_music: bool = ENABLE_MUSIC_GENERATION) -> ToolRegistry:
    """Registry with every production tool; ``generate_music`` only when music is enabled or requested"""
    registry = ToolRegistry()
    entries = DEFAULT_TOOLS + ([MUSIC_TOOL] if include_music else [])
    for name, group, func, args_model, dependencies in entries:
        registry.register(ToolDefinition(name=name, group=group, func=func, args_model=args_model,
                                         dependencies=list(dependencies)))
    return registry


__all__ = ["build_default_registry", "DEFAULT_TOOLS", "MUSIC_TOOL"]
