"""Subagent registry descriptions"""

# Subagents run by the supervisor, in pipeline order
AGENT_REGISTRY = {
    "import_agent": {
        "stage_title": "import",
        "description": "Imports YouTube/X media or a local audio file, transcribes it and hands a plan to the content stage",
        "capabilities": ["media_import", "transcription", "plan_handoff"],
        "groups": ["IMPORT"],
        "extra_tools": ["plan_video"],
    },
    "content_agent": {
        "stage_title": "content",
        "description": "Plans scenes, narrates them and runs the quality loop",
        "capabilities": ["content_planning", "narration", "quality_control", "screenplay"],
        "groups": ["CONTENT"],
        "extra_tools": ["get_production_status"],
    },
    "media_agent": {
        "stage_title": "media",
        "description": "Generates visuals, video clips, ambient sound plans and music for every scene",
        "capabilities": ["image_generation", "video_generation", "animation", "sfx_planning", "music_generation"],
        "groups": ["MEDIA"],
        "extra_tools": ["get_production_status"],
    },
    "enhancement_export_agent": {
        "stage_title": "enhancement and export",
        "description": "Edits images, mixes audio, writes subtitles, exports and uploads the final video",
        "capabilities": ["image_editing", "audio_mixing", "subtitles", "export", "cloud_upload"],
        "groups": ["ENHANCEMENT", "EXPORT"],
        "extra_tools": ["get_production_status", "mark_complete"],
    },
}
