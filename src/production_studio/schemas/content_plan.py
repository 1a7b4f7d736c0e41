"""
Schema definitions for content planning and plan critique.
"""

GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "language": {"type": "STRING"},
        "scenes": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "duration": {"type": "NUMBER"},
                    "narration_script": {"type": "STRING"},
                    "visual_description": {"type": "STRING"},
                    "emotional_tone": {"type": "STRING"},
                    "ambient_sfx": {"type": "STRING"}
                },
                "required": ["name", "duration", "narration_script", "visual_description", "emotional_tone"]
            }
        }
    },
    "required": ["title", "scenes"]
}

CRITIQUE_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "INTEGER"},
        "issues": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "severity": {"type": "STRING", "enum": ["critical", "major", "minor"]},
                    "message": {"type": "STRING"},
                    "scene_index": {"type": "INTEGER"}
                },
                "required": ["severity", "message"]
            }
        },
        "suggestions": {"type": "ARRAY", "items": {"type": "STRING"}}
    },
    "required": ["score", "issues", "suggestions"]
}

MOTION_PROMPT_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "motion_prompt": {"type": "STRING"}
    },
    "required": ["motion_prompt"]
}
