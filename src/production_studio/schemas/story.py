"""
Schema definitions for screenplay mode (breakdown, screenplay, characters, shots).
"""

BREAKDOWN_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "logline": {"type": "STRING"},
        "genre": {"type": "STRING"},
        "acts": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "summary": {"type": "STRING"},
                    "beats": {"type": "ARRAY", "items": {"type": "STRING"}}
                },
                "required": ["title", "summary"]
            }
        }
    },
    "required": ["title", "logline", "acts"]
}

SCREENPLAY_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "scenes": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "heading": {"type": "STRING"},
                    "action": {"type": "STRING"},
                    "dialogue": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "character": {"type": "STRING"},
                                "line": {"type": "STRING"}
                            },
                            "required": ["character", "line"]
                        }
                    },
                    "narration": {"type": "STRING"},
                    "emotional_tone": {"type": "STRING"},
                    "duration": {"type": "NUMBER"}
                },
                "required": ["heading", "action"]
            }
        }
    },
    "required": ["scenes"]
}

CHARACTERS_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "characters": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "role": {"type": "STRING"},
                    "appearance": {"type": "STRING"},
                    "personality": {"type": "STRING"}
                },
                "required": ["name", "appearance"]
            }
        }
    },
    "required": ["characters"]
}

SHOTLIST_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "shots": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "scene_index": {"type": "INTEGER"},
                    "shot_type": {"type": "STRING"},
                    "camera_movement": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "characters": {"type": "ARRAY", "items": {"type": "STRING"}},
                    "duration": {"type": "NUMBER"}
                },
                "required": ["scene_index", "shot_type", "description"]
            }
        }
    },
    "required": ["shots"]
}

CONSISTENCY_GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "reports": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "character": {"type": "STRING"},
                    "consistent": {"type": "BOOLEAN"},
                    "score": {"type": "INTEGER"},
                    "issues": {"type": "ARRAY", "items": {"type": "STRING"}}
                },
                "required": ["character", "consistent", "score"]
            }
        }
    },
    "required": ["reports"]
}
