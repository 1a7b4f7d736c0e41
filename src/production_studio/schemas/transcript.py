"""
Schema definition for audio transcription output.
"""

GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "language": {"type": "STRING"},
        "segments": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "text": {"type": "STRING"},
                    "start": {"type": "NUMBER"},
                    "end": {"type": "NUMBER"}
                },
                "required": ["text", "start", "end"]
            }
        }
    },
    "required": ["language", "segments"]
}
