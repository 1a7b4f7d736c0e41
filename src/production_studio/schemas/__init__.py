"""
Schema registry for structured output.
Maps a schema name to the Gemini response schema defined in its module.
"""

import importlib
from typing import Dict, Any

# schema name -> (module, attribute)
SCHEMA_LOCATIONS = {
    "content_plan": ("content_plan", "GEMINI_SCHEMA"),
    "plan_critique": ("content_plan", "CRITIQUE_GEMINI_SCHEMA"),
    "motion_prompt": ("content_plan", "MOTION_PROMPT_GEMINI_SCHEMA"),
    "transcript": ("transcript", "GEMINI_SCHEMA"),
    "story_breakdown": ("story", "BREAKDOWN_GEMINI_SCHEMA"),
    "screenplay": ("story", "SCREENPLAY_GEMINI_SCHEMA"),
    "characters": ("story", "CHARACTERS_GEMINI_SCHEMA"),
    "shotlist": ("story", "SHOTLIST_GEMINI_SCHEMA"),
    "character_consistency": ("story", "CONSISTENCY_GEMINI_SCHEMA"),
}


def get_schema(schema_name: str, model_type: str = "gemini") -> Dict[str, Any]:
    """
    Load the response schema registered under ``schema_name``.

    Args:
        schema_name: Name of the schema (e.g., "content_plan", "screenplay")
        model_type: Model type (only "gemini" is supported)

    Returns:
        Schema dictionary compatible with Gemini structured output

    Raises:
        ValueError: If schema_name or model_type is invalid
    """
    if model_type != "gemini":
        raise ValueError(f"Invalid model_type: {model_type}. Must be 'gemini'.")

    if schema_name not in SCHEMA_LOCATIONS:
        raise ValueError(f"Invalid schema_name: {schema_name}. Must be one of {list(SCHEMA_LOCATIONS)}")

    module_name, attribute = SCHEMA_LOCATIONS[schema_name]
    module = importlib.import_module(f"{__name__}.{module_name}")
    return getattr(module, attribute)


AVAILABLE_SCHEMAS = list(SCHEMA_LOCATIONS)
