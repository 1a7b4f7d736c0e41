"""Prompt templates for the production agents"""

from .production import PRODUCTION_AGENT_PROMPT_TEMPLATE, PRODUCTION_STATUS_REMINDER
from .content import (
    CONTENT_PLAN_PROMPT_TEMPLATE,
    PLAN_CRITIQUE_PROMPT_TEMPLATE,
    MOTION_PROMPT_TEMPLATE,
    TRANSCRIPT_PROMPT_TEMPLATE
)
from .story import (
    STORY_BREAKDOWN_PROMPT_TEMPLATE,
    SCREENPLAY_PROMPT_TEMPLATE,
    CHARACTERS_PROMPT_TEMPLATE,
    SHOTLIST_PROMPT_TEMPLATE,
    CHARACTER_CONSISTENCY_PROMPT_TEMPLATE
)
from .subagents import (
    SUBAGENT_PROMPT_TEMPLATE,
    IMPORT_STAGE_INSTRUCTIONS,
    CONTENT_STAGE_INSTRUCTIONS,
    MEDIA_STAGE_INSTRUCTIONS,
    ENHANCEMENT_EXPORT_STAGE_INSTRUCTIONS
)
from .registry import AGENT_REGISTRY

__all__ = [
    # Production agent
    'PRODUCTION_AGENT_PROMPT_TEMPLATE',
    'PRODUCTION_STATUS_REMINDER',
    # Content
    'CONTENT_PLAN_PROMPT_TEMPLATE',
    'PLAN_CRITIQUE_PROMPT_TEMPLATE',
    'MOTION_PROMPT_TEMPLATE',
    'TRANSCRIPT_PROMPT_TEMPLATE',
    # Screenplay
    'STORY_BREAKDOWN_PROMPT_TEMPLATE',
    'SCREENPLAY_PROMPT_TEMPLATE',
    'CHARACTERS_PROMPT_TEMPLATE',
    'SHOTLIST_PROMPT_TEMPLATE',
    'CHARACTER_CONSISTENCY_PROMPT_TEMPLATE',
    # Subagents
    'SUBAGENT_PROMPT_TEMPLATE',
    'IMPORT_STAGE_INSTRUCTIONS',
    'CONTENT_STAGE_INSTRUCTIONS',
    'MEDIA_STAGE_INSTRUCTIONS',
    'ENHANCEMENT_EXPORT_STAGE_INSTRUCTIONS',
    # Registry
    'AGENT_REGISTRY'
]
