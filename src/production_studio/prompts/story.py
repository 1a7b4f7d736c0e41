"""Screenplay mode prompts"""

STORY_BREAKDOWN_PROMPT_TEMPLATE = {
    "template": """You are a story developer. Break the idea below into a three-act structure for a short film.

IDEA: {topic}
GENRE: {genre}
TARGET DURATION: {target_duration} seconds

Give the story a title and a one-sentence logline. Each act has a title, a short summary and 2-4 beats.
""",
    "schema": "story_breakdown"
}

SCREENPLAY_PROMPT_TEMPLATE = {
    "template": """You are a screenwriter. Write the screenplay for this breakdown.

BREAKDOWN (JSON):
{breakdown}

One scene per beat. Each scene has a slug-line heading, an action paragraph, dialogue lines (character, line),
a narration line for the voice-over, an emotional tone and a duration in seconds.
Scene durations should add up to about {target_duration} seconds.
""",
    "schema": "screenplay"
}

CHARACTERS_PROMPT_TEMPLATE = {
    "template": """You are a character designer. Write a character sheet for every speaking character in the screenplay.

SCREENPLAY (JSON):
{screenplay}

For each character give name, role in the story, a visual appearance description precise enough to keep
the character consistent across generated images (age, build, hair, clothing, colors), and personality.
""",
    "schema": "characters"
}

SHOTLIST_PROMPT_TEMPLATE = {
    "template": """You are a director of photography. Create a shot list for the screenplay.

SCREENPLAY (JSON):
{screenplay}

CHARACTERS (JSON):
{characters}

One shot per screenplay scene (scene_index is 0-based). For each shot give the shot type, camera movement,
a still-image description that includes the full appearance of every character in frame, the characters in frame
and a duration in seconds.
""",
    "schema": "shotlist"
}

CHARACTER_CONSISTENCY_PROMPT_TEMPLATE = {
    "template": """Check whether each character is described consistently across the shot list.

CHARACTERS (JSON):
{characters}

SHOTS (JSON):
{shots}

Only check: {character_filter}

For each character report whether it is consistent, a 0-100 consistency score and the concrete mismatches found.
""",
    "schema": "character_consistency"
}
