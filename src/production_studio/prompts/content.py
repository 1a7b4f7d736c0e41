"""Content planning prompts"""

CONTENT_PLAN_PROMPT_TEMPLATE = {
    "template": """You are a professional video content planner. Turn the topic below into a scene-by-scene plan for a narrated, illustrated video.

TOPIC: {topic}
TARGET DURATION: {target_duration} seconds
SCENE COUNT: exactly {scene_count} scenes
VISUAL STYLE: {style}
AUDIENCE: {audience}
PURPOSE: {video_purpose}
LANGUAGE: {language}

SCENE RULES:
- Each scene is one self-contained narrative beat
- narration_script is spoken aloud: about 2.5 words per second of scene duration, no stage directions
- visual_description is a single still image prompt: subject, setting, lighting, composition, in the visual style above
- emotional_tone is one or two words (e.g. "awe", "tense", "hopeful")
- ambient_sfx is an optional ambient track id from: {ambient_ids}
- Scene durations must add up to the target duration

Write narration_script in {language}. Write every other field in English.
""",
    "schema": "content_plan"
}

PLAN_CRITIQUE_PROMPT_TEMPLATE = {
    "template": """You are a strict video producer reviewing a content plan before production.

CONTENT PLAN (JSON):
{content_plan}

Score the plan from 0 to 100:
- Narrative flow and hook in the first scene (30 points)
- Narration quality and pacing against scene durations (30 points)
- Visual descriptions that are concrete and filmable (25 points)
- Consistency of tone and style (15 points)

List every problem as an issue with severity critical, major or minor and the 0-based scene_index it refers to.
Give short, actionable suggestions.
""",
    "schema": "plan_critique"
}

MOTION_PROMPT_TEMPLATE = {
    "template": """Write a camera and subject motion prompt for animating a still image into a short video clip.

IMAGE DESCRIPTION: {visual_description}
EMOTIONAL TONE: {emotional_tone}

Describe one continuous movement (camera move plus subtle subject motion) that fits in {duration} seconds.
Keep it under 60 words. Do not describe cuts or new subjects.
""",
    "schema": "motion_prompt"
}

TRANSCRIPT_PROMPT_TEMPLATE = {
    "template": """Transcribe the attached audio.

Return segments of one or two sentences with start and end times in seconds.
Language hint: {language}. If the hint is "auto", detect the spoken language and report its ISO 639-1 code.
""",
    "schema": "transcript"
}
