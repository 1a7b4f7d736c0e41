"""
Intent detection for free-form production requests

Turns the user's message into an IntentResult that seeds tool selection.
It never calls a tool itself; the result is rendered into a hint block that
is prepended to the message handed to the orchestrator LLM.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

FIRST_TOOL_IMPORT = "import_youtube_content"
FIRST_TOOL_TRANSCRIBE = "transcribe_audio_file"
FIRST_TOOL_PLAN = "plan_video"

YOUTUBE_URL_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.|m\.)?"
    r"(?:youtube\.com/(?:watch\?(?:[^\s#]*&)?v=|shorts/|embed/|live/)|youtu\.be/)"
    r"([A-Za-z0-9_-]{11})",
    re.IGNORECASE
)

X_URL_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.|mobile\.)?(?:x\.com|twitter\.com)/([A-Za-z0-9_]{1,15})/status/(\d+)",
    re.IGNORECASE
)

AUDIO_EXTENSIONS = ("mp3", "wav", "m4a", "ogg", "flac", "aac")
AUDIO_FILE_PATTERN = re.compile(
    r"([^\s\"'<>]+\.(?:" + "|".join(AUDIO_EXTENSIONS) + r"))(?![A-Za-z0-9])",
    re.IGNORECASE
)

# "video" alone is not an animation signal: every output is a video
ANIMATION_KEYWORDS = [
    "animated", "animation", "animate", "animating", "motion", "moving",
    "dynamic", "cinemagraph", "living pictures", "bring to life",
]

MUSIC_KEYWORDS = [
    "music", "musical", "soundtrack", "background music", "song", "melody",
    "score the video", "theme song", "jingle", "instrumental", "beat",
]

BACKGROUND_REMOVAL_KEYWORDS = [
    "remove background", "remove the background", "background removal", "no background",
    "transparent background", "cut out the subject", "isolate the subject",
]

SUBTITLE_KEYWORDS = [
    "subtitle", "subtitles", "caption", "captions", "closed captions", "srt", "vtt",
]

# Closed style table, scanned in order; first hit wins
STYLE_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("Cinematic", ["cinematic", "movie", "film", "hollywood", "epic"]),
    ("Anime", ["anime", "manga", "ghibli", "japanese animation"]),
    ("Watercolor", ["watercolor", "watercolour", "painted", "aquarelle"]),
    ("Oil Painting", ["oil painting", "oil paint", "classical painting", "renaissance"]),
    ("Documentary", ["documentary", "educational", "informative", "explainer"]),
    ("Realistic", ["realistic", "photorealistic", "photo-realistic", "lifelike", "real life"]),
    ("Vintage", ["vintage", "retro", "old-fashioned", "nostalgic", "sepia"]),
    ("Modern", ["modern", "contemporary", "minimalist", "sleek"]),
    ("Fantasy", ["fantasy", "magical", "mythical", "enchanted"]),
    ("Sci-Fi", ["sci-fi", "science fiction", "futuristic", "cyberpunk"]),
    ("Horror", ["horror", "scary", "creepy", "spooky", "terrifying"]),
    ("Noir", ["noir", "black and white", "black-and-white", "detective"]),
]


@dataclass(frozen=True)
class IntentResult:
    has_youtube_url: bool = False
    has_audio_file: bool = False
    wants_animation: bool = False
    wants_music: bool = False
    wants_background_removal: bool = False
    wants_subtitles: bool = False
    youtube_url: Optional[str] = None
    audio_file_path: Optional[str] = None
    detected_style: Optional[str] = None
    first_tool: str = FIRST_TOOL_PLAN
    optional_tools: Tuple[str, ...] = ()

    @property
    def has_import_signal(self) -> bool:
        return self.has_youtube_url or self.has_audio_file


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(re.search(rf"(?<![\w-]){re.escape(keyword)}(?![\w-])", text) for keyword in keywords)


def extract_video_url(text: str) -> Optional[str]:
    """Find a YouTube or X/Twitter URL and normalize it to its canonical form"""
    match = YOUTUBE_URL_PATTERN.search(text)
    if match:
        return f"https://www.youtube.com/watch?v={match.group(1)}"
    match = X_URL_PATTERN.search(text)
    if match:
        return f"https://x.com/{match.group(1)}/status/{match.group(2)}"
    return None


def detect_style(lowered: str) -> Optional[str]:
    for style, synonyms in STYLE_KEYWORDS:
        if _contains_any(lowered, synonyms):
            return style
    return None


def analyze_intent(user_input: str) -> IntentResult:
    """Parse a free-form request into an IntentResult"""
    text = user_input or ""
    lowered = text.lower()

    youtube_url = extract_video_url(text)
    audio_match = None if youtube_url else AUDIO_FILE_PATTERN.search(text)
    audio_file_path = audio_match.group(1) if audio_match else None

    wants_animation = _contains_any(lowered, ANIMATION_KEYWORDS)
    wants_music = _contains_any(lowered, MUSIC_KEYWORDS)
    wants_background_removal = _contains_any(lowered, BACKGROUND_REMOVAL_KEYWORDS)
    wants_subtitles = _contains_any(lowered, SUBTITLE_KEYWORDS)

    if youtube_url:
        first_tool = FIRST_TOOL_IMPORT
    elif audio_file_path:
        first_tool = FIRST_TOOL_TRANSCRIBE
    else:
        first_tool = FIRST_TOOL_PLAN

    optional_tools = []
    if wants_animation:
        optional_tools.append("animate_image")
    if wants_music:
        optional_tools.append("generate_music")
    if wants_background_removal:
        optional_tools.append("remove_background")
    if wants_subtitles:
        optional_tools.append("generate_subtitles")

    return IntentResult(
        has_youtube_url=youtube_url is not None,
        has_audio_file=audio_file_path is not None,
        wants_animation=wants_animation,
        wants_music=wants_music,
        wants_background_removal=wants_background_removal,
        wants_subtitles=wants_subtitles,
        youtube_url=youtube_url,
        audio_file_path=audio_file_path,
        detected_style=detect_style(lowered),
        first_tool=first_tool,
        optional_tools=tuple(optional_tools),
    )


def render_hint_block(intent: IntentResult, audio_session_id: Optional[str] = None) -> str:
    """Render ``[DETECTED: ...]`` lines for the orchestrator prompt (empty when nothing detected)"""
    lines = []
    if intent.has_youtube_url:
        lines.append(f"[DETECTED: YouTube URL - start with import_youtube_content(url=\"{intent.youtube_url}\")]")
    elif intent.has_audio_file:
        if audio_session_id:
            lines.append(f"[DETECTED: Audio file \"{intent.audio_file_path}\" - start with "
                         f"transcribe_audio_file(contentPlanId=\"{audio_session_id}\")]")
        else:
            lines.append(f"[DETECTED: Audio file \"{intent.audio_file_path}\" - start with transcribe_audio_file]")
    if intent.detected_style:
        lines.append(f"[DETECTED: Style - use style=\"{intent.detected_style}\"]")
    if intent.wants_animation:
        lines.append("[DETECTED: Animation requested - call animate_image after generate_visuals]")
    if intent.wants_music:
        lines.append("[DETECTED: Music requested - call generate_music]")
    if intent.wants_background_removal:
        lines.append("[DETECTED: Background removal requested - call remove_background after generate_visuals]")
    if intent.wants_subtitles:
        lines.append("[DETECTED: Subtitles requested - call generate_subtitles]")
    return "\n".join(lines)


def build_user_message(user_input: str, intent: IntentResult, audio_session_id: Optional[str] = None) -> str:
    hints = render_hint_block(intent, audio_session_id)
    return f"{hints}\n\n{user_input}" if hints else user_input
