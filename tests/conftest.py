"""
Pytest configuration and fixtures for production studio tests.

Every external service is replaced by an in-memory fake with the same
method names as the real provider, and the orchestrator LLM by a scripted
model that replays tool calls.
"""
import io
import json
import os
import wave

import pytest
from langchain_core.messages import AIMessage, ToolMessage

# Set test environment before importing app modules
os.environ["REDIS_URL"] = ""
os.environ["ORCHESTRATION_MODE"] = "monolithic"
os.environ["ENABLE_MUSIC_GENERATION"] = "false"
os.environ["BUCKET_NAME"] = ""

from production_studio.core.context import ToolContext  # noqa: E402
from production_studio.core.session_store import SessionStore  # noqa: E402
from production_studio.providers import Providers  # noqa: E402


def make_wav(seconds: float = 1.0, rate: int = 8000) -> bytes:
    """Silent mono 16-bit WAV"""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as out:
        out.setnchannels(1)
        out.setsampwidth(2)
        out.setframerate(rate)
        out.writeframes(b"\x00\x00" * int(seconds * rate))
    return buffer.getvalue()


# --- Fake providers ---

class FakeService:
    """Records calls; raises queued ``failures`` first, or ``fail_with`` on every call"""

    def __init__(self):
        self.calls = []
        self.failures = []
        self.fail_with = None

    def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        if self.fail_with is not None:
            raise self.fail_with
        if self.failures:
            raise self.failures.pop(0)

    def count(self, method):
        return len([c for c in self.calls if c[0] == method])


class FakePlanner(FakeService):
    def __init__(self, critique_scores=None):
        super().__init__()
        self.critique_scores = list(critique_scores or [])

    def plan_content(self, topic, target_duration, scene_count, style=None, audience=None,
                     language=None, video_purpose=None):
        self._record("plan_content", topic=topic, target_duration=target_duration, scene_count=scene_count)
        duration = target_duration / scene_count
        return {
            "title": f"All about {topic}",
            "language": language,
            "scenes": [
                {
                    "name": f"Scene {i + 1}",
                    "duration": duration,
                    "narration_script": f"Narration line {i + 1} about {topic} and the ocean waves",
                    "visual_description": f"Wide shot {i + 1} of {topic}",
                    "emotional_tone": "calm",
                    "ambient_sfx": None,
                }
                for i in range(scene_count)
            ],
        }

    def critique_plan(self, plan):
        self._record("critique_plan", plan)
        score = self.critique_scores.pop(0) if self.critique_scores else 90
        return {"score": score, "issues": [], "suggestions": []}

    def motion_prompt(self, description, tone, duration):
        self._record("motion_prompt", description, tone, duration)
        return "Slow push in with drifting particles"


class FakeNarrator(FakeService):
    def __init__(self, duration=10.0):
        super().__init__()
        self.duration = duration

    def synthesize(self, text, voice=None, language=None):
        self._record("synthesize", text, voice=voice, language=language)
        return {"audio": make_wav(self.duration), "duration": self.duration,
                "mime_type": "audio/wav", "voice": voice}


class FakeImages(FakeService):
    def generate_image(self, prompt, aspect_ratio=None, style=None, session_id=None):
        self._record("generate_image", prompt, aspect_ratio=aspect_ratio, style=style, session_id=session_id)
        return f"https://images.test/{session_id}/image-{self.count('generate_image')}.png"

    def remove_background(self, url, session_id=None):
        self._record("remove_background", url, session_id=session_id)
        return url.replace(".png", "-nobg.png")

    def restyle(self, url, style, session_id=None):
        self._record("restyle", url, style, session_id=session_id)
        return url.replace(".png", f"-{style.lower()}.png")


class FakeVideo(FakeService):
    def generate_video(self, prompt, aspect_ratio=None, duration_seconds=8, use_fast_model=False,
                       session_id=None):
        self._record("generate_video", prompt, aspect_ratio=aspect_ratio, duration_seconds=duration_seconds,
                     use_fast_model=use_fast_model, session_id=session_id)
        return f"https://video.test/clip-{self.count('generate_video')}.mp4"


class FakeAnimator(FakeService):
    def animate(self, image_url, motion_prompt, aspect_ratio):
        self._record("animate", image_url, motion_prompt, aspect_ratio)
        return f"https://animation.test/motion-{self.count('animate')}.mp4"


class FakeMusic(FakeService):
    def generate(self, prompt, style, duration=None, instrumental=True):
        self._record("generate", prompt, style, duration=duration, instrumental=instrumental)
        return {"task_id": "task-1", "url": "https://music.test/score.mp3", "title": "Tidal Score",
                "duration": duration}


class FakeSfx(FakeService):
    def __init__(self, configured=False):
        super().__init__()
        self.configured = configured

    def resolve(self, track_id):
        self._record("resolve", track_id)
        return {"name": track_id.replace("-", " "), "url": f"https://sfx.test/{track_id}.mp3"}


class FakeMixer(FakeService):
    def mix(self, narration, duration, music_url=None, sfx_tracks=None, video_audio_urls=None,
            volumes=None, ducking=True):
        self._record("mix", duration, music_url=music_url, sfx_tracks=sfx_tracks,
                     video_audio_urls=video_audio_urls, volumes=volumes, ducking=ducking)
        return {"audio": narration, "duration": duration, "ducking_applied": bool(ducking and music_url)}


class FakeRenderer(FakeService):
    def render(self, scenes, audio, output_format="mp4", aspect_ratio="16:9", quality="standard",
               subtitles=None, fps=None):
        self._record("render", scenes, output_format=output_format, aspect_ratio=aspect_ratio,
                     quality=quality, subtitles=subtitles, fps=fps)
        return {"video": b"\x00" * 4096, "duration": sum(s["duration"] for s in scenes),
                "resolution": "1920x1080"}


class FakeImporter(FakeService):
    def fetch_audio(self, url):
        self._record("fetch_audio", url)
        return {"audio": make_wav(2.0), "mime_type": "audio/wav", "source": "youtube", "title": "Ocean talk"}


class FakeTranscriber(FakeService):
    def transcribe(self, audio, mime_type, language=None):
        self._record("transcribe", mime_type, language=language)
        return {
            "language": language or "en",
            "segments": [
                {"text": " The ocean covers most of the planet. ", "start": 0.0, "end": 3.5},
                {"text": "Most of it is still unexplored.", "start": 3.5, "end": 7.25},
            ],
        }


class FakeAssets(FakeService):
    def __init__(self):
        super().__init__()
        self.saved = {}
        self.uploaded = {}

    def save(self, data, session_id, asset_type, filename, content_type=None):
        self._record("save", session_id, asset_type, filename, content_type=content_type)
        url = f"https://assets.test/{session_id}/{asset_type}/{filename}"
        self.saved[url] = data
        return url

    def upload_production(self, data, folder_name, filename, content_type=None, make_public=False):
        self._record("upload_production", folder_name, filename, content_type=content_type,
                     make_public=make_public)
        gs_path = f"gs://test-bucket/DEV/productions/{folder_name}/{filename}"
        self.uploaded[gs_path] = data
        public_url = f"https://storage.googleapis.com/test-bucket/{folder_name}/{filename}" if make_public else None
        return gs_path, public_url


class FakeStoryWriter(FakeService):
    def breakdown(self, topic, genre=None, target_duration=60):
        self._record("breakdown", topic, genre, target_duration)
        return {
            "title": "The Last Lighthouse",
            "logline": "A keeper must decide whether to leave her post.",
            "acts": [{"name": "Setup"}, {"name": "Storm"}, {"name": "Dawn"}],
            "genre": genre or "drama",
        }

    def screenplay(self, breakdown, target_duration):
        self._record("screenplay", breakdown, target_duration)
        return {
            "scenes": [
                {"heading": "EXT. LIGHTHOUSE - NIGHT", "action": "Waves crash against the rocks.",
                 "dialogue": [{"character": "Mara", "line": "Not tonight."}], "narration": None, "duration": 12},
                {"heading": "INT. LAMP ROOM - DAWN", "action": "The light fades as the sun rises.",
                 "dialogue": [], "narration": "By morning the storm had passed.", "duration": 8},
            ]
        }

    def characters(self, screenplay):
        self._record("characters", screenplay)
        return [
            {"name": "Mara", "role": "keeper", "appearance": "grey braid, yellow oilskin coat"},
            {"name": "Tom", "role": "fisherman", "appearance": "beard, wool cap"},
        ]

    def shotlist(self, screenplay, characters):
        self._record("shotlist", screenplay, characters)
        return [
            {"scene_index": 0, "description": "Wide shot of the lighthouse in the storm", "characters": ["Mara"]},
            {"scene_index": 1, "description": "Close up of the lamp at dawn", "characters": []},
        ]

    def check_consistency(self, characters, shotlist, character_name=None):
        self._record("check_consistency", character_name)
        return [
            {"character": c["name"], "consistent": c["name"] == "Mara", "score": 90 if c["name"] == "Mara" else 60}
            for c in characters if character_name is None or c["name"] == character_name
        ]


def build_fake_providers() -> Providers:
    return Providers(
        planner=FakePlanner(),
        story=FakeStoryWriter(),
        narrator=FakeNarrator(),
        images=FakeImages(),
        video=FakeVideo(),
        animator=FakeAnimator(),
        music=FakeMusic(),
        sfx=FakeSfx(),
        mixer=FakeMixer(),
        renderer=FakeRenderer(),
        importer=FakeImporter(),
        transcriber=FakeTranscriber(),
        assets=FakeAssets(),
    )


# --- Scripted LLM ---

SESSION = "__session__"


def call(name, **args):
    """One scripted tool call; ``SESSION`` values become the latest sessionId"""
    return name, args


class ScriptedLLM:
    """
    Replays a fixed script of turns.

    Each step is a list of ``call(...)`` tuples (one AIMessage with those tool
    calls), a string (a final answer), or an exception (raised from invoke).
    Once the script runs out the model answers "Production finished.".
    """

    def __init__(self, steps=None):
        self.steps = list(steps or [])
        self.invocations = []
        self.bound_tools = []
        self.session_id = None

    def bind_tools(self, tools, **kwargs):
        self.bound_tools.append([t["name"] for t in tools])
        return self

    def _track_session(self, messages):
        for message in reversed(messages):
            if isinstance(message, ToolMessage):
                payload = json.loads(message.content)
                if payload.get("sessionId"):
                    self.session_id = payload["sessionId"]
                    return

    def invoke(self, messages, **kwargs):
        self.invocations.append(list(messages))
        self._track_session(messages)
        if not self.steps:
            return AIMessage(content="Production finished.")
        step = self.steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, str):
            return AIMessage(content=step)
        tool_calls = []
        for index, (name, args) in enumerate(step):
            resolved = {k: (self.session_id if v == SESSION else v) for k, v in args.items()}
            tool_calls.append({"name": name, "args": resolved, "id": f"call_{len(self.invocations)}_{index}"})
        return AIMessage(content="", tool_calls=tool_calls)


# --- Fixtures ---

@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def providers():
    return build_fake_providers()


@pytest.fixture
def context(store, providers):
    return ToolContext(store=store, providers=providers)


class SleepRecorder:
    """Injectable sleep that records the requested delays instead of waiting"""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def no_sleep():
    return lambda seconds: None


@pytest.fixture
def rule_based_quality(monkeypatch):
    """Score plans with the deterministic rules only"""
    monkeypatch.setattr("production_studio.tools.content.ENABLE_AI_CRITIQUE", False)


@pytest.fixture
def planned_session(context):
    from production_studio.tools.content import PlanVideoArgs, plan_video
    result = plan_video(context, PlanVideoArgs(topic="The deep ocean", target_duration=30))
    return result["sessionId"]


@pytest.fixture
def narrated_session(context, planned_session):
    from production_studio.tools.content import NarrateScenesArgs, narrate_scenes
    narrate_scenes(context, NarrateScenesArgs(content_plan_id=planned_session))
    return planned_session


@pytest.fixture
def illustrated_session(context, narrated_session):
    from production_studio.tools.media import GenerateVisualsArgs, generate_visuals
    generate_visuals(context, GenerateVisualsArgs(content_plan_id=narrated_session))
    return narrated_session
