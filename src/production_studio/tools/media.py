"""
Media stage tools: scene visuals, video clips, animation, ambient sound and music

Visuals are stored by scene index: ``visuals[i]`` always belongs to
``scenes[i]``. Every write goes through _set_visual, which pads missing
indices with placeholders instead of shifting entries.
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..core.config import EXPORT_CONFIG, GOOGLE_VEO_CONFIG, MUSIC_GENERATION_CONFIG
from ..core.context import ToolContext
from ..core.state import ProductionState, Visual, get_scenes
from ..providers.sfx import AMBIENT_CATALOG, suggest_ambient_track
from .base import SceneArgs, SessionArgs, failure, require_plan

logger = logging.getLogger(__name__)

AspectRatio = Literal["16:9", "9:16", "1:1"]


class GenerateVisualsArgs(SessionArgs):
    style: Optional[str] = Field(default=None, description="Visual style applied to every scene")
    aspect_ratio: Optional[AspectRatio] = None
    veo_video_count: int = Field(default=0, ge=0, description="Number of leading scenes rendered as Veo clips")


class GenerateVideoArgs(SceneArgs):
    style: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None
    duration_seconds: Literal[4, 6, 8] = 8
    use_fast_model: bool = False


class AnimateImageArgs(SceneArgs):
    aspect_ratio: Optional[AspectRatio] = None


class PlanSfxArgs(SessionArgs):
    mood: Optional[str] = Field(default=None, description="Overall mood used when a scene gives no hint")


class GenerateMusicArgs(SessionArgs):
    style: str = Field(description="Musical style, e.g. ambient orchestral, lo-fi, synthwave")
    mood: str = Field(description="Mood of the score")
    duration: Optional[int] = Field(default=None, ge=10, le=MUSIC_GENERATION_CONFIG["max_duration"])
    instrumental: bool = True


def _aspect_ratio(requested: Optional[str]) -> str:
    return requested or EXPORT_CONFIG["default_aspect_ratio"]


def _placeholder(scene_id: str) -> Visual:
    return {
        "scene_id": scene_id,
        "url": "",
        "type": "image",
        "is_placeholder": True,
        "is_animated": False,
        "generated_with_veo": False,
    }


def _set_visual(context: ToolContext, session_id: str, index: int, visual: Visual) -> Visual:
    def mutate(state: ProductionState):
        scenes = get_scenes(state)
        visuals = state.setdefault("visuals", [])
        while len(visuals) < index:
            visuals.append(_placeholder(scenes[len(visuals)]["id"]))
        if index < len(visuals):
            visuals[index] = visual
        else:
            visuals.append(visual)

    context.store.update(session_id, mutate)
    return visual


def _scene_prompt(scene: Dict[str, Any], style: Optional[str] = None) -> str:
    prompt = scene.get("visual_description") or scene.get("name") or ""
    if scene.get("emotional_tone"):
        prompt = f"{prompt} Mood: {scene['emotional_tone']}."
    if style:
        prompt = f"{prompt} Style: {style}."
    return prompt


def _veo_model(use_fast_model: bool) -> str:
    return GOOGLE_VEO_CONFIG["fast_model"] if use_fast_model else GOOGLE_VEO_CONFIG["default_model"]


# --- Helpers shared with recovery fallbacks ---

def fill_placeholder_visuals(context: ToolContext, session_id: str) -> Dict[str, int]:
    """Give every scene without a usable visual a placeholder entry"""
    counts = {"placeholderCount": 0, "visualCount": 0}

    def mutate(state: ProductionState):
        scenes = get_scenes(state)
        visuals = state.setdefault("visuals", [])
        for i, scene in enumerate(scenes):
            if i >= len(visuals):
                visuals.append(_placeholder(scene["id"]))
                counts["placeholderCount"] += 1
            elif not visuals[i].get("url"):
                visuals[i] = _placeholder(scene["id"])
                counts["placeholderCount"] += 1
        counts["visualCount"] = len(visuals)

    context.store.update(session_id, mutate)
    logger.warning(f"[Media] Inserted {counts['placeholderCount']} placeholder visual(s) for {session_id}")
    return counts


def render_static_image(context: ToolContext, session_id: str, index: int, style: Optional[str] = None,
                        aspect_ratio: Optional[str] = None) -> Visual:
    """Generate a still image for one scene and store it at ``visuals[index]``"""
    scene = get_scenes(context.store.require(session_id))[index]
    prompt = _scene_prompt(scene, style)
    url = context.providers.images.generate_image(prompt, aspect_ratio=_aspect_ratio(aspect_ratio),
                                                  style=style, session_id=session_id)
    return _set_visual(context, session_id, index, {
        "scene_id": scene["id"],
        "url": url,
        "type": "image",
        "prompt": prompt,
        "is_placeholder": False,
        "is_animated": False,
        "generated_with_veo": False,
    })


def render_text_to_video(context: ToolContext, session_id: str, index: int,
                         aspect_ratio: Optional[str] = None, duration_seconds: int = 8,
                         use_fast_model: bool = True, style: Optional[str] = None) -> Visual:
    """Generate a Veo clip for one scene from its description and store it at ``visuals[index]``"""
    scene = get_scenes(context.store.require(session_id))[index]
    prompt = _scene_prompt(scene, style)
    url = context.providers.video.generate_video(prompt, aspect_ratio=_aspect_ratio(aspect_ratio),
                                                 duration_seconds=duration_seconds,
                                                 use_fast_model=use_fast_model, session_id=session_id)
    return _set_visual(context, session_id, index, {
        "scene_id": scene["id"],
        "url": url,
        "type": "video",
        "prompt": prompt,
        "is_placeholder": False,
        "is_animated": True,
        "generated_with_veo": True,
        "video_url": url,
    })


# --- Tools ---

def generate_visuals(context: ToolContext, args: GenerateVisualsArgs) -> Dict[str, Any]:
    """Generate one visual per scene (images, or Veo clips for the first veoVideoCount scenes).

    Existing visuals are kept, so a retry only fills the missing scenes.
    """
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    scenes = state["content_plan"]["scenes"]
    style = args.style or state["content_plan"].get("style")
    session_id = args.content_plan_id
    generated = 0

    for i in range(len(scenes)):
        context.emit_scene_progress("generate_visuals", i + 1, len(scenes),
                                    f"Generating visual {i + 1}/{len(scenes)}")
        visuals = context.store.require(session_id).get("visuals") or []
        if i < len(visuals) and visuals[i].get("url") and not visuals[i].get("is_placeholder"):
            continue
        if i < args.veo_video_count:
            render_text_to_video(context, session_id, i, args.aspect_ratio, style=style)
        else:
            render_static_image(context, session_id, i, style=style, aspect_ratio=args.aspect_ratio)
        generated += 1

    visuals = context.store.require(session_id)["visuals"]
    video_count = len([v for v in visuals if v.get("type") == "video"])
    return {
        "success": True,
        "visualCount": len(visuals),
        "videoCount": video_count,
        "imageCount": len(visuals) - video_count,
        "generated": generated,
        "style": style,
        "aspectRatio": _aspect_ratio(args.aspect_ratio),
        "message": f"Generated {generated} visual(s); {len(visuals)}/{len(scenes)} scenes covered",
    }


def _check_scene(state: ProductionState, index: int) -> Optional[Dict[str, Any]]:
    scenes = get_scenes(state)
    if index >= len(scenes):
        return failure(f"sceneIndex {index} is out of range (plan has {len(scenes)} scenes)",
                       f"Use a sceneIndex between 0 and {len(scenes) - 1}")
    return None


def generate_video(context: ToolContext, args: GenerateVideoArgs) -> Dict[str, Any]:
    """Generate a Veo video clip for one scene from its description."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    error = _check_scene(state, args.scene_index)
    if error:
        return error

    style = args.style or state["content_plan"].get("style")
    visual = render_text_to_video(context, args.content_plan_id, args.scene_index, args.aspect_ratio,
                                  duration_seconds=args.duration_seconds,
                                  use_fast_model=args.use_fast_model, style=style)
    return {
        "success": True,
        "sceneIndex": args.scene_index,
        "videoUrl": visual["url"],
        "duration": args.duration_seconds,
        "model": _veo_model(args.use_fast_model),
        "message": f"Generated a {args.duration_seconds}s clip for scene {args.scene_index + 1}",
    }


def animate_image(context: ToolContext, args: AnimateImageArgs) -> Dict[str, Any]:
    """Animate the generated image of one scene into a short motion clip."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error
    error = _check_scene(state, args.scene_index)
    if error:
        return error

    visuals = state.get("visuals") or []
    index = args.scene_index
    if index >= len(visuals) or not visuals[index].get("url") or visuals[index].get("is_placeholder"):
        return failure(f"Scene {index + 1} has no image to animate", "Run generate_visuals first")

    scene = state["content_plan"]["scenes"][index]
    motion_prompt = context.providers.planner.motion_prompt(
        scene.get("visual_description") or "", scene.get("emotional_tone") or "", int(scene.get("duration") or 5)
    )
    video_url = context.providers.animator.animate(visuals[index]["url"], motion_prompt,
                                                   _aspect_ratio(args.aspect_ratio))

    def mutate(s: ProductionState):
        s["visuals"][index].update({"video_url": video_url, "is_animated": True})

    context.store.update(args.content_plan_id, mutate)
    return {
        "success": True,
        "sceneIndex": index,
        "videoUrl": video_url,
        "motionPrompt": motion_prompt,
        "message": f"Animated scene {index + 1}",
    }


def plan_sfx(context: ToolContext, args: PlanSfxArgs) -> Dict[str, Any]:
    """Pick an ambient sound bed for each scene (and attach generated music when present)."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    scenes = state["content_plan"]["scenes"]
    library = context.providers.sfx
    planned: List[Dict[str, Any]] = []
    start = 0.0
    for i, scene in enumerate(scenes):
        context.emit_scene_progress("plan_sfx", i + 1, len(scenes), f"Choosing ambience for scene {i + 1}")
        duration = float(scene.get("duration") or 0)
        text = f"{scene.get('visual_description', '')} {scene.get('narration_script', '')}"
        track_id = scene.get("ambient_sfx") or suggest_ambient_track(text, scene.get("emotional_tone") or args.mood)
        if track_id:
            sound = library.resolve(track_id) if library.configured else None
            planned.append({
                "scene_id": scene["id"],
                "scene_index": i,
                "track_id": track_id,
                "name": (sound or {}).get("name") or track_id,
                "url": (sound or {}).get("url"),
                "suggested_volume": AMBIENT_CATALOG[track_id]["volume"],
                "start": start,
                "duration": duration,
            })
        start += duration

    background_music = None
    if state.get("music_url"):
        background_music = {"url": state["music_url"], "suggested_volume": 0.6,
                            "name": (state.get("music_track") or {}).get("title")}

    sfx_plan = {"scenes": planned, "background_music": background_music, "mood": args.mood}
    context.store.update(args.content_plan_id, lambda s: s.update({"sfx_plan": sfx_plan}))
    resolved = len([p for p in planned if p["url"]])
    return {
        "success": True,
        "sceneCount": len(planned),
        "tracksResolved": resolved,
        "hasBackgroundMusic": background_music is not None,
        "message": f"Planned ambience for {len(planned)}/{len(scenes)} scenes ({resolved} with audio)",
    }


def generate_music(context: ToolContext, args: GenerateMusicArgs) -> Dict[str, Any]:
    """Generate an instrumental background score for the whole video."""
    state, error = require_plan(context, args.content_plan_id)
    if error:
        return error

    duration = args.duration or int(state["content_plan"].get("total_duration") or
                                     MUSIC_GENERATION_CONFIG["default_duration"])
    prompt = f"{args.mood} {args.style} background score for a video about {state['content_plan'].get('topic', '')}"
    track = context.providers.music.generate(prompt.strip(), args.style, duration=duration,
                                             instrumental=args.instrumental)

    def mutate(s: ProductionState):
        s["music_task_id"] = track.get("task_id")
        s["music_url"] = track.get("url")
        s["music_track"] = track
        if s.get("sfx_plan") is not None:
            s["sfx_plan"]["background_music"] = {"url": track.get("url"), "suggested_volume": 0.6,
                                                 "name": track.get("title")}

    context.store.update(args.content_plan_id, mutate)
    return {
        "success": True,
        "taskId": track.get("task_id"),
        "musicUrl": track.get("url"),
        "duration": track.get("duration") or duration,
        "title": track.get("title"),
        "message": f"Generated background music \"{track.get('title')}\"",
    }
