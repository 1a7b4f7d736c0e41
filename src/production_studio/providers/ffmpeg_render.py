"""
Final video rendering with ffmpeg-python

Each scene becomes one normalized clip (still images are looped, video
clips are looped or trimmed to the scene duration, placeholders render as
black frames). Clips are concatenated, subtitles burned in when provided,
and the mixed audio is laid over the result.
"""

import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

import ffmpeg

from ..core.config import EXPORT_CONFIG
from ..core.errors import ProviderError
from .ffmpeg_audio import prepare_media_for_ffmpeg

logger = logging.getLogger(__name__)

CODECS = {
    "mp4": {"vcodec": "libx264", "acodec": "aac", "extra": {"movflags": "faststart", "pix_fmt": "yuv420p"}},
    "webm": {"vcodec": "libvpx-vp9", "acodec": "libopus", "extra": {"pix_fmt": "yuv420p"}},
}


class FFmpegRenderer:
    """Renders scene visuals + audio (+ subtitles) into an mp4 or webm"""

    def _scene_stream(self, scene: Dict[str, Any], width: int, height: int, fps: int):
        duration = max(float(scene.get("duration") or 0), 0.5)
        url = scene.get("url")
        if not url:
            stream = ffmpeg.input(f"color=c=black:s={width}x{height}:r={fps}", f="lavfi", t=duration)
            return stream.video

        source = prepare_media_for_ffmpeg(url)
        if scene.get("type") == "video":
            stream = ffmpeg.input(source, stream_loop=-1, t=duration).video
        else:
            stream = ffmpeg.input(source, loop=1, t=duration, framerate=fps).video

        return (
            stream
            .filter("scale", width, height, force_original_aspect_ratio="decrease")
            .filter("pad", width, height, "(ow-iw)/2", "(oh-ih)/2", color="black")
            .filter("setsar", 1)
            .filter("fps", fps=fps)
        )

    def render(self, scenes: List[Dict[str, Any]], audio: bytes, output_format: str = "mp4",
               aspect_ratio: str = "16:9", quality: str = "standard",
               subtitles: Optional[Dict[str, str]] = None, fps: Optional[int] = None) -> Dict[str, Any]:
        """
        Render the final video

        Args:
            scenes: [{"url", "type", "duration"}] in scene order
            audio: Mixed (or narration) WAV
            output_format: "mp4" or "webm"
            aspect_ratio: Key of EXPORT_CONFIG["resolutions"]
            quality: Key of EXPORT_CONFIG["quality_presets"]
            subtitles: Optional {"format": "srt"|"vtt", "content": str} to burn in
            fps: Frame rate override (defaults to the quality preset)

        Returns:
            {"video": bytes, "duration": float, "resolution": "WxH"}
        """
        if not scenes:
            raise ValueError("Nothing to render: no scenes")
        width, height = EXPORT_CONFIG["resolutions"].get(aspect_ratio, EXPORT_CONFIG["resolutions"]["16:9"])
        preset = EXPORT_CONFIG["quality_presets"].get(quality, EXPORT_CONFIG["quality_presets"]["standard"])
        codec = CODECS.get(output_format, CODECS["mp4"])
        fps = fps or preset["fps"]
        duration = sum(max(float(s.get("duration") or 0), 0.5) for s in scenes)

        with tempfile.TemporaryDirectory(prefix="render_") as work_dir:
            audio_path = os.path.join(work_dir, "audio.wav")
            output_path = os.path.join(work_dir, f"output.{output_format}")
            with open(audio_path, "wb") as f:
                f.write(audio)

            clips = [self._scene_stream(scene, width, height, fps) for scene in scenes]
            video = ffmpeg.concat(*clips, n=len(clips), v=1, a=0) if len(clips) > 1 else clips[0]

            if subtitles and subtitles.get("content"):
                subtitle_path = os.path.join(work_dir, f"subtitles.{subtitles.get('format', 'srt')}")
                with open(subtitle_path, "w", encoding="utf-8") as f:
                    f.write(subtitles["content"])
                video = video.filter("subtitles", subtitle_path)

            audio_stream = ffmpeg.input(audio_path).audio
            output_args = {
                "vcodec": codec["vcodec"],
                "acodec": codec["acodec"],
                "r": fps,
                "t": duration,
                "b:a": f"{EXPORT_CONFIG['audio_bitrate_kbps']}k",
                **codec["extra"],
            }
            if output_format == "webm":
                output_args["b:v"] = f"{preset['video_bitrate_kbps']}k"
                output_args["crf"] = preset["crf"]
            else:
                output_args["preset"] = preset["preset"]
                output_args["crf"] = preset["crf"]

            output = ffmpeg.output(video, audio_stream, output_path, **output_args)
            logger.info(f"[Renderer] Rendering {len(scenes)} scene(s) at {width}x{height} "
                        f"{output_format}/{quality} ({duration:.1f}s)")

            process = ffmpeg.run_async(output, pipe_stderr=True, overwrite_output=True)
            _, stderr = process.communicate()
            if process.returncode != 0:
                error_msg = stderr.decode("utf-8", errors="ignore") if stderr else "Unknown FFmpeg error"
                logger.error(f"[Renderer] FFmpeg failed with code {process.returncode}:\n{error_msg[-1000:]}")
                raise ProviderError(f"FFmpeg render error: {error_msg[-800:]}", provider="ffmpeg")

            with open(output_path, "rb") as f:
                video_bytes = f.read()

        logger.info(f"[Renderer] Rendered {len(video_bytes) / (1024 * 1024):.1f} MB")
        return {"video": video_bytes, "duration": duration, "resolution": f"{width}x{height}"}
