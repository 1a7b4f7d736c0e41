"""
Audio mixing with ffmpeg-python

Narration is the lead track. Music, ambient SFX and the native audio of
video clips are layered under it; with ducking on, music is sidechain
compressed against the narration so it dips while someone is speaking.
"""

import io
import logging
import os
import tempfile
import wave
from typing import Any, Dict, List, Optional

import ffmpeg

from ..core.config import AUDIO_MIX_CONFIG
from ..core.errors import ProviderError
from ..storage.gcs_utils import generate_signed_url

logger = logging.getLogger(__name__)


def prepare_media_for_ffmpeg(media_ref: str) -> str:
    """FFmpeg reads https:// and local paths but not gs://, so sign GCS objects"""
    if media_ref.startswith("gs://"):
        return generate_signed_url(media_ref, expiration_days=1)
    return media_ref


def concat_wav_segments(segments: List[bytes]) -> bytes:
    """Join WAV blobs that share one sample format into a single WAV"""
    if not segments:
        raise ValueError("No audio segments to join")
    buffer = io.BytesIO()
    params = None
    with wave.open(buffer, "wb") as out:
        for data in segments:
            with wave.open(io.BytesIO(data), "rb") as segment:
                if params is None:
                    params = segment.getparams()
                    out.setparams(params)
                elif segment.getparams()[:3] != params[:3]:
                    raise ValueError("Narration segments use different sample formats")
                out.writeframes(segment.readframes(segment.getnframes()))
    return buffer.getvalue()


def _run(output, label: str):
    """Run an ffmpeg graph, raising ProviderError with the stderr tail on failure"""
    try:
        cmd_args = output.get_args()
        logger.info(f"[AudioMixer] FFmpeg command: ffmpeg {' '.join(cmd_args)}")
    except Exception as e:
        logger.warning(f"[AudioMixer] Could not log FFmpeg command: {e}")

    process = ffmpeg.run_async(output, pipe_stderr=True, overwrite_output=True)
    _, stderr = process.communicate()
    if process.returncode != 0:
        error_msg = stderr.decode("utf-8", errors="ignore") if stderr else "Unknown FFmpeg error"
        logger.error(f"[AudioMixer] {label} failed with code {process.returncode}:\n{error_msg[-1000:]}")
        raise ProviderError(f"FFmpeg {label} error: {error_msg[-800:]}", provider="ffmpeg")


class FFmpegAudioMixer:
    """Layers narration, music, SFX and clip audio into one WAV"""

    def __init__(self, sample_rate: int = AUDIO_MIX_CONFIG["sample_rate"]):
        self.sample_rate = sample_rate

    def mix(self, narration: bytes, duration: float, music_url: Optional[str] = None,
            sfx_tracks: Optional[List[Dict[str, Any]]] = None,
            video_audio_urls: Optional[List[str]] = None,
            volumes: Optional[Dict[str, float]] = None,
            ducking: bool = True) -> Dict[str, Any]:
        """
        Mix all sources down to one track

        Args:
            narration: Narration WAV (full length)
            duration: Output length in seconds
            music_url: Background music, looped to the full length
            sfx_tracks: [{"url", "start", "duration", "volume"}] ambient beds per scene
            video_audio_urls: Video clips whose soundtrack joins the mix
            volumes: narration / music / sfx / video_audio master volumes
            ducking: Compress music under narration

        Returns:
            {"audio": WAV bytes, "duration": float, "ducking_applied": bool}
        """
        volumes = {
            "narration": AUDIO_MIX_CONFIG["narration_volume"],
            "music": AUDIO_MIX_CONFIG["music_volume"],
            "sfx": AUDIO_MIX_CONFIG["sfx_volume"],
            "video_audio": AUDIO_MIX_CONFIG["video_audio_volume"],
            **(volumes or {}),
        }
        sfx_tracks = sfx_tracks or []
        video_audio_urls = video_audio_urls or []

        with tempfile.TemporaryDirectory(prefix="mix_") as work_dir:
            narration_path = os.path.join(work_dir, "narration.wav")
            output_path = os.path.join(work_dir, "mix.wav")
            with open(narration_path, "wb") as f:
                f.write(narration)

            narration_stream = ffmpeg.input(narration_path).audio.filter("volume", volumes["narration"])
            layers = []
            ducking_applied = False

            if music_url:
                music = ffmpeg.input(prepare_media_for_ffmpeg(music_url), stream_loop=-1, t=duration).audio
                music = music.filter("volume", volumes["music"])
                if ducking:
                    split = narration_stream.filter_multi_output("asplit", 2)
                    narration_stream = split[0]
                    music = ffmpeg.filter(
                        [music, split[1]],
                        "sidechaincompress",
                        threshold=AUDIO_MIX_CONFIG["ducking_threshold"],
                        ratio=AUDIO_MIX_CONFIG["ducking_ratio"],
                        attack=20,
                        release=400,
                    )
                    ducking_applied = True
                layers.append(music)

            for track in sfx_tracks:
                clip_duration = track.get("duration") or duration
                sfx = ffmpeg.input(prepare_media_for_ffmpeg(track["url"]), stream_loop=-1, t=clip_duration).audio
                sfx = sfx.filter("volume", (track.get("volume") or 1.0) * volumes["sfx"])
                delay_ms = int((track.get("start") or 0) * 1000)
                if delay_ms:
                    sfx = sfx.filter("adelay", f"{delay_ms}|{delay_ms}")
                layers.append(sfx)

            for url in video_audio_urls:
                clip = ffmpeg.input(prepare_media_for_ffmpeg(url)).audio.filter("volume", volumes["video_audio"])
                layers.append(clip)

            if layers:
                # normalize=0 keeps the narration at its own level
                mixed = ffmpeg.filter([narration_stream] + layers, "amix", inputs=len(layers) + 1,
                                      duration="first", dropout_transition=0, normalize=0)
            else:
                mixed = narration_stream

            output = ffmpeg.output(mixed, output_path, acodec="pcm_s16le", ar=self.sample_rate, ac=2, t=duration)
            logger.info(f"[AudioMixer] Mixing narration with {len(layers)} layer(s), ducking={ducking_applied}")
            _run(output, "audio mixing")

            with open(output_path, "rb") as f:
                audio = f.read()

        return {"audio": audio, "duration": duration, "ducking_applied": ducking_applied}
