"""Audio decoding adapter: compressed bytes to bounded mono PCM."""
from __future__ import annotations
import io
import json
import logging
import shutil
import subprocess
import warnings as py_warnings
from pathlib import Path

import numpy as np
from transcodeqc.types import AudioBuffer

logger = logging.getLogger(__name__)

MAX_DECODE_SECONDS = 15.0


def _downmix(
    samples: np.ndarray,
    *,
    backend: str,
    warnings: list[str]
) -> tuple[np.ndarray, int]:
    """Average decoded channels into a mono float64 buffer."""
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim == 1:
        return x, 1
    if x.ndim != 2:
        raise ValueError("Decoded audio must be 1D or 2D array.")
    channels = x.shape[1]
    if channels == 1:
        return x[:, 0], 1
    warnings.append(f"{backend}: downmixed {channels} channels to mono.")
    return np.mean(x, axis=1), channels


def _decode_soundfile(data: bytes, max_seconds: float) -> tuple[np.ndarray, float, list[str]]:
    """Decode using soundfile (libsndfile), reading at most max_seconds."""
    try:
        import soundfile as sf
    except Exception as exc:
        raise RuntimeError("soundfile backend not available.") from exc

    with py_warnings.catch_warnings(record=True) as w:
        py_warnings.simplefilter("always")
        info = sf.info(io.BytesIO(data))
        max_frames = int(info.samplerate * max_seconds)
        samples, fs = sf.read(
            io.BytesIO(data),
            frames=max_frames,
            always_2d=True,
            dtype="float64",
        )
    warn_list = [str(wi.message) for wi in w]
    return samples, float(fs), warn_list


def _ffprobe_info(data: bytes) -> tuple[int, int]:
    """Return (sample_rate, channels) of the first audio stream via ffprobe."""
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise RuntimeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", "stream=sample_rate,channels",
        "-of", "json",
        "pipe:0",
    ]
    proc = subprocess.run(cmd, input=data, capture_output=True, check=False)
    if proc.returncode != 0:
        raise ValueError(f"ffprobe failed: {proc.stderr.decode('utf-8', errors='replace').strip()}")
    info = json.loads(proc.stdout.decode("utf-8"))
    streams = info.get("streams", [])
    if not streams:
        raise ValueError("ffprobe reported no audio streams.")
    stream = streams[0]
    return int(stream["sample_rate"]), int(stream["channels"])


def _decode_ffmpeg(data: bytes, max_seconds: float) -> tuple[np.ndarray, float, list[str]]:
    """Decode using ffmpeg to raw float32 PCM, reading at most max_seconds."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg backend not available.")
    fs, ch = _ffprobe_info(data)
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", "pipe:0",
        "-t", f"{max_seconds:g}",
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, input=data, capture_output=True, check=False)
    warn_list = [line for line in proc.stderr.decode("utf-8", errors="replace").splitlines() if line.strip()]
    if proc.returncode != 0:
        raise ValueError("ffmpeg decode failed.")
    samples = np.frombuffer(proc.stdout, dtype=np.float32)
    if ch > 0:
        n = (samples.size // ch) * ch
        if n != samples.size:
            warn_list.append("ffmpeg: trimmed partial frame at end of stream.")
            samples = samples[:n]
        samples = samples.reshape(-1, ch)
    return samples.astype(np.float64), float(fs), warn_list


def decode_audio_bytes(data: bytes, *, max_seconds: float = MAX_DECODE_SECONDS) -> AudioBuffer | None:
    """
    Decode an in-memory audio file to a mono buffer.

    The container/codec is auto-detected. soundfile is tried first, ffmpeg
    (when installed) second. At most max_seconds of audio are decoded from
    the start of the stream.

    Returns:
        AudioBuffer with mono float64 samples, or None when nothing could be
        decoded.
    """
    if not data:
        logger.debug("decode skipped: empty buffer")
        return None
    if max_seconds <= 0:
        raise ValueError("max_seconds must be positive.")

    warnings_list: list[str] = []
    backend = "soundfile"
    try:
        samples, fs, warn_list = _decode_soundfile(data, max_seconds)
        warnings_list.extend(warn_list)
    except Exception as exc:
        logger.debug("soundfile decode failed: %s", exc)
        warnings_list.append(f"soundfile decode failed: {exc}")
        backend = "ffmpeg"
        try:
            samples, fs, warn_list = _decode_ffmpeg(data, max_seconds)
            warnings_list.extend(warn_list)
        except Exception as exc2:
            logger.debug("ffmpeg decode failed: %s", exc2)
            return None

    try:
        mono, channels = _downmix(samples, backend=backend, warnings=warnings_list)
    except ValueError as exc:
        logger.debug("%s returned unusable samples: %s", backend, exc)
        return None
    if mono.size == 0 or fs <= 0:
        logger.debug("%s decoded no samples", backend)
        return None

    # ffmpeg may overshoot -t by a packet.
    max_samples = int(fs * max_seconds)
    if mono.size > max_samples:
        mono = mono[:max_samples]

    return AudioBuffer(
        samples=mono,
        fs=float(fs),
        duration=mono.size / float(fs),
        channels=channels,
        backend=backend,
        warnings=warnings_list
    )


def load_audio_bytes(path: str | Path) -> bytes:
    """Read a file for analysis."""
    return Path(path).read_bytes()
