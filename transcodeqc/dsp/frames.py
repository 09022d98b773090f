from __future__ import annotations
from typing import Iterator

import numpy as np
from transcodeqc.dsp.windowing import hann

FRAME_SIZE = 8192
HOP_SIZE = FRAME_SIZE // 2


def bin_resolution(fs: float, frame_size: int = FRAME_SIZE) -> float:
    """Width of one FFT bin in Hz."""
    if fs <= 0:
        raise ValueError("Sample rate must be positive.")
    return float(fs) / float(frame_size)


def frame_count(n_samples: int, frame_size: int = FRAME_SIZE, hop_size: int = HOP_SIZE) -> int:
    """Number of full frames over n_samples (at least one)."""
    if frame_size <= 0 or hop_size <= 0:
        raise ValueError("frame_size and hop_size must be positive.")
    if n_samples < frame_size:
        return 1
    return max(1, (n_samples - frame_size) // hop_size + 1)


def iter_frames(
    samples: np.ndarray,
    frame_size: int = FRAME_SIZE,
    hop_size: int = HOP_SIZE
) -> Iterator[np.ndarray]:
    """
    Yield Hann-windowed frames of a mono signal.

    Frames start at k * hop_size and are produced lazily; calling again
    restarts from the first frame. Nothing is yielded when the signal is
    shorter than one frame.
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("iter_frames expects mono 1D signal.")
    if x.size < frame_size:
        return
    w = hann(frame_size)
    for k in range(frame_count(x.size, frame_size, hop_size)):
        start = k * hop_size
        yield x[start:start + frame_size] * w


def frame_spectra(
    samples: np.ndarray,
    frame_size: int = FRAME_SIZE,
    hop_size: int = HOP_SIZE
) -> Iterator[np.ndarray]:
    """Yield the complex FFT (frame_size bins) of each windowed frame."""
    for seg in iter_frames(samples, frame_size, hop_size):
        yield np.fft.fft(seg.astype(np.complex128), n=frame_size)
