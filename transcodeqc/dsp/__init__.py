"""DSP modules for TranscodeQC."""

from transcodeqc.dsp.frames import (
    FRAME_SIZE,
    HOP_SIZE,
    bin_resolution,
    frame_count,
    frame_spectra,
    iter_frames,
)
from transcodeqc.dsp.windowing import hann

__all__ = [
    "FRAME_SIZE",
    "HOP_SIZE",
    "bin_resolution",
    "frame_count",
    "frame_spectra",
    "hann",
    "iter_frames",
]
