from __future__ import annotations
import math

import numpy as np
from transcodeqc.dsp.frames import FRAME_SIZE, bin_resolution
from transcodeqc.types import FrequencyBand

FLATNESS_BAND = FrequencyBand("flatness_19_21k", 19000, 21000)


def default_transcode_bands() -> list[FrequencyBand]:
    """Return the frequency bands used for transcode detection."""
    return [
        FrequencyBand("full", 20, 20000),
        FrequencyBand("mid_high", 10000, 15000),
        FrequencyBand("high", 15000, 20000),
        FrequencyBand("upper", 17000, 20000),
        FrequencyBand("band_19_20k", 19000, 20000),
        FrequencyBand("ultrasonic", 20000, 22000),
    ]


def band_bins(band: FrequencyBand, fs: float, frame_size: int = FRAME_SIZE) -> tuple[int, int]:
    """
    Map a band to an inclusive (low_bin, high_bin) range.

    The upper edge is clamped to the Nyquist bin. low_bin > high_bin means
    the band lies entirely above Nyquist.
    """
    res = bin_resolution(fs, frame_size)
    low_bin = int(math.floor(band.f_low / res))
    high_bin = min(int(math.floor(band.f_high / res)), frame_size // 2)
    return low_bin, high_bin


def band_slice(spectrum: np.ndarray, band: FrequencyBand, fs: float, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """Return the spectrum bins covered by a band (may be empty)."""
    low_bin, high_bin = band_bins(band, fs, frame_size)
    high_bin = min(high_bin, len(spectrum) - 1)
    if low_bin > high_bin:
        return spectrum[:0]
    return spectrum[low_bin:high_bin + 1]


def band_energy(spectrum: np.ndarray, band: FrequencyBand, fs: float, frame_size: int = FRAME_SIZE) -> float:
    """L2 norm of bin magnitudes within a band, 0.0 for an empty range."""
    bins = band_slice(spectrum, band, fs, frame_size)
    if bins.size == 0:
        return 0.0
    mag = np.abs(bins)
    return float(np.sqrt(np.sum(mag * mag)))


class BandEnergyAccumulator:
    """Sum per-band energies over frames and average them."""

    def __init__(self, bands: list[FrequencyBand], fs: float, frame_size: int = FRAME_SIZE):
        self.bands = list(bands)
        self.fs = float(fs)
        self.frame_size = int(frame_size)
        self.totals = {b.name: 0.0 for b in self.bands}
        self.frames = 0

    def add(self, spectrum: np.ndarray) -> None:
        for b in self.bands:
            self.totals[b.name] += band_energy(spectrum, b, self.fs, self.frame_size)
        self.frames += 1

    def means(self) -> dict[str, float]:
        n = max(1, self.frames)
        return {name: total / n for name, total in self.totals.items()}
