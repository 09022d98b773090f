from __future__ import annotations
import numpy as np
from transcodeqc.analysis.bands import band_slice
from transcodeqc.dsp.frames import FRAME_SIZE
from transcodeqc.types import FrequencyBand

FLATNESS_EPS = 1e-10


def band_magnitudes(spectrum: np.ndarray, band: FrequencyBand, fs: float, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """Magnitudes of the bins inside a band."""
    return np.abs(band_slice(spectrum, band, fs, frame_size)).astype(np.float64)


def spectral_flatness(magnitudes: np.ndarray) -> float:
    """
    Spectral flatness (Wiener entropy) of a magnitude sequence.

    Geometric mean over arithmetic mean, the geometric mean taken in log
    space. Near 1.0 for noise-like content, near 0.0 for a tone or silence.
    Returns 0.0 for empty input or a non-positive arithmetic mean.
    """
    mags = np.asarray(magnitudes, dtype=np.float64).ravel()
    if mags.size == 0:
        return 0.0
    arith_mean = float(np.mean(mags))
    if arith_mean <= 0:
        return 0.0
    geom_mean = float(np.exp(np.mean(np.log(mags + FLATNESS_EPS))))
    return geom_mean / arith_mean
