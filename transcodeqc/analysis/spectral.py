"""
Spectral transcode analysis.

Measures how energy is spread over the high-frequency bands of a decoded
signal and turns it into a fraud score with explanatory flags:

- genuine lossless audio rolls off gradually up to Nyquist,
- lossy encoders low-pass the signal, leaving a cliff between neighbouring
  bands and an empty, non-noise-like band just above the cutoff.
"""
from __future__ import annotations
import logging

import numpy as np
from transcodeqc.analysis.bands import (
    FLATNESS_BAND,
    BandEnergyAccumulator,
    default_transcode_bands,
)
from transcodeqc.dsp.frames import FRAME_SIZE, HOP_SIZE, frame_spectra
from transcodeqc.io.audio import MAX_DECODE_SECONDS, decode_audio_bytes
from transcodeqc.metrics.flatness import band_magnitudes, spectral_flatness
from transcodeqc.metrics.levels import build_details
from transcodeqc.thresholds.rules import score_details
from transcodeqc.types import AnalysisOutcome, AnalysisStatus, SpectralResult

logger = logging.getLogger(__name__)


def analyze_samples(
    samples: np.ndarray,
    fs: float,
    *,
    config: dict | None = None
) -> tuple[SpectralResult, int]:
    """
    Run the spectral pipeline on mono samples.

    Args:
        samples: Mono signal (1D array).
        fs: Sample rate in Hz.
        config: Optional rule table overrides.

    Returns:
        Tuple of (result, frames analyzed). Signals shorter than one frame
        give the zero result and 0 frames.
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("analyze_samples expects mono 1D signal.")
    if fs <= 0:
        raise ValueError("Sample rate must be positive.")
    if x.size < FRAME_SIZE:
        logger.debug("signal too short: %d samples < %d", x.size, FRAME_SIZE)
        return SpectralResult(), 0

    energies = BandEnergyAccumulator(default_transcode_bands(), fs, FRAME_SIZE)
    pooled: list[np.ndarray] = []
    for spectrum in frame_spectra(x, FRAME_SIZE, HOP_SIZE):
        energies.add(spectrum)
        pooled.append(band_magnitudes(spectrum, FLATNESS_BAND, fs, FRAME_SIZE))

    magnitudes = np.concatenate(pooled) if pooled else np.zeros(0)
    details = build_details(energies.means(), spectral_flatness(magnitudes))
    score, flags = score_details(details, config)
    return SpectralResult(score=score, flags=flags, details=details), energies.frames


def analyze_outcome(
    data: bytes,
    declared_sample_rate: int | None = None,
    *,
    config: dict | None = None,
    max_seconds: float = MAX_DECODE_SECONDS
) -> AnalysisOutcome:
    """
    Decode an audio file held in memory and analyze it.

    declared_sample_rate is accepted for callers that know the container's
    advertised rate; it is not used yet.

    Returns:
        AnalysisOutcome tagged analyzed, decode_failed or too_short. The two
        degenerate cases carry the zero result.
    """
    audio = decode_audio_bytes(data, max_seconds=max_seconds)
    if audio is None:
        return AnalysisOutcome(status=AnalysisStatus.DECODE_FAILED, result=SpectralResult())

    result, n_frames = analyze_samples(audio.samples, audio.fs, config=config)
    status = AnalysisStatus.ANALYZED if n_frames else AnalysisStatus.TOO_SHORT
    return AnalysisOutcome(
        status=status,
        result=result,
        sample_rate=audio.fs,
        n_samples=int(audio.samples.size),
        n_frames=n_frames,
        decode_backend=audio.backend,
        decode_warnings=tuple(audio.warnings),
    )


def analyze(
    data: bytes,
    declared_sample_rate: int | None = None,
    *,
    config: dict | None = None
) -> SpectralResult:
    """
    Score an in-memory audio file for signs of a lossy origin.

    Undecodable and too-short input both yield the zero result; use
    analyze_outcome to tell them apart.
    """
    return analyze_outcome(data, declared_sample_rate, config=config).result
