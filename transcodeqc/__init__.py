"""
TranscodeQC - Fake Lossless Detection

Scores audio files for signs that a "lossless" file was made from a lossy
source, by measuring energy and flatness in the upper frequency bands.
"""
from transcodeqc.version import __version__
from transcodeqc.types import (
    AnalysisStatus,
    Verdict,
    AudioBuffer,
    FrequencyBand,
    SpectralDetails,
    SpectralResult,
    AnalysisOutcome,
)
from transcodeqc.analysis.spectral import analyze, analyze_outcome, analyze_samples

__all__ = [
    "__version__",
    "AnalysisStatus",
    "Verdict",
    "AudioBuffer",
    "FrequencyBand",
    "SpectralDetails",
    "SpectralResult",
    "AnalysisOutcome",
    "analyze",
    "analyze_outcome",
    "analyze_samples",
]
