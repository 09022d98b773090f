#!/usr/bin/env python
"""
Synthesize test vectors for TranscodeQC validation.

Writes 24-bit FLAC files: full-bandwidth noise standing in for genuine
lossless audio, and copies brickwall-filtered at the cutoffs typical of
lossy encoders, then prints the score each one receives.
"""
from __future__ import annotations
import sys
from pathlib import Path

import numpy as np
import soundfile as sf

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from transcodeqc.analysis.spectral import analyze_outcome  # noqa: E402
from transcodeqc.thresholds.verdict import verdict_for  # noqa: E402

# Approximate low-pass points of common MP3 encoder settings.
LOSSY_CUTOFFS_HZ = {
    "mp3_128k": 16000.0,
    "mp3_192k": 19000.0,
    "mp3_320k": 20000.0,
}


def gen_pink_noise(duration_s: float, fs: int, amp: float = 1.0, seed: int = 42) -> np.ndarray:
    """Generate pink noise (1/f spectrum)."""
    n_samples = int(duration_s * fs)
    white = np.random.default_rng(seed).standard_normal(n_samples)
    X = np.fft.rfft(white)
    freqs = np.fft.rfftfreq(n_samples, 1 / fs)
    freqs[0] = 1.0
    X = X / np.sqrt(freqs)
    pink = np.fft.irfft(X, n=n_samples)
    pink = pink / (np.max(np.abs(pink)) + 1e-10)
    return amp * pink


def gen_white_noise(duration_s: float, fs: int, amp: float = 1.0, seed: int = 43) -> np.ndarray:
    """Generate white noise."""
    white = np.random.default_rng(seed).standard_normal(int(duration_s * fs))
    white = white / (np.max(np.abs(white)) + 1e-10)
    return amp * white


def brickwall(x: np.ndarray, fs: int, cutoff_hz: float) -> np.ndarray:
    """Remove all content above cutoff_hz, the way a lossy encoder's low-pass does."""
    X = np.fft.rfft(x)
    X[np.fft.rfftfreq(x.size, 1 / fs) > cutoff_hz] = 0.0
    return np.fft.irfft(X, n=x.size)


def db_to_linear(db: float) -> float:
    """Convert dB to linear amplitude."""
    return 10.0 ** (db / 20.0)


def main():
    """Generate all test vectors and report their scores."""
    base_dir = ROOT / "validation" / "vectors"
    base_dir.mkdir(parents=True, exist_ok=True)
    fs = 44100
    duration = 10.0

    sources = {
        "pink": gen_pink_noise(duration, fs, db_to_linear(-20.0)),
        "white": gen_white_noise(duration, fs, db_to_linear(-20.0)),
    }

    print("Generating test vectors...")
    for source_name, samples in sources.items():
        variants = {"lossless": samples}
        for label, cutoff in LOSSY_CUTOFFS_HZ.items():
            variants[label] = brickwall(samples, fs, cutoff)
        for label, x in variants.items():
            path = base_dir / f"{source_name}_{label}.flac"
            sf.write(path, x, fs, subtype="PCM_24")
            outcome = analyze_outcome(path.read_bytes())
            verdict = verdict_for(outcome)
            flags = ",".join(outcome.result.flags) or "-"
            print(f"  {path.name}: score={outcome.result.score} verdict={verdict.value} flags={flags}")

    print(f"\nGenerated {len(sources) * (len(LOSSY_CUTOFFS_HZ) + 1)} test vectors in: {base_dir}")


if __name__ == "__main__":
    main()
