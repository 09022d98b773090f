from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import numpy as np
import soundfile as sf

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def white_noise(seconds: float = 5.0, fs: int = 44100, amp: float = 0.1, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return amp * rng.standard_normal(int(seconds * fs))


def lowpass_brickwall(x: np.ndarray, fs: float, cutoff_hz: float) -> np.ndarray:
    """Zero all spectral content above cutoff_hz."""
    X = np.fft.rfft(x)
    freqs = np.fft.rfftfreq(x.size, d=1.0 / fs)
    X[freqs > cutoff_hz] = 0.0
    return np.fft.irfft(X, n=x.size)


def wav_bytes(x: np.ndarray, fs: int, subtype: str = "FLOAT") -> bytes:
    buf = io.BytesIO()
    sf.write(buf, x, fs, format="WAV", subtype=subtype)
    return buf.getvalue()


def write_rule_file(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
