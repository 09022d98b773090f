"""Windowing functions for DSP operations."""
import numpy as np


def hann(n: int) -> np.ndarray:
    """Generate a Hann window of length n: 0.5 * (1 - cos(2*pi*i / (n - 1)))."""
    if n <= 0:
        raise ValueError("Window length must be positive.")
    return np.hanning(n).astype(np.float64)
