from __future__ import annotations
import math


def q(x: float, step: float) -> float:
    """Round half away from zero to the nearest step, for stable report hashes."""
    if x is None or math.isnan(x) or math.isinf(x):
        return x
    inv = 1.0 / step
    y = x * inv
    yq = math.floor(abs(y) + 0.5)
    if yq == 0:
        return 0.0
    return math.copysign(yq, y) / inv


def q_fields(values: dict, steps: dict[str, float], default_step: float) -> dict:
    """Quantize every value of a flat numeric dict, with per-key steps."""
    return {
        key: q(float(value), steps.get(key, default_step))
        for key, value in values.items()
    }
