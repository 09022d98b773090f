"""dB conversion and band drop metrics."""
from __future__ import annotations

import math

from transcodeqc.types import SpectralDetails

# Roughly the 16-bit quantization noise floor.
DB_FLOOR = -96.0

_LEVEL_FIELDS = {
    "full": "rms_full",
    "mid_high": "rms_mid_high",
    "high": "rms_high",
    "upper": "rms_upper",
    "band_19_20k": "rms_19_20k",
    "ultrasonic": "rms_ultrasonic",
}


def to_db(value: float) -> float:
    """Convert a linear magnitude to dB, DB_FLOOR for non-positive input."""
    if value <= 0:
        return DB_FLOOR
    return 20.0 * math.log10(value)


def band_drops(levels_db: dict[str, float]) -> tuple[float, float, float]:
    """Return (high_drop, upper_drop, ultrasonic_drop); positive means attenuation."""
    high_drop = levels_db["full"] - levels_db["high"]
    upper_drop = levels_db["mid_high"] - levels_db["upper"]
    ultrasonic_drop = levels_db["band_19_20k"] - levels_db["ultrasonic"]
    return high_drop, upper_drop, ultrasonic_drop


def build_details(energies: dict[str, float], flatness: float) -> SpectralDetails:
    """Build SpectralDetails from averaged linear band energies."""
    levels_db = {name: to_db(float(energies[name])) for name in _LEVEL_FIELDS}
    high_drop, upper_drop, ultrasonic_drop = band_drops(levels_db)
    return SpectralDetails(
        **{_LEVEL_FIELDS[name]: db for name, db in levels_db.items()},
        high_drop=high_drop,
        upper_drop=upper_drop,
        ultrasonic_drop=ultrasonic_drop,
        ultrasonic_flatness=float(flatness),
    )
