from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
import numpy as np


class AnalysisStatus(str, Enum):
    ANALYZED = "analyzed"
    DECODE_FAILED = "decode_failed"
    TOO_SHORT = "too_short"


class Verdict(str, Enum):
    CLEAN = "clean"
    SUSPECT = "suspect"
    LIKELY_TRANSCODE = "likely_transcode"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AudioBuffer:
    samples: np.ndarray
    fs: float
    duration: float
    channels: int = 1
    backend: str = "unknown"
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FrequencyBand:
    name: str
    f_low: float
    f_high: float

    def __post_init__(self):
        if not (0 <= self.f_low < self.f_high):
            raise ValueError(
                f"Invalid band {self.name!r}: need 0 <= f_low < f_high, "
                f"got {self.f_low} - {self.f_high} Hz."
            )


@dataclass(frozen=True)
class SpectralDetails:
    """Band levels and drops in dB plus ultrasonic flatness."""
    rms_full: float = 0.0
    rms_mid_high: float = 0.0
    rms_high: float = 0.0
    rms_upper: float = 0.0
    rms_19_20k: float = 0.0
    rms_ultrasonic: float = 0.0
    high_drop: float = 0.0
    upper_drop: float = 0.0
    ultrasonic_drop: float = 0.0
    ultrasonic_flatness: float = 0.0

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def to_dict(self) -> dict:
        return {k: float(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class SpectralResult:
    score: int = 0
    flags: tuple[str, ...] = ()
    details: SpectralDetails = field(default_factory=SpectralDetails)

    def to_dict(self) -> dict:
        return {
            "score": int(self.score),
            "flags": list(self.flags),
            "details": self.details.to_dict(),
        }


@dataclass(frozen=True)
class AnalysisOutcome:
    status: AnalysisStatus
    result: SpectralResult
    sample_rate: float | None = None
    n_samples: int = 0
    n_frames: int = 0
    decode_backend: str | None = None
    decode_warnings: tuple[str, ...] = ()

    @property
    def analyzed(self) -> bool:
        return self.status == AnalysisStatus.ANALYZED
