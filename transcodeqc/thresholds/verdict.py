from __future__ import annotations

from transcodeqc.types import AnalysisOutcome, Verdict

DEFAULT_VERDICT_THRESHOLDS = {
    "suspect_score": 20,
    "transcode_score": 50,
}


def build_verdict_config(overrides: dict | None = None) -> dict:
    """Return verdict score cut-offs with overrides applied."""
    unknown = set(overrides or {}) - set(DEFAULT_VERDICT_THRESHOLDS)
    if unknown:
        raise ValueError(f"Unknown verdict keys: {sorted(unknown)}")
    cfg = {**DEFAULT_VERDICT_THRESHOLDS, **(overrides or {})}
    for key, value in cfg.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"{key} must be a non-negative integer, got {value!r}.")
    if cfg["suspect_score"] > cfg["transcode_score"]:
        raise ValueError("suspect_score must not exceed transcode_score.")
    return cfg


def verdict_for(outcome: AnalysisOutcome, thresholds: dict | None = None) -> Verdict:
    """Classify an analysis outcome by its score; unknown if it was not analyzed."""
    cfg = build_verdict_config(thresholds)
    if not outcome.analyzed:
        return Verdict.UNKNOWN
    score = outcome.result.score
    if score >= cfg["transcode_score"]:
        return Verdict.LIKELY_TRANSCODE
    if score >= cfg["suspect_score"]:
        return Verdict.SUSPECT
    return Verdict.CLEAN
