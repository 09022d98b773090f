from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path

from transcodeqc.types import SpectralDetails

# Ordered rule families. Within a family tiers run from most to least severe
# and only the first match fires; families are scored independently.
DEFAULT_RULE_TABLE = {
    "upper_drop": {
        "metric": "upper_drop",
        "compare": "gt",
        "tiers": [
            {"threshold": 40.0, "score": 50, "flag": "severe_hf_damage"},
            {"threshold": 15.0, "score": 35, "flag": "hf_cutoff_detected"},
            {"threshold": 10.0, "score": 20, "flag": "possible_lossy_origin"},
        ],
    },
    "ultrasonic_drop": {
        "metric": "ultrasonic_drop",
        "compare": "gt",
        "tiers": [
            {"threshold": 40.0, "score": 35, "flag": "cliff_at_20khz"},
            {"threshold": 25.0, "score": 25, "flag": "steep_20khz_cutoff"},
            {"threshold": 15.0, "score": 15, "flag": "possible_320k_origin"},
        ],
    },
    "ultrasonic_flatness": {
        "metric": "ultrasonic_flatness",
        "compare": "lt",
        "tiers": [
            {"threshold": 0.3, "score": 20, "flag": "dead_ultrasonic_band"},
            {"threshold": 0.5, "score": 10, "flag": "weak_ultrasonic_content"},
        ],
    },
    "high_drop": {
        "metric": "high_drop",
        "compare": "gt",
        "tiers": [
            {"threshold": 48.0, "score": 15, "flag": "steep_hf_rolloff"},
        ],
    },
    "silent_upper": {
        "metric": "rms_upper",
        "compare": "lt",
        "tiers": [
            {"threshold": -50.0, "score": 15, "flag": "silent_17k+"},
        ],
    },
    "silent_ultrasonic": {
        "metric": "rms_ultrasonic",
        "compare": "lt",
        "tiers": [
            {"threshold": -70.0, "score": 10, "flag": "silent_20k+"},
        ],
    },
}

_COMPARE = {
    "gt": lambda value, threshold: value > threshold,
    "lt": lambda value, threshold: value < threshold,
}


@dataclass(frozen=True)
class RuleHit:
    family: str
    flag: str
    score: int
    metric: str
    value: float
    threshold: float


def _merge_config(base: dict, overrides: dict | None) -> dict:
    if not overrides:
        return base
    merged = {**base}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_config(base[key], value)
        else:
            merged[key] = value
    return merged


def validate_rule_config(config: dict) -> None:
    """Raise ValueError if a rule table is malformed."""
    metrics = set(SpectralDetails.field_names())
    for family, rule in config.items():
        if not isinstance(rule, dict):
            raise ValueError(f"Rule {family!r} must be an object.")
        metric = rule.get("metric")
        if not isinstance(metric, str) or metric not in metrics:
            raise ValueError(f"Rule {family!r}: unknown metric {metric!r}.")
        compare = rule.get("compare")
        if not isinstance(compare, str) or compare not in _COMPARE:
            raise ValueError(f"Rule {family!r}: compare must be 'gt' or 'lt', got {compare!r}.")
        tiers = rule.get("tiers")
        if not isinstance(tiers, list) or not tiers:
            raise ValueError(f"Rule {family!r}: tiers must be a non-empty list.")
        thresholds = []
        for tier in tiers:
            if not isinstance(tier, dict):
                raise ValueError(f"Rule {family!r}: each tier must be an object.")
            for key in ("threshold", "score", "flag"):
                if key not in tier:
                    raise ValueError(f"Rule {family!r}: tier missing {key!r}.")
            score = tier["score"]
            if isinstance(score, bool) or not isinstance(score, int):
                raise ValueError(
                    f"Rule {family!r}: tier score must be an integer, got {score!r}."
                )
            if score < 0:
                raise ValueError(f"Rule {family!r}: tier scores must be non-negative.")
            if not isinstance(tier["flag"], str) or not tier["flag"]:
                raise ValueError(f"Rule {family!r}: tier flag must be a non-empty string.")
            try:
                thresholds.append(float(tier["threshold"]))
            except (TypeError, ValueError):
                raise ValueError(
                    f"Rule {family!r}: tier threshold must be a number, got {tier['threshold']!r}."
                ) from None
        # Most severe tier first: descending for "gt", ascending for "lt".
        expected = sorted(thresholds, reverse=(compare == "gt"))
        if thresholds != expected:
            raise ValueError(
                f"Rule {family!r}: tiers must be ordered from most to least severe."
            )


def build_rule_config(overrides: dict | None = None) -> dict:
    """Return the rule table with overrides deep-merged over the defaults."""
    cfg = _merge_config(copy.deepcopy(DEFAULT_RULE_TABLE), overrides)
    validate_rule_config(cfg)
    return cfg


def load_rule_file(path: str | Path) -> tuple[dict, dict]:
    """
    Load a JSON tuning file.

    The file holds an optional "rules" object (overrides for
    DEFAULT_RULE_TABLE) and an optional "verdict" object (score cut-offs).
    Returns (rule_overrides, verdict_overrides).
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Rule file must contain a JSON object.")
    unknown = set(data) - {"rules", "verdict"}
    if unknown:
        raise ValueError(f"Unknown rule file keys: {sorted(unknown)}")
    rules = data.get("rules") or {}
    verdict = data.get("verdict") or {}
    if not isinstance(rules, dict) or not isinstance(verdict, dict):
        raise ValueError("'rules' and 'verdict' must be JSON objects.")
    build_rule_config(rules)
    return rules, verdict


def evaluate_rules(details: SpectralDetails, config: dict | None = None) -> list[RuleHit]:
    """
    Evaluate the rule table against spectral details.

    Args:
        details: Metrics from the spectral pipeline.
        config: Optional rule overrides merged over DEFAULT_RULE_TABLE.

    Returns:
        One RuleHit per family that fired, in table order.
    """
    cfg = build_rule_config(config)
    hits: list[RuleHit] = []
    for family, rule in cfg.items():
        value = float(getattr(details, rule["metric"]))
        matches = _COMPARE[rule["compare"]]
        for tier in rule["tiers"]:
            threshold = float(tier["threshold"])
            if matches(value, threshold):
                hits.append(
                    RuleHit(
                        family=family,
                        flag=tier["flag"],
                        score=tier["score"],
                        metric=rule["metric"],
                        value=value,
                        threshold=threshold,
                    )
                )
                break
    return hits


def score_details(details: SpectralDetails, config: dict | None = None) -> tuple[int, tuple[str, ...]]:
    """Return (score, flags) for spectral details."""
    hits = evaluate_rules(details, config)
    return sum(h.score for h in hits), tuple(h.flag for h in hits)
