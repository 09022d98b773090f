from __future__ import annotations

import json

import pytest

from transcodeqc.thresholds.rules import (
    DEFAULT_RULE_TABLE,
    build_rule_config,
    evaluate_rules,
    load_rule_file,
    score_details,
)
from transcodeqc.thresholds.verdict import verdict_for
from transcodeqc.types import (
    AnalysisOutcome,
    AnalysisStatus,
    SpectralDetails,
    SpectralResult,
    Verdict,
)


def _details(**kwargs) -> SpectralDetails:
    # Neutral values: nothing fires.
    base = dict(
        rms_full=60.0,
        rms_mid_high=40.0,
        rms_high=30.0,
        rms_upper=30.0,
        rms_19_20k=25.0,
        rms_ultrasonic=25.0,
        ultrasonic_flatness=0.9,
    )
    base.update(kwargs)
    return SpectralDetails(**base)


def test_all_families_fire_on_worst_case():
    details = _details(
        upper_drop=50.0,
        ultrasonic_drop=50.0,
        ultrasonic_flatness=0.1,
        high_drop=60.0,
        rms_upper=-60.0,
        rms_ultrasonic=-80.0,
    )
    score, flags = score_details(details)
    assert score == 50 + 35 + 20 + 15 + 15 + 10 == 145
    assert flags == (
        "severe_hf_damage",
        "cliff_at_20khz",
        "dead_ultrasonic_band",
        "steep_hf_rolloff",
        "silent_17k+",
        "silent_20k+",
    )


def test_neutral_details_score_zero():
    assert score_details(_details()) == (0, ())


@pytest.mark.parametrize(
    "upper_drop, expected",
    [
        (10.0, ()),
        (10.5, ("possible_lossy_origin",)),
        (15.0, ("possible_lossy_origin",)),
        (20.0, ("hf_cutoff_detected",)),
        (40.1, ("severe_hf_damage",)),
    ],
)
def test_upper_drop_tiers_are_exclusive(upper_drop, expected):
    _, flags = score_details(_details(upper_drop=upper_drop))
    assert flags == expected


@pytest.mark.parametrize(
    "flatness, expected_score, expected_flags",
    [
        (0.29, 20, ("dead_ultrasonic_band",)),
        (0.3, 10, ("weak_ultrasonic_content",)),
        (0.5, 0, ()),
    ],
)
def test_flatness_tiers(flatness, expected_score, expected_flags):
    assert score_details(_details(ultrasonic_flatness=flatness)) == (expected_score, expected_flags)


@pytest.mark.parametrize(
    "field, value, expected",
    [
        ("ultrasonic_drop", 15.0, ()),
        ("ultrasonic_drop", 15.1, ("possible_320k_origin",)),
        ("ultrasonic_drop", 25.0, ("possible_320k_origin",)),
        ("ultrasonic_drop", 25.1, ("steep_20khz_cutoff",)),
        ("ultrasonic_drop", 40.0, ("steep_20khz_cutoff",)),
        ("ultrasonic_drop", 40.1, ("cliff_at_20khz",)),
        ("high_drop", 48.0, ()),
        ("high_drop", 48.1, ("steep_hf_rolloff",)),
        ("rms_upper", -50.0, ()),
        ("rms_upper", -50.1, ("silent_17k+",)),
        ("rms_ultrasonic", -70.0, ()),
        ("rms_ultrasonic", -70.1, ("silent_20k+",)),
    ],
)
def test_tier_boundaries_are_strict(field, value, expected):
    _, flags = score_details(_details(**{field: value}))
    assert flags == expected


def test_ultrasonic_drop_middle_tier():
    hits = evaluate_rules(_details(ultrasonic_drop=30.0))
    assert len(hits) == 1
    hit = hits[0]
    assert hit.family == "ultrasonic_drop"
    assert hit.flag == "steep_20khz_cutoff"
    assert hit.score == 25
    assert hit.threshold == 25.0
    assert hit.value == 30.0


def test_overrides_change_threshold_without_touching_defaults():
    overrides = {
        "upper_drop": {
            "tiers": [{"threshold": 5.0, "score": 40, "flag": "custom_cutoff"}]
        }
    }
    score, flags = score_details(_details(upper_drop=6.0), overrides)
    assert (score, flags) == (40, ("custom_cutoff",))
    assert DEFAULT_RULE_TABLE["upper_drop"]["tiers"][0]["flag"] == "severe_hf_damage"


def test_invalid_rule_configs_raise():
    with pytest.raises(ValueError):
        build_rule_config({"upper_drop": {"metric": "no_such_metric"}})
    with pytest.raises(ValueError):
        build_rule_config({"upper_drop": {"compare": "ge"}})
    with pytest.raises(ValueError):
        build_rule_config({"upper_drop": {"metric": ["upper_drop"]}})
    with pytest.raises(ValueError):
        build_rule_config({"upper_drop": {"compare": {"op": "gt"}}})
    with pytest.raises(ValueError):
        build_rule_config({"upper_drop": {"tiers": []}})
    with pytest.raises(ValueError):
        build_rule_config({
            "upper_drop": {
                "tiers": [
                    {"threshold": 10.0, "score": 20, "flag": "a"},
                    {"threshold": 40.0, "score": 50, "flag": "b"},
                ]
            }
        })
    with pytest.raises(ValueError):
        build_rule_config({
            "high_drop": {"tiers": [{"threshold": 1.0, "score": -5, "flag": "x"}]}
        })


@pytest.mark.parametrize(
    "tier",
    [
        5,
        "tier",
        {"threshold": None, "score": 5, "flag": "x"},
        {"threshold": "high", "score": 5, "flag": "x"},
        {"threshold": 1.0, "score": 2.9, "flag": "x"},
        {"threshold": 1.0, "score": "5", "flag": "x"},
        {"threshold": 1.0, "score": True, "flag": "x"},
        {"threshold": 1.0, "score": 5, "flag": None},
        {"threshold": 1.0, "score": 5, "flag": ""},
    ],
)
def test_malformed_tiers_raise_value_error(tier):
    with pytest.raises(ValueError):
        build_rule_config({"high_drop": {"tiers": [tier]}})


def test_load_rule_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({
        "rules": {"high_drop": {"tiers": [{"threshold": 30.0, "score": 5, "flag": "rolloff"}]}},
        "verdict": {"suspect_score": 10},
    }), encoding="utf-8")
    rules, verdict = load_rule_file(path)
    assert rules["high_drop"]["tiers"][0]["flag"] == "rolloff"
    assert verdict == {"suspect_score": 10}

    path.write_text(json.dumps({"thresholds": {}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_rule_file(path)


def _outcome(score: int, status: AnalysisStatus = AnalysisStatus.ANALYZED) -> AnalysisOutcome:
    return AnalysisOutcome(status=status, result=SpectralResult(score=score))


def test_verdict_for_scores():
    assert verdict_for(_outcome(0)) == Verdict.CLEAN
    assert verdict_for(_outcome(19)) == Verdict.CLEAN
    assert verdict_for(_outcome(20)) == Verdict.SUSPECT
    assert verdict_for(_outcome(55)) == Verdict.LIKELY_TRANSCODE
    assert verdict_for(_outcome(15), {"suspect_score": 10}) == Verdict.SUSPECT


def test_verdict_unknown_when_not_analyzed():
    assert verdict_for(_outcome(0, AnalysisStatus.DECODE_FAILED)) == Verdict.UNKNOWN
    assert verdict_for(_outcome(0, AnalysisStatus.TOO_SHORT)) == Verdict.UNKNOWN


def test_verdict_config_validation():
    with pytest.raises(ValueError):
        verdict_for(_outcome(0), {"suspect_score": 60})
    with pytest.raises(ValueError):
        verdict_for(_outcome(0), {"transcode_score": "high"})
    with pytest.raises(ValueError):
        verdict_for(_outcome(0), {"alarm_score": 5})
