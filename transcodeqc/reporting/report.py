from __future__ import annotations
from transcodeqc.dsp.frames import FRAME_SIZE, HOP_SIZE
from transcodeqc.types import AnalysisOutcome, Verdict
from transcodeqc.utils.hashing import sha256_hex_bytes, sha256_hex_canonical_json
from transcodeqc.utils.quantize import q_fields

SCHEMA_VERSION = "1.0"

_DETAIL_STEPS = {"ultrasonic_flatness": 0.0001}


def build_input_meta(path: str, data: bytes, outcome: AnalysisOutcome) -> dict:
    """Describe the analyzed file and how it was decoded."""
    return {
        "path": path,
        "file_hash_sha256": sha256_hex_bytes(data),
        "size_bytes": len(data),
        "fs_hz": outcome.sample_rate,
        "decoded_samples": outcome.n_samples,
        "decoded_seconds": (
            outcome.n_samples / outcome.sample_rate if outcome.sample_rate else 0.0
        ),
        "decode_backend": outcome.decode_backend,
        "decode_warnings": list(outcome.decode_warnings),
    }


def build_report_dict(
    *,
    engine: dict,
    input_meta: dict,
    outcome: AnalysisOutcome,
    verdict: Verdict,
    rule_config: dict,
    created_utc: str = "1970-01-01T00:00:00Z"
) -> dict:
    """
    Build a transcode report dictionary with quantized metrics and an
    integrity hash over everything except the integrity block.
    """
    result = outcome.result.to_dict()
    result["details"] = q_fields(result["details"], _DETAIL_STEPS, 0.01)

    report = {
        "schema_version": SCHEMA_VERSION,
        "created_utc": created_utc,
        "engine": engine,
        "input": input_meta,
        "analysis": {
            "status": outcome.status.value,
            "sample_rate_hz": outcome.sample_rate,
            "frame_size": FRAME_SIZE,
            "hop_size": HOP_SIZE,
            "frames": outcome.n_frames,
            "rule_config_hash_sha256": sha256_hex_canonical_json(rule_config),
        },
        "result": result,
        "verdict": verdict.value,
        "integrity": {
            "report_hash_sha256": "",
        },
    }

    tmp = dict(report)
    tmp.pop("integrity", None)
    report["integrity"]["report_hash_sha256"] = sha256_hex_canonical_json(tmp)
    return report
