from __future__ import annotations

from collections import defaultdict
from typing import Iterable

import numpy as np

from transcodeqc.types import Verdict
from transcodeqc.utils.hashing import sha256_hex_canonical_json

_DISTRIBUTION_FIELDS = ("upper_drop", "ultrasonic_drop", "ultrasonic_flatness", "high_drop")


def _summary_stats(values: Iterable[float]) -> dict | None:
    vals = [float(v) for v in values if isinstance(v, (int, float))]
    if not vals:
        return None
    arr = np.asarray(vals, dtype=np.float64)
    return {
        "count": int(arr.size),
        "mean": float(np.mean(arr)),
        "min": float(np.min(arr)),
        "p50": float(np.percentile(arr, 50)),
        "p90": float(np.percentile(arr, 90)),
        "max": float(np.max(arr)),
    }


def build_batch_summary(
    results: list[tuple[str, str, str | None, dict | None]],
    *,
    generated_utc: str | None = None
) -> dict:
    """
    Summarize transcode reports across a corpus.

    Args:
        results: (path, verdict, error, report) tuples from batch workers.
        generated_utc: Timestamp stored in the summary.

    Returns:
        Summary dict with verdict counts, flag frequencies, metric
        distributions and a corpus checksum over the analyzed files.
    """
    counts = {v.value: 0 for v in Verdict}
    counts["error"] = 0
    errors: dict[str, int] = {}
    flag_counts: dict[str, int] = {}
    metric_values: dict[str, list[float]] = defaultdict(list)
    suspects: list[dict] = []
    file_hashes: list[str] = []

    for path, verdict, err, report in results:
        if err or not report:
            counts["error"] += 1
            if err:
                errors[err] = errors.get(err, 0) + 1
            continue
        counts[verdict if verdict in counts else "error"] += 1

        file_hash = report.get("input", {}).get("file_hash_sha256")
        if isinstance(file_hash, str):
            file_hashes.append(file_hash)

        if report.get("analysis", {}).get("status") != "analyzed":
            continue
        result = report.get("result", {})
        for flag in result.get("flags", []):
            flag_counts[flag] = flag_counts.get(flag, 0) + 1
        metric_values["score"].append(result.get("score"))
        details = result.get("details", {})
        for key in _DISTRIBUTION_FIELDS:
            metric_values[key].append(details.get(key))
        if verdict in (Verdict.SUSPECT.value, Verdict.LIKELY_TRANSCODE.value):
            suspects.append({
                "path": path,
                "verdict": verdict,
                "score": result.get("score"),
                "flags": list(result.get("flags", [])),
            })

    distributions = {k: _summary_stats(v) for k, v in metric_values.items()}
    distributions = {k: v for k, v in distributions.items() if v is not None}
    suspects.sort(key=lambda s: (-(s["score"] or 0), s["path"]))

    total = len(results)
    analyzed = total - counts["error"] - counts[Verdict.UNKNOWN.value]
    flagged = counts[Verdict.SUSPECT.value] + counts[Verdict.LIKELY_TRANSCODE.value]
    return {
        "generated_utc": generated_utc,
        "totals": {
            "files": total,
            "analyzed": analyzed,
            "verdict_counts": counts,
        },
        "kpis": {
            "flagged_rate": (flagged / analyzed) if analyzed else None,
            "transcode_rate": (
                counts[Verdict.LIKELY_TRANSCODE.value] / analyzed if analyzed else None
            ),
        },
        "flag_counts": dict(sorted(flag_counts.items(), key=lambda kv: (-kv[1], kv[0]))),
        "errors": dict(sorted(errors.items(), key=lambda kv: kv[1], reverse=True)),
        "distributions": distributions,
        "suspects": suspects,
        "checksum": {
            "corpus_checksum_sha256": sha256_hex_canonical_json(
                {"file_hashes": sorted(file_hashes)}
            )
        },
    }


def render_summary_markdown(summary: dict) -> str:
    """Render a Markdown batch summary."""
    lines = []
    totals = summary.get("totals", {})
    counts = totals.get("verdict_counts", {})
    lines.append("# Transcode Audit Summary")
    lines.append("")
    lines.append(f"Files: {totals.get('files', 0)} (analyzed: {totals.get('analyzed', 0)})")
    lines.append("")
    lines.append("## Verdicts")
    lines.append("")
    for key in ("clean", "suspect", "likely_transcode", "unknown", "error"):
        lines.append(f"- {key}: {counts.get(key, 0)}")
    lines.append("")
    lines.append("## Flags")
    lines.append("")
    for flag, count in summary.get("flag_counts", {}).items():
        lines.append(f"- {flag}: {count}")
    lines.append("")
    lines.append("## Metric Distributions")
    lines.append("")
    for metric, stats in summary.get("distributions", {}).items():
        lines.append(
            f"- {metric}: count={stats['count']} mean={stats['mean']:.3f} min={stats['min']:.3f} "
            f"p50={stats['p50']:.3f} p90={stats['p90']:.3f} max={stats['max']:.3f}"
        )
    lines.append("")
    suspects = summary.get("suspects", [])
    if suspects:
        lines.append("## Suspect Files")
        lines.append("")
        lines.append("| Score | Verdict | Path | Flags |")
        lines.append("| ---: | --- | --- | --- |")
        for s in suspects:
            lines.append(f"| {s['score']} | {s['verdict']} | {s['path']} | {', '.join(s['flags'])} |")
        lines.append("")
    return "\n".join(lines)
