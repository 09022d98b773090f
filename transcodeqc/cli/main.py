"""TranscodeQC CLI - fake lossless detection."""
from __future__ import annotations
import argparse
import json
import logging
import os
import platform
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import numpy as np

from transcodeqc.version import __version__
from transcodeqc.types import AnalysisStatus, Verdict
from transcodeqc.analysis.spectral import analyze_outcome
from transcodeqc.io.audio import MAX_DECODE_SECONDS, load_audio_bytes
from transcodeqc.thresholds.rules import build_rule_config, load_rule_file
from transcodeqc.thresholds.verdict import build_verdict_config, verdict_for
from transcodeqc.reporting.report import build_input_meta, build_report_dict
from transcodeqc.reporting.batch_summary import build_batch_summary, render_summary_markdown


EXIT_CLEAN = 0
EXIT_SUSPECT = 10
EXIT_TRANSCODE = 20
EXIT_BAD_ARGS = 2
EXIT_DECODE_ERROR = 3
EXIT_RULES_ERROR = 4
EXIT_INTERNAL_ERROR = 5
SUPPORTED_AUDIO_EXTS = {
    ".wav", ".flac", ".aiff", ".aif", ".mp3", ".ogg", ".m4a", ".wv", ".ape", ".alac",
}


def _exit_code_for_verdict(verdict: Verdict) -> int:
    """Map Verdict to exit code."""
    if verdict == Verdict.CLEAN:
        return EXIT_CLEAN
    if verdict == Verdict.SUSPECT:
        return EXIT_SUSPECT
    if verdict == Verdict.LIKELY_TRANSCODE:
        return EXIT_TRANSCODE
    return EXIT_DECODE_ERROR


def _build_engine_meta() -> dict:
    """Build engine metadata for reports."""
    return {
        "name": "transcodeqc",
        "version": __version__,
        "build": {
            "platform": platform.platform(),
            "python": platform.python_version(),
            "deps": [
                {"name": "numpy", "version": np.__version__},
            ]
        }
    }


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _positive_float(value: str) -> float:
    """argparse type for strictly positive floats."""
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not parsed > 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return parsed


def _load_tuning(rules_path: str | None) -> tuple[dict, dict]:
    """Return (rule_overrides, verdict_thresholds) from an optional rule file."""
    if not rules_path:
        return {}, build_verdict_config()
    rules, verdict = load_rule_file(rules_path)
    return rules, build_verdict_config(verdict)


def _iter_audio_files(folder: Path, recursive: bool) -> list[Path]:
    """Collect supported audio files from a folder."""
    if not folder.exists():
        raise ValueError(f"Folder not found: {folder}")
    files: Iterable[Path]
    files = folder.rglob("*") if recursive else folder.glob("*")
    out: list[Path] = []
    for p in files:
        if p.is_file() and p.suffix.lower() in SUPPORTED_AUDIO_EXTS:
            out.append(p)
    return sorted(out)


def _output_path(out_dir: Path, audio_path: Path, root: Path | None = None) -> Path:
    """Build output report path for a given audio file, mirroring its place under root."""
    rel = audio_path.relative_to(root) if root else Path(audio_path.name)
    return out_dir / rel.parent / (rel.name + ".transcode.json")


def _analyze_file(
    audio_path: str,
    *,
    rules: dict,
    verdict_thresholds: dict,
    declared_sample_rate: int | None = None,
    max_seconds: float = MAX_DECODE_SECONDS
) -> tuple[dict, Verdict]:
    """
    Run the analysis pipeline on one file.

    Returns tuple of (report_dict, verdict).
    """
    data = load_audio_bytes(audio_path)
    outcome = analyze_outcome(
        data,
        declared_sample_rate,
        config=rules,
        max_seconds=max_seconds
    )
    verdict = verdict_for(outcome, verdict_thresholds)
    report = build_report_dict(
        engine=_build_engine_meta(),
        input_meta=build_input_meta(str(Path(audio_path).resolve()), data, outcome),
        outcome=outcome,
        verdict=verdict,
        rule_config=build_rule_config(rules),
        created_utc=_utc_now()
    )
    return report, verdict


def _batch_worker(
    args: tuple[str, dict, dict, str | None, str | None]
) -> tuple[str, str, str | None, dict | None]:
    """Worker for batch analysis."""
    audio_path, rules, verdict_thresholds, out_dir, root = args
    try:
        report, verdict = _analyze_file(
            audio_path,
            rules=rules,
            verdict_thresholds=verdict_thresholds
        )
        if out_dir:
            out_path = _output_path(
                Path(out_dir), Path(audio_path), Path(root) if root else None
            )
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        return (audio_path, verdict.value, None, report)
    except Exception as exc:
        return (audio_path, "error", str(exc), None)


def _print_result(audio_path: str, verdict: str, err: str | None, report: dict | None) -> None:
    if err:
        print(f"[ERROR] {audio_path}: {err}", file=sys.stderr)
        return
    result = (report or {}).get("result", {})
    flags = ",".join(result.get("flags", [])) or "-"
    print(f"[OK] {audio_path}: {verdict} score={result.get('score', 0)} flags={flags}")


def cmd_analyze(args) -> int:
    """Handle analyze command."""
    try:
        rules, verdict_thresholds = _load_tuning(args.rules)
    except FileNotFoundError as e:
        print(f"Error: Rule file not found - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR
    except json.JSONDecodeError as e:
        print(f"Error: Invalid rule JSON - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR
    except ValueError as e:
        print(f"Error: Invalid rule file - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR

    try:
        report, verdict = _analyze_file(
            args.audio_path,
            rules=rules,
            verdict_thresholds=verdict_thresholds,
            declared_sample_rate=args.declared_sample_rate,
            max_seconds=args.max_seconds
        )

        output_json = json.dumps(report, indent=2)
        if args.out:
            Path(args.out).write_text(output_json, encoding="utf-8")
            print(f"Report written to: {args.out}", file=sys.stderr)
        else:
            print(output_json)

        status = report["analysis"]["status"]
        if status == AnalysisStatus.DECODE_FAILED.value:
            print(f"Error: Could not decode {args.audio_path}", file=sys.stderr)
        elif status == AnalysisStatus.TOO_SHORT.value:
            print(f"Error: Audio too short to analyze - {args.audio_path}", file=sys.stderr)
        return _exit_code_for_verdict(verdict)

    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR


def cmd_rules(args) -> int:
    """Handle rules command: print the effective rule table."""
    try:
        rules, verdict_thresholds = _load_tuning(args.rules)
        print(json.dumps(
            {"rules": build_rule_config(rules), "verdict": verdict_thresholds},
            indent=2
        ))
        return EXIT_CLEAN
    except FileNotFoundError as e:
        print(f"Error: Rule file not found - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        print(f"Error: Invalid rule file - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR


def cmd_batch(args) -> int:
    """Handle batch command."""
    try:
        rules, verdict_thresholds = _load_tuning(args.rules)
    except FileNotFoundError as e:
        print(f"Error: Rule file not found - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR
    except ValueError as e:
        print(f"Error: Invalid rule file - {e}", file=sys.stderr)
        return EXIT_RULES_ERROR

    try:
        try:
            audio_paths = _iter_audio_files(Path(args.folder), args.recursive)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_BAD_ARGS
        if not audio_paths:
            print("Error: No input files found.", file=sys.stderr)
            return EXIT_BAD_ARGS

        out_dir = Path(args.out_dir) if args.out_dir else None
        if out_dir:
            out_dir.mkdir(parents=True, exist_ok=True)
        max_workers = max(1, int(args.workers))
        max_workers = min(max_workers, len(audio_paths))
        out_dir_arg = str(out_dir) if out_dir else None
        root_arg = str(Path(args.folder))

        failures = 0
        results: list[tuple[str, str, str | None, dict | None]] = []
        if max_workers == 1:
            for p in audio_paths:
                result = _batch_worker((str(p), rules, verdict_thresholds, out_dir_arg, root_arg))
                results.append(result)
                if result[2] is not None:
                    failures += 1
                _print_result(*result)
        else:
            with ProcessPoolExecutor(max_workers=max_workers) as ex:
                futures = [
                    ex.submit(
                        _batch_worker,
                        (str(p), rules, verdict_thresholds, out_dir_arg, root_arg)
                    )
                    for p in audio_paths
                ]
                for fut in as_completed(futures):
                    result = fut.result()
                    results.append(result)
                    if result[2] is not None:
                        failures += 1
                    _print_result(*result)

        results.sort(key=lambda r: r[0])
        summary = build_batch_summary(results, generated_utc=_utc_now())
        if out_dir:
            if args.summary_json:
                (out_dir / os.path.basename(args.summary_json)).write_text(
                    json.dumps(summary, indent=2),
                    encoding="utf-8"
                )
            if args.summary_md:
                (out_dir / os.path.basename(args.summary_md)).write_text(
                    render_summary_markdown(summary),
                    encoding="utf-8"
                )
        else:
            print(render_summary_markdown(summary))

        if failures:
            return EXIT_INTERNAL_ERROR
        counts = summary["totals"]["verdict_counts"]
        if counts[Verdict.LIKELY_TRANSCODE.value]:
            return EXIT_TRANSCODE
        if counts[Verdict.SUSPECT.value]:
            return EXIT_SUSPECT
        return EXIT_CLEAN

    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcodeqc",
        description="TranscodeQC - detect lossy sources posing as lossless audio"
    )
    parser.add_argument(
        "--version", action="version",
        version=f"transcodeqc {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze one audio file for signs of a lossy origin"
    )
    analyze_parser.add_argument(
        "audio_path",
        help="Path to audio file (FLAC, WAV, AIFF, MP3, ...)"
    )
    analyze_parser.add_argument(
        "--rules", "-r",
        help="JSON file with rule and verdict overrides"
    )
    analyze_parser.add_argument(
        "--out", "-o",
        help="Output path for the report JSON"
    )
    analyze_parser.add_argument(
        "--declared-sample-rate",
        type=int,
        default=None,
        help="Sample rate advertised by the container (reserved, currently unused)"
    )
    analyze_parser.add_argument(
        "--max-seconds",
        type=_positive_float,
        default=MAX_DECODE_SECONDS,
        help=f"Seconds of audio to decode (default: {MAX_DECODE_SECONDS:g})"
    )
    analyze_parser.set_defaults(func=cmd_analyze)

    # batch command
    batch_parser = subparsers.add_parser(
        "batch",
        help="Batch analyze a folder"
    )
    batch_parser.add_argument(
        "--folder",
        required=True,
        help="Folder containing audio files"
    )
    batch_parser.add_argument(
        "--recursive",
        action="store_true",
        help="Recurse into subfolders"
    )
    batch_parser.add_argument(
        "--rules", "-r",
        help="JSON file with rule and verdict overrides"
    )
    batch_parser.add_argument(
        "--out-dir",
        help="Output directory for per-file reports and summaries"
    )
    batch_parser.add_argument(
        "--summary-json",
        default="batch-summary.json",
        help="Batch summary JSON filename (default: batch-summary.json in --out-dir)"
    )
    batch_parser.add_argument(
        "--summary-md",
        default="batch-summary.md",
        help="Batch summary Markdown filename (default: batch-summary.md in --out-dir)"
    )
    batch_parser.add_argument(
        "--workers",
        type=int,
        default=max(1, (os.cpu_count() or 2) - 1),
        help="Parallel workers (default: cpu_count-1)"
    )
    batch_parser.set_defaults(func=cmd_batch)

    # rules command
    rules_parser = subparsers.add_parser(
        "rules",
        help="Print the effective rule table"
    )
    rules_parser.add_argument(
        "--rules", "-r",
        help="JSON file with rule and verdict overrides"
    )
    rules_parser.set_defaults(func=cmd_rules)

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if hasattr(args, "func"):
        sys.exit(args.func(args))
    else:
        parser.print_help()
        sys.exit(EXIT_BAD_ARGS)


if __name__ == "__main__":
    main()
