from __future__ import annotations

import json

import pytest
import soundfile as sf

from transcodeqc.cli.main import (
    EXIT_BAD_ARGS,
    EXIT_CLEAN,
    EXIT_DECODE_ERROR,
    EXIT_RULES_ERROR,
    EXIT_TRANSCODE,
    main,
)
from transcodeqc.utils.hashing import sha256_hex_canonical_json
from tests.conftest import lowpass_brickwall, wav_bytes, white_noise, write_rule_file

FS = 44100


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def _write_clean(tmp_path):
    path = tmp_path / "clean.wav"
    path.write_bytes(wav_bytes(white_noise(seconds=2.0, fs=FS), FS))
    return path


def _write_fake(tmp_path):
    path = tmp_path / "fake.wav"
    x = lowpass_brickwall(white_noise(seconds=2.0, fs=FS, seed=3), FS, 19000.0)
    path.write_bytes(wav_bytes(x, FS))
    return path


def test_analyze_clean_file(tmp_path, capsys):
    audio = _write_clean(tmp_path)
    assert _run(["analyze", str(audio)]) == EXIT_CLEAN
    report = json.loads(capsys.readouterr().out)
    assert report["verdict"] == "clean"
    assert report["analysis"]["status"] == "analyzed"
    tmp = dict(report)
    tmp.pop("integrity")
    assert report["integrity"]["report_hash_sha256"] == sha256_hex_canonical_json(tmp)


def test_analyze_fake_file_writes_report(tmp_path):
    audio = _write_fake(tmp_path)
    out = tmp_path / "report.json"
    assert _run(["analyze", str(audio), "--out", str(out)]) == EXIT_TRANSCODE
    report = json.loads(out.read_text(encoding="utf-8"))
    assert "cliff_at_20khz" in report["result"]["flags"]
    assert report["result"]["score"] >= 55


def test_analyze_undecodable_and_missing(tmp_path, capsys):
    junk = tmp_path / "junk.flac"
    junk.write_bytes(b"not a flac file" * 50)
    assert _run(["analyze", str(junk)]) == EXIT_DECODE_ERROR
    assert "Could not decode" in capsys.readouterr().err
    assert _run(["analyze", str(tmp_path / "missing.flac")]) == EXIT_DECODE_ERROR


def test_rules_overrides_and_errors(tmp_path, capsys):
    rules = write_rule_file(tmp_path, {"verdict": {"transcode_score": 200}})
    audio = _write_fake(tmp_path)
    assert _run(["analyze", str(audio), "--rules", str(rules)]) == 10

    capsys.readouterr()
    assert _run(["rules", "--rules", str(rules)]) == EXIT_CLEAN
    printed = json.loads(capsys.readouterr().out)
    assert printed["verdict"]["transcode_score"] == 200
    assert printed["rules"]["ultrasonic_drop"]["tiers"][0]["flag"] == "cliff_at_20khz"

    bad = write_rule_file(tmp_path, {"rules": {"upper_drop": {"metric": "nope"}}})
    assert _run(["rules", "--rules", str(bad)]) == EXIT_RULES_ERROR
    assert _run(["analyze", str(audio), "--rules", str(bad)]) == EXIT_RULES_ERROR



@pytest.mark.parametrize(
    "tiers",
    [
        [5],
        [{"threshold": None, "score": 5, "flag": "x"}],
        [{"threshold": 1.0, "score": 2.9, "flag": "x"}],
    ],
)
def test_malformed_rule_tiers_exit_with_rules_error(tmp_path, tiers):
    bad = write_rule_file(tmp_path, {"rules": {"high_drop": {"tiers": tiers}}})
    assert _run(["rules", "--rules", str(bad)]) == EXIT_RULES_ERROR
    assert _run(["analyze", str(_write_clean(tmp_path)), "--rules", str(bad)]) == EXIT_RULES_ERROR


@pytest.mark.parametrize("value", ["0", "-3", "nan"])
def test_analyze_rejects_non_positive_max_seconds(tmp_path, value):
    audio = _write_clean(tmp_path)
    assert _run(["analyze", str(audio), "--max-seconds", value]) == EXIT_BAD_ARGS


def test_batch_writes_reports_and_summary(tmp_path, capsys):
    corpus = tmp_path / "corpus"
    corpus.mkdir()
    _write_clean(corpus)
    _write_fake(corpus)
    (corpus / "notes.txt").write_text("ignored", encoding="utf-8")
    out_dir = tmp_path / "out"

    code = _run(["batch", "--folder", str(corpus), "--out-dir", str(out_dir), "--workers", "1"])
    assert code == EXIT_TRANSCODE
    stdout = capsys.readouterr().out
    assert "[OK]" in stdout
    assert (out_dir / "clean.wav.transcode.json").exists()
    assert (out_dir / "fake.wav.transcode.json").exists()
    summary = json.loads((out_dir / "batch-summary.json").read_text(encoding="utf-8"))
    counts = summary["totals"]["verdict_counts"]
    assert counts["clean"] == 1
    assert counts["likely_transcode"] == 1
    assert (out_dir / "batch-summary.md").exists()


def test_batch_reports_do_not_collide_on_shared_stems(tmp_path, capsys):
    corpus = tmp_path / "corpus"
    for sub in ("a", "b"):
        (corpus / sub).mkdir(parents=True)
        (corpus / sub / "track.wav").write_bytes(wav_bytes(white_noise(seconds=1.0, fs=FS), FS))
    (corpus / "track.wav").write_bytes(wav_bytes(white_noise(seconds=1.0, fs=FS), FS))
    sf.write(corpus / "track.flac", white_noise(seconds=1.0, fs=FS), FS, subtype="PCM_24")
    out_dir = tmp_path / "out"

    code = _run([
        "batch", "--folder", str(corpus), "--recursive",
        "--out-dir", str(out_dir), "--workers", "1",
    ])
    assert code == EXIT_CLEAN
    assert capsys.readouterr().out.count("[OK]") == 4
    reports = sorted(
        p.relative_to(out_dir).as_posix() for p in out_dir.rglob("*.transcode.json")
    )
    assert reports == [
        "a/track.wav.transcode.json",
        "b/track.wav.transcode.json",
        "track.flac.transcode.json",
        "track.wav.transcode.json",
    ]


def test_batch_empty_folder(tmp_path):
    assert _run(["batch", "--folder", str(tmp_path)]) == EXIT_BAD_ARGS
