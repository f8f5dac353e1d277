from __future__ import annotations

import json
from pathlib import Path
import textwrap

import yaml
from typer.testing import CliRunner

from incrcheck import cli


def _write_snapshot(tmp_path: Path, payload: dict[str, object], name: str = "snap.json") -> Path:
    path = tmp_path / name
    if path.suffix in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    else:
        path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _invoke(args: list[str]):
    return CliRunner().invoke(cli.app, args)


def test_check_passes(tmp_path: Path, snapshot_payload) -> None:
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    result = _invoke(["check", str(snapshot), "--cfg", "rev2", "--root", str(tmp_path)])
    assert result.exit_code == 0
    assert "krate: dirty_clean=passed, metadata=passed" in result.output


def test_check_reports_mismatch(tmp_path: Path, snapshot_payload) -> None:
    snapshot_payload["fingerprints"][0]["current"] = "changed"
    snapshot = _write_snapshot(tmp_path, snapshot_payload, "snap.yaml")
    result = _invoke(["check", str(snapshot), "-c", "rev2", "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert "lib.rs:3:1: error: `fn-signature(krate::foo)` should be clean but is not" in result.output
    assert "dirty_clean=failed" in result.output


def test_check_fatal_exits_two(tmp_path: Path, snapshot_payload) -> None:
    snapshot_payload["declarations"][0]["annotations"] = ['clean(label="fn-signature")']
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    result = _invoke(["check", str(snapshot), "--cfg", "rev2", "--root", str(tmp_path)])
    assert result.exit_code == 2
    assert "fatal: no cfg attribute" in result.output
    assert "dirty_clean=aborted, metadata=passed" in result.output


def test_check_unreadable_snapshot(tmp_path: Path) -> None:
    snapshot = tmp_path / "broken.json"
    snapshot.write_text("{not json", encoding="utf-8")
    result = _invoke(["check", str(snapshot), "--root", str(tmp_path)])
    assert result.exit_code == 2
    assert "Could not load snapshot" in result.output

    missing = _invoke(["check", str(tmp_path / "missing.json"), "--root", str(tmp_path)])
    assert missing.exit_code == 2


def test_check_writes_json_and_markdown(tmp_path: Path, snapshot_payload) -> None:
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    json_path = tmp_path / "out" / "verify.json"
    report = tmp_path / "out" / "verify.md"
    result = _invoke(
        [
            "check",
            str(snapshot),
            "--cfg",
            "rev2",
            "--root",
            str(tmp_path),
            "--json",
            str(json_path),
            "--report",
            str(report),
        ]
    )
    assert result.exit_code == 0
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["crate"] == "krate"
    assert [entry["status"] for entry in payload["passes"]] == ["passed", "passed"]
    assert f"Wrote verification report: {report}" in result.output
    assert "| metadata | passed | 1 | 1 | 0 |" in report.read_text(encoding="utf-8")


def test_check_reads_config_file(tmp_path: Path, snapshot_payload) -> None:
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    report = tmp_path / "configured.md"
    (tmp_path / "incrcheck.toml").write_text(
        textwrap.dedent(
            f"""
            [verify]
            cfg = ["rev2"]
            query_dep_graph = false
            report = "{report.as_posix()}"
            """
        ),
        encoding="utf-8",
    )
    result = _invoke(["check", str(snapshot), "--root", str(tmp_path)])
    assert result.exit_code == 0
    assert "dirty_clean=passed, metadata=skipped" in result.output
    assert report.exists()


def test_check_skip_flags(tmp_path: Path, snapshot_payload) -> None:
    snapshot_payload["fingerprints"][0]["current"] = "changed"
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    result = _invoke(
        [
            "--log-level",
            "debug",
            "check",
            str(snapshot),
            "--cfg",
            "rev2",
            "--root",
            str(tmp_path),
            "--skip-annotations",
            "--skip-metadata",
        ]
    )
    assert result.exit_code == 0
    assert "dirty_clean=skipped, metadata=skipped" in result.output


def test_rejects_unknown_log_level(tmp_path: Path, snapshot_payload) -> None:
    snapshot = _write_snapshot(tmp_path, snapshot_payload)
    result = _invoke(["--log-level", "loud", "check", str(snapshot)])
    assert result.exit_code == 2


def test_labels_lists_supported_kinds() -> None:
    result = _invoke(["labels"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert any(line.startswith("fn (fn): ") and "fn-signature" in line for line in lines)
    assert any(line.startswith("trait_item (trait member): ") for line in lines)

    only_struct = _invoke(["labels", "--kind", "struct"])
    assert only_struct.exit_code == 0
    assert only_struct.output.startswith("struct (struct): ")
    assert len(only_struct.output.splitlines()) == 1


def test_labels_rejects_unsupported_kind() -> None:
    result = _invoke(["labels", "--kind", "mod"])
    assert result.exit_code == 2
    assert "clean/dirty auto-assertions not yet defined for mod" in result.output

    unknown = _invoke(["labels", "--kind", "macro"])
    assert unknown.exit_code == 2


def test_parse_annotation() -> None:
    result = _invoke(["parse-annotation", 'dirty(cfg="rev2", except="type-of", flag)'])
    assert result.exit_code == 0
    assert json.loads(result.output) == {
        "name": "dirty",
        "items": [
            {"name": "cfg", "value": "rev2"},
            {"name": "except", "value": "type-of"},
            {"name": "flag", "value": None},
        ],
    }

    broken = _invoke(["parse-annotation", "dirty(cfg="])
    assert broken.exit_code == 2
