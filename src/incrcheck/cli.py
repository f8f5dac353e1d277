from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from incrcheck.analysis.annotations import parse_annotation_text
from incrcheck.analysis.labels import catalog_entry, supported_kinds
from incrcheck.analysis.model import DeclKind
from incrcheck.config import (
    active_cfg_list,
    annotations_enabled,
    extra_label_list,
    merge_payload,
    query_dep_graph_enabled,
    report_path,
    verify_defaults,
)
from incrcheck.json_types import JSONObject
from incrcheck.snapshot import load_snapshot
from incrcheck.verify import VerifyOptions, run_verification, write_markdown

app = typer.Typer(add_completion=False)

_STDOUT_ALIAS = "-"
_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@app.callback()
def main(
    log_level: str = typer.Option(
        "warning",
        "--log-level",
        help="Logging level (debug|info|warning|error|critical).",
    ),
) -> None:
    """Verify dirty/clean annotations against incremental fingerprints."""
    level = log_level.strip().lower()
    if level not in _LOG_LEVELS:
        raise typer.BadParameter(f"Unsupported log level {log_level!r}.", param_hint="--log-level")
    logging.basicConfig(level=level.upper())


def _write_json_target(target: str, payload: JSONObject) -> None:
    text = json.dumps(payload, indent=2, sort_keys=False) + "\n"
    if target == _STDOUT_ALIAS:
        typer.echo(text, nl=False)
        return
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _resolve_options(
    *,
    root: Path,
    config: Optional[Path],
    cfg: List[str],
    extra_labels: List[str],
    metadata: Optional[bool],
    annotations: Optional[bool],
    report: Optional[Path],
) -> tuple[VerifyOptions, Optional[Path]]:
    defaults = verify_defaults(root=root, config_path=config)
    merged = merge_payload(
        {
            "cfg": list(cfg) or None,
            "extra_labels": list(extra_labels) or None,
            "query_dep_graph": metadata,
            "annotations_enabled": annotations,
            "report": str(report) if report is not None else None,
        },
        defaults,
    )
    options = VerifyOptions(
        cfg=frozenset(active_cfg_list(merged)),
        extra_labels=tuple(extra_label_list(merged)),
        annotations_enabled=annotations_enabled(merged),
        query_dep_graph=query_dep_graph_enabled(merged),
    )
    return options, report_path(merged)


@app.command("check")
def check(
    snapshot: Path = typer.Argument(..., help="Snapshot file (.json, .yaml or .yml)."),
    cfg: List[str] = typer.Option(
        [],
        "--cfg",
        "-c",
        help="Active configuration predicate (repeatable, comma separated).",
    ),
    extra_label: List[str] = typer.Option(
        [],
        "--extra-label",
        help="Additional label known to the engine (repeatable).",
    ),
    skip_metadata: bool = typer.Option(
        False,
        "--skip-metadata",
        help="Skip the metadata hash pass.",
    ),
    skip_annotations: bool = typer.Option(
        False,
        "--skip-annotations",
        help="Skip the labeled fingerprint pass.",
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    report: Optional[Path] = typer.Option(
        None, "--report", help="Write a markdown report to this path."
    ),
    json_out: Optional[str] = typer.Option(
        None, "--json", help="Write the JSON report to this path ('-' for stdout)."
    ),
) -> None:
    """Check a snapshot's dirty/clean annotations."""
    options, markdown_path = _resolve_options(
        root=root,
        config=config,
        cfg=cfg,
        extra_labels=extra_label,
        metadata=False if skip_metadata else None,
        annotations=False if skip_annotations else None,
        report=report,
    )
    try:
        loaded = load_snapshot(snapshot)
    except (OSError, ValueError) as exc:
        typer.secho(f"Could not load snapshot {snapshot}: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    result = run_verification(loaded, options)
    for diagnostic in result.diagnostics:
        typer.echo(diagnostic.render(), err=True)
    payload = result.to_payload()
    if json_out:
        _write_json_target(json_out, payload)
    if markdown_path is not None:
        write_markdown(payload, output_path=markdown_path)
        typer.echo(f"Wrote verification report: {markdown_path}")
    if json_out != _STDOUT_ALIAS:
        summary = ", ".join(
            f"{entry.name}={entry.status.value}" for entry in result.passes
        )
        typer.echo(f"{result.crate}: {summary}")
    raise typer.Exit(code=result.exit_code)


@app.command("labels")
def labels(
    kind: Optional[str] = typer.Option(
        None, "--kind", help="Only show the baseline set for this declaration kind."
    ),
) -> None:
    """Print the baseline label set for each supported declaration kind."""
    kinds = supported_kinds()
    if kind is not None:
        try:
            selected = DeclKind(kind)
        except ValueError as exc:
            raise typer.BadParameter(f"unknown declaration kind {kind!r}", param_hint="--kind") from exc
        if selected not in kinds:
            typer.secho(
                f"clean/dirty auto-assertions not yet defined for {selected.value}",
                err=True,
                fg=typer.colors.RED,
            )
            raise typer.Exit(code=2)
        kinds = (selected,)
    for entry_kind in kinds:
        entry = catalog_entry(entry_kind)
        if entry is None:
            continue
        typer.echo(f"{entry.kind.value} ({entry.name}): {', '.join(sorted(entry.labels))}")


@app.command("parse-annotation")
def parse_annotation(text: str = typer.Argument(...)) -> None:
    """Show how an annotation's keys and values are read."""
    try:
        name, items = parse_annotation_text(text)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    payload: JSONObject = {
        "name": name,
        "items": [{"name": item.name, "value": item.value} for item in items],
    }
    typer.echo(json.dumps(payload, indent=2))
