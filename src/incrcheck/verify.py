"""Top-level driver: run both verification passes over a snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from pathlib import Path
from typing import Callable, Mapping

from incrcheck.analysis.diagnostics import Diagnostic, Session, Severity
from incrcheck.analysis.dirty_clean import CheckOutcome, check_dirty_clean_annotations
from incrcheck.analysis.labels import LabelRegistry
from incrcheck.analysis.metadata_hash import check_dirty_clean_metadata
from incrcheck.analysis.report_doc import ReportDoc
from incrcheck.exceptions import FatalCheckError
from incrcheck.json_types import JSONObject, JSONValue
from incrcheck.schema import VerificationResponseDTO
from incrcheck.snapshot import Snapshot

logger = logging.getLogger(__name__)

REPORT_VERSION = 1

DIRTY_CLEAN_PASS = "dirty_clean"
METADATA_PASS = "metadata"


class PassStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class VerifyOptions:
    cfg: frozenset[str] = frozenset()
    extra_labels: tuple[str, ...] = ()
    annotations_enabled: bool = True
    query_dep_graph: bool = True


@dataclass(frozen=True)
class PassReport:
    name: str
    status: PassStatus
    diagnostics: tuple[Diagnostic, ...] = ()
    checked: int = 0
    asserted: int = 0

    @property
    def errors(self) -> int:
        return sum(1 for entry in self.diagnostics if entry.severity is Severity.ERROR)

    @property
    def fatal(self) -> int:
        return sum(1 for entry in self.diagnostics if entry.severity is Severity.FATAL)

    def to_payload(self) -> JSONObject:
        return {
            "name": self.name,
            "status": self.status.value,
            "checked": self.checked,
            "asserted": self.asserted,
            "diagnostics": [entry.to_payload() for entry in self.diagnostics],
        }


@dataclass(frozen=True)
class VerificationReport:
    crate: str
    cfg: frozenset[str]
    passes: tuple[PassReport, ...] = field(default_factory=tuple)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [entry for report in self.passes for entry in report.diagnostics]

    @property
    def aborted(self) -> bool:
        return any(report.status is PassStatus.ABORTED for report in self.passes)

    @property
    def exit_code(self) -> int:
        if self.aborted:
            return 2
        if self.diagnostics:
            return 1
        return 0

    def to_payload(self) -> JSONObject:
        response = VerificationResponseDTO.model_validate(
            {
                "version": REPORT_VERSION,
                "crate": self.crate,
                "cfg": sorted(self.cfg),
                "summary": {
                    "errors": sum(report.errors for report in self.passes),
                    "fatal": sum(report.fatal for report in self.passes),
                    "aborted_passes": [
                        report.name
                        for report in self.passes
                        if report.status is PassStatus.ABORTED
                    ],
                },
                "passes": [report.to_payload() for report in self.passes],
                "exit_code": self.exit_code,
            }
        )
        return response.model_dump(mode="json")


def _run_pass(name: str, run: Callable[[Session], CheckOutcome]) -> PassReport:
    session = Session()
    try:
        outcome = run(session)
    except FatalCheckError as exc:
        logger.info("%s pass aborted: %s", name, exc.diagnostic.message)
        return PassReport(
            name=name,
            status=PassStatus.ABORTED,
            diagnostics=tuple(session.diagnostics),
        )
    status = PassStatus.FAILED if session.diagnostics else PassStatus.PASSED
    logger.info("%s pass %s with %d diagnostic(s)", name, status.value, session.error_count)
    return PassReport(
        name=name,
        status=status,
        diagnostics=tuple(session.diagnostics),
        checked=len(outcome.checked_attrs),
        asserted=outcome.asserted_artifacts,
    )


def run_verification(snapshot: Snapshot, options: VerifyOptions) -> VerificationReport:
    registry = LabelRegistry.default((*snapshot.labels, *options.extra_labels))
    tree = snapshot.tree
    passes: list[PassReport] = []

    if snapshot.annotations_enabled and options.annotations_enabled:
        passes.append(
            _run_pass(
                DIRTY_CLEAN_PASS,
                lambda session: check_dirty_clean_annotations(
                    tree,
                    snapshot.graph,
                    registry=registry,
                    session=session,
                    cfg=options.cfg,
                ),
            )
        )
    else:
        passes.append(PassReport(name=DIRTY_CLEAN_PASS, status=PassStatus.SKIPPED))

    prev_hashes = snapshot.prev_metadata_hashes
    current_hashes = snapshot.current_metadata_hashes
    if options.query_dep_graph and snapshot.has_metadata_hashes:
        passes.append(
            _run_pass(
                METADATA_PASS,
                lambda session: check_dirty_clean_metadata(
                    tree,
                    prev_metadata_hashes=prev_hashes,
                    current_metadata_hashes=current_hashes,
                    session=session,
                    cfg=options.cfg,
                ),
            )
        )
    else:
        passes.append(PassReport(name=METADATA_PASS, status=PassStatus.SKIPPED))

    return VerificationReport(crate=tree.crate, cfg=options.cfg, passes=tuple(passes))


def render_markdown(payload: Mapping[str, JSONValue]) -> str:
    doc = ReportDoc("out_incremental_verification")
    doc.header(1, f"Incremental verification: {payload.get('crate', '')}")
    doc.line()
    doc.section("Summary")
    doc.codeblock(payload.get("summary", {}))
    doc.line()
    passes = payload.get("passes", [])
    if not isinstance(passes, list):
        passes = []
    doc.table(
        ["pass", "status", "checked", "asserted", "diagnostics"],
        [
            [
                entry.get("name", ""),
                entry.get("status", ""),
                entry.get("checked", 0),
                entry.get("asserted", 0),
                len(entry.get("diagnostics", []) or []),
            ]
            for entry in passes
            if isinstance(entry, Mapping)
        ],
    )
    for entry in passes:
        if not isinstance(entry, Mapping):
            continue
        diagnostics = entry.get("diagnostics", [])
        if not isinstance(diagnostics, list) or not diagnostics:
            continue
        doc.line()
        doc.header(2, f"{entry.get('name', '')} diagnostics")
        doc.bullets(
            f"{item.get('file') or '<unknown>'}:{item.get('line', 0)}: "
            f"{item.get('severity', '')}: {item.get('message', '')}"
            for item in diagnostics
            if isinstance(item, Mapping)
        )
    return doc.emit()


def write_markdown(payload: Mapping[str, JSONValue], *, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_markdown(payload), encoding="utf-8")
