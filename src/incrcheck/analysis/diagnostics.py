from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import NoReturn

from incrcheck.analysis.model import Span
from incrcheck.exceptions import FatalCheckError
from incrcheck.json_types import JSONObject


class Severity(StrEnum):
    ERROR = "error"
    FATAL = "fatal"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    span: Span
    message: str

    def render(self) -> str:
        return f"{self.span.render()}: {self.severity.value}: {self.message}"

    def to_payload(self) -> JSONObject:
        return {
            "severity": self.severity.value,
            "file": self.span.file,
            "line": self.span.line,
            "column": self.span.column,
            "message": self.message,
        }


@dataclass
class Session:
    """Append-only diagnostic sink for one verification pass."""

    diagnostics: list[Diagnostic] = field(default_factory=list)

    def span_err(self, span: Span, message: str) -> None:
        self.diagnostics.append(Diagnostic(Severity.ERROR, span, message))

    def span_fatal(self, span: Span, message: str) -> NoReturn:
        diagnostic = Diagnostic(Severity.FATAL, span, message)
        self.diagnostics.append(diagnostic)
        raise FatalCheckError(diagnostic)

    @property
    def error_count(self) -> int:
        return len(self.diagnostics)
