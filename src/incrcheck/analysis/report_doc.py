from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from incrcheck.invariants import never


def render_report_markdown(
    doc_id: str,
    lines: Iterable[str],
    *,
    doc_scope: Iterable[str] | None = None,
) -> str:
    scope = list(doc_scope or ("verification",))
    frontmatter = [
        "---",
        f"doc_id: {doc_id}",
        "doc_role: report",
        "doc_scope:",
        *[f"  - {entry}" for entry in scope],
        "---",
        "",
        f'<a id="{doc_id}"></a>',
        "",
    ]
    return "\n".join(frontmatter + list(lines)) + "\n"


@dataclass
class ReportDoc:
    doc_id: str
    doc_scope: tuple[str, ...] = ("verification",)
    _lines: list[str] = field(default_factory=list)

    def line(self, value: str = "") -> None:
        self._lines.append(value)

    def section(self, title: str) -> None:
        self._lines.append(f"{title}:")

    def header(self, level: int, title: str) -> None:
        if level < 1 or level > 6:
            never(
                "report header level out of range",
                level=level,
            )
        self._lines.append(f"{'#' * level} {title}")

    def bullets(self, items: Iterable[str]) -> None:
        for item in items:
            self._lines.append(f"- {item}")

    def codeblock(self, content: str | object, *, language: str = "") -> None:
        if isinstance(content, str):
            rendered = content
        else:
            rendered = json.dumps(content, indent=2, sort_keys=False)
        fence = f"```{language}" if language else "```"
        self._lines.append(fence)
        self._lines.extend(rendered.splitlines() or [""])
        self._lines.append("```")

    def table(self, headers: Sequence[str], rows: Iterable[Sequence[object]]) -> None:
        header_cells = [str(entry) for entry in headers]
        if not header_cells:
            never("report table requires at least one header")
        self._lines.append("| " + " | ".join(header_cells) + " |")
        self._lines.append("| " + " | ".join("---" for _ in header_cells) + " |")
        for row in rows:
            row_cells = [str(entry) for entry in row]
            if len(row_cells) != len(header_cells):
                never(
                    "report table row length mismatch",
                    expected=len(header_cells),
                    actual=len(row_cells),
                )
            self._lines.append("| " + " | ".join(row_cells) + " |")

    def emit(self) -> str:
        return render_report_markdown(
            self.doc_id,
            self._lines,
            doc_scope=self.doc_scope,
        )
