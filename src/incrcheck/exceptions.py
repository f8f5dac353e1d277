"""Exception protocol for verification passes."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from incrcheck.analysis.diagnostics import Diagnostic


class FatalCheckError(RuntimeError):
    """Raised when an annotation cannot be meaningfully evaluated.

    The verification pass that raised it stops immediately. The diagnostic has
    already been recorded on the session, so callers only need to catch this
    at the pass boundary.
    """

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


class NeverThrown(RuntimeError):
    """Sentinel exception for code paths that must be unreachable."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})
