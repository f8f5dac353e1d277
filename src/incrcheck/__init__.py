"""incrcheck package root."""

from incrcheck.exceptions import FatalCheckError, NeverThrown
from incrcheck.invariants import never

__all__ = ["__version__", "FatalCheckError", "NeverThrown", "never"]

__version__ = "0.1.0"
