"""JSON-like value types used at report and snapshot boundaries.

These aliases intentionally avoid `object`/`Any` so payload surfaces remain
auditable: if an artifact is meant to be JSON, its value space should be
explicitly declared as JSON-compatible.
"""

from __future__ import annotations

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
