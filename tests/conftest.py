from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Mapping

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))


import pytest

from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.engine import SnapshotDepGraph
from incrcheck.analysis.labels import LabelRegistry
from incrcheck.analysis.model import ArtifactIdentity
from incrcheck.analysis.tree import DeclarationTree, TreeBuilder


@pytest.fixture
def builder() -> TreeBuilder:
    return TreeBuilder()


@pytest.fixture
def registry() -> LabelRegistry:
    return LabelRegistry.default()


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def make_graph():
    """Build a dep graph from ``{(path, label): (current, previous)}``.

    ``previous`` may be None for artifacts that are new in this run.
    """

    def _make(
        tree: DeclarationTree,
        entries: Mapping[tuple[str, str], tuple[str, str | None]],
    ) -> SnapshotDepGraph:
        current: dict[ArtifactIdentity, str] = {}
        previous: dict[ArtifactIdentity, str] = {}
        for (path, label), (now, before) in entries.items():
            decl = tree.by_path(path)
            assert decl is not None, path
            artifact = ArtifactIdentity(label=label, identity=tree.identity_of(decl))
            current[artifact] = now
            if before is not None:
                previous[artifact] = before
        return SnapshotDepGraph(current, previous)

    return _make


@pytest.fixture
def uniform_entries():
    """Fingerprint entries for ``labels`` of ``path``; ``changed`` ones differ."""

    def _make(
        path: str,
        labels: Iterable[str],
        *,
        changed: Iterable[str] = (),
    ) -> dict[tuple[str, str], tuple[str, str | None]]:
        changed_set = set(changed)
        entries: dict[tuple[str, str], tuple[str, str | None]] = {}
        for label in labels:
            before = f"{label}@1"
            now = f"{label}@2" if label in changed_set else before
            entries[(path, label)] = (now, before)
        return entries

    return _make


@pytest.fixture
def snapshot_payload() -> dict[str, object]:
    """Two-revision snapshot where every annotation holds under ``rev2``."""
    return {
        "version": 1,
        "crate": "krate",
        "declarations": [
            {
                "kind": "fn",
                "name": "foo",
                "span": {"file": "lib.rs", "line": 3, "column": 1},
                "annotations": ['clean(cfg="rev2", label="fn-signature")'],
            },
            {
                "kind": "struct",
                "name": "Point",
                "span": {"file": "lib.rs", "line": 8, "column": 1},
                "annotations": [
                    {
                        "name": "dirty",
                        "items": [
                            {"name": "cfg", "value": "rev2"},
                            {"name": "label", "value": "tree-shape"},
                        ],
                    },
                    'clean_metadata(cfg="rev2")',
                ],
                "children": [{"kind": "field", "name": "x"}],
            },
        ],
        "fingerprints": [
            {"path": "krate::foo", "label": "fn-signature", "current": "a", "previous": "a"},
            {"path": "krate::Point", "label": "tree-shape", "current": "b2", "previous": "b1"},
        ],
        "metadata_hashes": {
            "previous": {"krate::Point": "m1"},
            "current": {"krate::Point": "m1"},
        },
    }
