"""Load a serialized run pair (tree, fingerprints, metadata hashes)."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Mapping

import yaml

from incrcheck.analysis.engine import Fingerprint, SnapshotDepGraph
from incrcheck.analysis.model import ArtifactIdentity, DeclKind, Declaration, MetaItem, Span
from incrcheck.analysis.tree import DeclarationTree, TreeBuilder
from incrcheck.schema import DeclarationDTO, SnapshotDTO, SpanDTO

SNAPSHOT_VERSION = 1
_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


@dataclass(frozen=True)
class Snapshot:
    tree: DeclarationTree
    graph: SnapshotDepGraph
    labels: tuple[str, ...] = ()
    annotations_enabled: bool = True
    prev_metadata_hashes: Mapping[str, str] | None = None
    current_metadata_hashes: Mapping[str, str] | None = None

    @property
    def has_metadata_hashes(self) -> bool:
        return self.prev_metadata_hashes is not None and self.current_metadata_hashes is not None


def _span(raw: SpanDTO | None) -> Span:
    if raw is None:
        return Span()
    return Span(file=raw.file, line=raw.line, column=raw.column)


def _kind(raw: str, *, name: str) -> DeclKind:
    try:
        return DeclKind(raw)
    except ValueError:
        raise ValueError(f"unknown declaration kind {raw!r} for {name!r}") from None


def _build_decl(builder: TreeBuilder, raw: DeclarationDTO) -> Declaration:
    span = _span(raw.span)
    annotations = []
    for entry in raw.annotations:
        if isinstance(entry, str):
            annotations.append(builder.parse_annotation(entry, span=span))
            continue
        attr_span = _span(entry.span) if entry.span is not None else span
        annotations.append(
            builder.annotation_from_items(
                entry.name,
                [
                    MetaItem(name=item.name, value=item.value, span=attr_span)
                    for item in entry.items
                ],
                span=attr_span,
            )
        )
    children = [_build_decl(builder, child) for child in raw.children]
    return builder.decl(
        _kind(raw.kind, name=raw.name),
        raw.name,
        annotations=annotations,
        children=children,
        span=span,
        identity=raw.identity or "",
    )


def snapshot_from_dto(dto: SnapshotDTO) -> Snapshot:
    if dto.version != SNAPSHOT_VERSION:
        raise ValueError(
            f"Unsupported snapshot version={dto.version!r}; expected {SNAPSHOT_VERSION}"
        )
    builder = TreeBuilder()
    tree = DeclarationTree(
        dto.crate,
        [_build_decl(builder, raw) for raw in dto.declarations],
    )
    current: dict[ArtifactIdentity, Fingerprint] = {}
    previous: dict[ArtifactIdentity, Fingerprint] = {}
    for entry in dto.fingerprints:
        identity = entry.identity
        if identity is None:
            if entry.path is None:
                raise ValueError(f"fingerprint for {entry.label!r} names no identity or path")
            decl = tree.by_path(entry.path)
            if decl is None:
                raise ValueError(f"fingerprint path {entry.path!r} matches no declaration")
            identity = tree.identity_of(decl)
        artifact = ArtifactIdentity(label=entry.label, identity=identity)
        if artifact in current:
            raise ValueError(f"duplicate fingerprint for {entry.label}({identity})")
        current[artifact] = entry.current
        if entry.previous is not None:
            previous[artifact] = entry.previous
    prev_hashes = current_hashes = None
    if dto.metadata_hashes is not None:
        prev_hashes = _hashes_by_identity(tree, dto.metadata_hashes.previous)
        current_hashes = _hashes_by_identity(tree, dto.metadata_hashes.current)
    return Snapshot(
        tree=tree,
        graph=SnapshotDepGraph(current, previous),
        labels=tuple(dto.labels),
        annotations_enabled=dto.annotations_enabled,
        prev_metadata_hashes=prev_hashes,
        current_metadata_hashes=current_hashes,
    )


def _hashes_by_identity(tree: DeclarationTree, raw: Mapping[str, str]) -> dict[str, str]:
    # Keys may be identities or def paths.
    hashes: dict[str, str] = {}
    for key, value in raw.items():
        decl = tree.by_path(key)
        identity = tree.identity_of(decl) if decl is not None else key
        hashes[identity] = value
    return hashes


def load_snapshot_payload(path: Path) -> object:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML snapshot {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON snapshot {path}: {exc}") from exc


def load_snapshot(path: Path) -> Snapshot:
    payload = load_snapshot_payload(path)
    if not isinstance(payload, Mapping):
        raise ValueError("Snapshot payload must be a mapping.")
    return snapshot_from_dto(SnapshotDTO.model_validate(payload))
