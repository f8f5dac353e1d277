"""Artifact labels and the per-kind baseline ("auto") label catalog.

The catalog is pure data: every supported declaration kind maps to a display
name and a composition of label groups. Kinds not in the catalog are rejected
with a fatal diagnostic naming the kind, so that auto-derivation is explicit
about what it does not cover.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cache
from typing import Iterable, Sequence

from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.model import ArtifactIdentity, DeclKind, Span
from incrcheck.invariants import never

TREE_SHAPE = "tree-shape"
TREE_BODY = "tree-body"
GENERATED_CODE_VALIDATED = "generated-code-validated"
GENERATED_CODE_OPTIMIZED = "generated-code-optimized"
TYPE_OF = "type-of"
GENERICS_OF = "generics-of"
PREDICATES_OF = "predicates-of"
FN_SIGNATURE = "fn-signature"
INFERRED_TYPES = "inferred-types"
ASSOCIATED_ITEMS = "associated-items"
TRAIT_OF = "trait-of"
TRAIT_DEF = "trait-def"
TRAIT_IMPLS = "trait-impls"
SPECIALIZATION_GRAPH = "specialization-graph"
OBJECT_SAFETY = "object-safety"
ASSOCIATED_ITEM_IDS = "associated-item-ids"
IMPL_TRAIT_REF = "impl-trait-ref"

# Known to the engine but never part of an auto set.
VARIANCES_OF = "variances-of"
INHERENT_IMPLS = "inherent-impls"
ITEM_ATTRS = "item-attrs"
BORROW_CHECK = "borrow-check"

LabelGroup = tuple[str, ...]

# Tree shape and body are computed for every declaration.
BASE_TREE: LabelGroup = (TREE_SHAPE, TREE_BODY)

# Generated code only exists for executable declarations.
BASE_GENERATED: LabelGroup = (GENERATED_CODE_VALIDATED, GENERATED_CODE_OPTIMIZED)

# Callers depend on the signature class; type inference results are the
# bulk of cached work for a function body.
BASE_FN: LabelGroup = (
    TYPE_OF,
    GENERICS_OF,
    PREDICATES_OF,
    FN_SIGNATURE,
    INFERRED_TYPES,
)

EXTRA_METHOD: LabelGroup = (ASSOCIATED_ITEMS,)

EXTRA_TRAIT_METHOD: LabelGroup = (TRAIT_OF,)

# Changing the type of a field does not change the type of the container,
# but adding or removing a field or changing its name or visibility does.
# Fields themselves are not tracked.
BASE_STRUCT: LabelGroup = (TYPE_OF, GENERICS_OF, PREDICATES_OF)

# Type aliases, constants and statics.
BASE_CONST: LabelGroup = (TYPE_OF, ASSOCIATED_ITEMS, TRAIT_OF)

BASE_TRAIT: LabelGroup = (
    TRAIT_DEF,
    TRAIT_IMPLS,
    SPECIALIZATION_GRAPH,
    OBJECT_SAFETY,
    ASSOCIATED_ITEM_IDS,
    GENERICS_OF,
    PREDICATES_OF,
)

BASE_IMPL: LabelGroup = (IMPL_TRAIT_REF, ASSOCIATED_ITEM_IDS, GENERICS_OF)

LABELS_FN: tuple[LabelGroup, ...] = (BASE_TREE, BASE_GENERATED, BASE_FN)
LABELS_METHOD: tuple[LabelGroup, ...] = (*LABELS_FN, EXTRA_METHOD)
LABELS_TRAIT_METHOD: tuple[LabelGroup, ...] = (*LABELS_METHOD, EXTRA_TRAIT_METHOD)
LABELS_TRAIT: tuple[LabelGroup, ...] = (BASE_TREE, BASE_TRAIT)
LABELS_IMPL: tuple[LabelGroup, ...] = (BASE_TREE, BASE_IMPL)
LABELS_STRUCT: tuple[LabelGroup, ...] = (BASE_TREE, BASE_STRUCT)
LABELS_CONST: tuple[LabelGroup, ...] = (BASE_TREE, BASE_CONST)

_CATALOG: dict[DeclKind, tuple[str, tuple[LabelGroup, ...]]] = {
    DeclKind.STATIC: ("static", LABELS_CONST),
    DeclKind.CONST: ("const", LABELS_CONST),
    DeclKind.FN: ("fn", LABELS_FN),
    DeclKind.TYPE_ALIAS: ("type alias", LABELS_CONST),
    DeclKind.ENUM: ("enum", LABELS_STRUCT),
    DeclKind.STRUCT: ("struct", LABELS_STRUCT),
    DeclKind.UNION: ("union", LABELS_STRUCT),
    DeclKind.TRAIT: ("trait", LABELS_TRAIT),
    DeclKind.DEFAULT_IMPL: ("default impl", LABELS_IMPL),
    DeclKind.IMPL: ("impl", LABELS_IMPL),
    DeclKind.TRAIT_ITEM: ("trait member", LABELS_TRAIT_METHOD),
    DeclKind.IMPL_ITEM: ("impl member", LABELS_METHOD),
}


@dataclass(frozen=True)
class CatalogEntry:
    kind: DeclKind
    name: str
    labels: frozenset[str]


def _flatten(groups: Iterable[LabelGroup]) -> frozenset[str]:
    return frozenset(label for group in groups for label in group)


@cache
def catalog_entry(kind: DeclKind) -> CatalogEntry | None:
    entry = _CATALOG.get(kind)
    if entry is None:
        return None
    name, groups = entry
    return CatalogEntry(kind=kind, name=name, labels=_flatten(groups))


def supported_kinds() -> tuple[DeclKind, ...]:
    return tuple(_CATALOG)


def auto_labels(
    kind: DeclKind,
    *,
    session: Session,
    span: Span,
) -> tuple[str, frozenset[str]]:
    """Return the display name and baseline label set for ``kind``."""
    entry = catalog_entry(kind)
    if entry is None:
        session.span_fatal(
            span,
            f"clean/dirty auto-assertions not yet defined for {kind.value}",
        )
    return entry.name, entry.labels


CATALOG_LABELS: frozenset[str] = _flatten(
    group for _, groups in _CATALOG.values() for group in groups
)

ENGINE_ONLY_LABELS: frozenset[str] = frozenset(
    {VARIANCES_OF, INHERENT_IMPLS, ITEM_ATTRS, BORROW_CHECK}
)


class LabelRegistry:
    """Label strings the dependency-graph engine can build artifacts for."""

    def __init__(self, labels: Iterable[str]) -> None:
        self._labels = frozenset(labels)

    @classmethod
    def default(cls, extra: Sequence[str] = ()) -> LabelRegistry:
        return cls(CATALOG_LABELS | ENGINE_ONLY_LABELS | frozenset(extra))

    def is_known(self, label: str) -> bool:
        return label in self._labels

    def build(self, label: str, identity: str) -> ArtifactIdentity:
        if not self.is_known(label):
            never("artifact requested for unregistered label", label=label)
        return ArtifactIdentity(label=label, identity=identity)

    def labels(self) -> tuple[str, ...]:
        return tuple(sorted(self._labels))
