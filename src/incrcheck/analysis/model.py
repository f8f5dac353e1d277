from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from incrcheck.invariants import never


class DeclKind(StrEnum):
    # top-level items
    FN = "fn"
    STATIC = "static"
    CONST = "const"
    TYPE_ALIAS = "type_alias"
    STRUCT = "struct"
    ENUM = "enum"
    UNION = "union"
    TRAIT = "trait"
    IMPL = "impl"
    DEFAULT_IMPL = "default_impl"
    MOD = "mod"
    USE = "use"
    EXTERN_CRATE = "extern_crate"
    FOREIGN_MOD = "foreign_mod"
    GLOBAL_ASM = "global_asm"
    # members
    TRAIT_ITEM = "trait_item"
    IMPL_ITEM = "impl_item"
    # nested entities
    VARIANT = "variant"
    DISCRIMINANT = "discriminant"
    FIELD = "field"
    FOREIGN_ITEM = "foreign_item"


ITEM_KINDS: frozenset[DeclKind] = frozenset(
    {
        DeclKind.FN,
        DeclKind.STATIC,
        DeclKind.CONST,
        DeclKind.TYPE_ALIAS,
        DeclKind.STRUCT,
        DeclKind.ENUM,
        DeclKind.UNION,
        DeclKind.TRAIT,
        DeclKind.IMPL,
        DeclKind.DEFAULT_IMPL,
        DeclKind.MOD,
        DeclKind.USE,
        DeclKind.EXTERN_CRATE,
        DeclKind.FOREIGN_MOD,
        DeclKind.GLOBAL_ASM,
    }
)

# Which child kinds each parent may hold.
ALLOWED_CHILDREN: dict[DeclKind, frozenset[DeclKind]] = {
    DeclKind.MOD: ITEM_KINDS,
    DeclKind.TRAIT: frozenset({DeclKind.TRAIT_ITEM}),
    DeclKind.IMPL: frozenset({DeclKind.IMPL_ITEM}),
    DeclKind.DEFAULT_IMPL: frozenset(),
    DeclKind.ENUM: frozenset({DeclKind.VARIANT}),
    DeclKind.STRUCT: frozenset({DeclKind.FIELD}),
    DeclKind.UNION: frozenset({DeclKind.FIELD}),
    DeclKind.VARIANT: frozenset({DeclKind.FIELD, DeclKind.DISCRIMINANT}),
    DeclKind.FOREIGN_MOD: frozenset({DeclKind.FOREIGN_ITEM}),
}


@dataclass(frozen=True)
class Span:
    file: str = ""
    line: int = 0
    column: int = 0

    def render(self) -> str:
        if not self.file:
            return "<unknown>"
        return f"{self.file}:{self.line}:{self.column}"


DUMMY_SPAN = Span()


@dataclass(frozen=True)
class MetaItem:
    """One `key` or `key="value"` entry inside an annotation."""

    name: str | None
    value: str | None = None
    span: Span = DUMMY_SPAN

    def check_name(self, name: str) -> bool:
        return self.name == name


@dataclass(frozen=True)
class Annotation:
    attr_id: int
    name: str
    items: tuple[MetaItem, ...] = ()
    span: Span = DUMMY_SPAN

    def check_name(self, name: str) -> bool:
        return self.name == name

    def meta_item_list(self) -> tuple[MetaItem, ...]:
        return self.items


@dataclass
class Declaration:
    node_id: int
    kind: DeclKind
    name: str
    span: Span = DUMMY_SPAN
    identity: str = ""
    annotations: tuple[Annotation, ...] = ()
    children: list[Declaration] = field(default_factory=list)

    def children_of(self, *kinds: DeclKind) -> list[Declaration]:
        return [child for child in self.children if child.kind in kinds]


@dataclass(frozen=True)
class ArtifactIdentity:
    label: str
    identity: str


@dataclass(frozen=True)
class Assertion:
    clean: frozenset[str] = frozenset()
    dirty: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        overlap = self.clean & self.dirty
        if overlap:
            never(
                "assertion clean and dirty label sets overlap",
                overlap=sorted(overlap),
            )

    @classmethod
    def from_clean_labels(cls, labels: frozenset[str]) -> Assertion:
        return cls(clean=labels, dirty=frozenset())

    @classmethod
    def from_dirty_labels(cls, labels: frozenset[str]) -> Assertion:
        return cls(clean=frozenset(), dirty=labels)
