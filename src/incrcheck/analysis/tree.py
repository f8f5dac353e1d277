"""Declaration tree of the program under test."""

from __future__ import annotations

from hashlib import sha1
from typing import TYPE_CHECKING, Iterator, Sequence

from incrcheck.analysis.annotations import parse_annotation_text
from incrcheck.analysis.model import (
    ALLOWED_CHILDREN,
    DUMMY_SPAN,
    ITEM_KINDS,
    Annotation,
    DeclKind,
    Declaration,
    MetaItem,
    Span,
)

if TYPE_CHECKING:
    from incrcheck.analysis.visitors import ItemLikeVisitor

PATH_SEPARATOR = "::"


def derive_identity(path: str) -> str:
    return sha1(path.encode("utf-8")).hexdigest()[:16]


class DeclarationTree:
    """Indexed, read-only view over a crate's declarations.

    Identities not supplied by the caller are derived from the declaration's
    def path, so they stay stable across runs as long as the path does.
    """

    def __init__(self, crate: str, items: Sequence[Declaration]) -> None:
        self.crate = crate
        self._items = list(items)
        self._nodes: dict[int, Declaration] = {}
        self._paths: dict[int, str] = {}
        self._identities: dict[int, str] = {}
        self._by_identity: dict[str, Declaration] = {}
        self._by_path: dict[str, Declaration] = {}
        self._annotations: dict[int, Annotation] = {}
        for item in self._items:
            if item.kind not in ITEM_KINDS:
                raise ValueError(
                    f"top-level declaration {item.name!r} has non-item kind {item.kind.value}"
                )
            self._index(item, prefix=crate)

    def _index(self, decl: Declaration, *, prefix: str) -> None:
        if decl.node_id in self._nodes:
            raise ValueError(f"duplicate declaration node id {decl.node_id}")
        path = f"{prefix}{PATH_SEPARATOR}{decl.name}" if prefix else decl.name
        identity = decl.identity or derive_identity(path)
        if identity in self._by_identity:
            raise ValueError(f"duplicate declaration identity {identity!r} at {path}")
        self._nodes[decl.node_id] = decl
        self._paths[decl.node_id] = path
        self._identities[decl.node_id] = identity
        self._by_identity[identity] = decl
        self._by_path.setdefault(path, decl)
        for annotation in decl.annotations:
            if annotation.attr_id in self._annotations:
                raise ValueError(f"duplicate annotation id {annotation.attr_id} at {path}")
            self._annotations[annotation.attr_id] = annotation
        allowed = ALLOWED_CHILDREN.get(decl.kind, frozenset())
        for child in decl.children:
            if child.kind not in allowed:
                raise ValueError(
                    f"{decl.kind.value} {path} cannot contain {child.kind.value} {child.name!r}"
                )
            self._index(child, prefix=path)

    def identity_of(self, decl: Declaration) -> str:
        return self._identities[decl.node_id]

    def by_identity(self, identity: str) -> Declaration | None:
        return self._by_identity.get(identity)

    def path_of(self, decl: Declaration) -> str:
        return self._paths[decl.node_id]

    def by_path(self, path: str) -> Declaration | None:
        return self._by_path.get(path)

    def annotations_of(self, decl: Declaration) -> tuple[Annotation, ...]:
        return decl.annotations

    def items(self) -> list[Declaration]:
        return list(self._items)

    def _item_likes(self, items: Sequence[Declaration]) -> Iterator[Declaration]:
        for item in items:
            yield item
            if item.kind is DeclKind.MOD:
                yield from self._item_likes(item.children)
                continue
            for child in item.children_of(DeclKind.TRAIT_ITEM, DeclKind.IMPL_ITEM):
                yield child

    def visit_all_item_likes(self, visitor: ItemLikeVisitor) -> None:
        """Visit every item, trait member and impl member exactly once.

        Nested entities (variants, fields, discriminants, foreign items) are
        not item-likes and are skipped.
        """
        for decl in self._item_likes(self._items):
            if decl.kind is DeclKind.TRAIT_ITEM:
                visitor.visit_trait_item(decl)
            elif decl.kind is DeclKind.IMPL_ITEM:
                visitor.visit_impl_item(decl)
            else:
                visitor.visit_item(decl)


class TreeBuilder:
    """Allocates node and annotation ids while assembling a tree."""

    def __init__(self) -> None:
        self._next_node_id = 0
        self._next_attr_id = 0

    def annotation(
        self,
        name: str,
        *flags: str,
        span: Span = DUMMY_SPAN,
        **values: str,
    ) -> Annotation:
        # Trailing underscores allow reserved words such as `except_`.
        items = [MetaItem(name=flag, span=span) for flag in flags]
        items.extend(
            MetaItem(name=key.rstrip("_"), value=value, span=span)
            for key, value in values.items()
        )
        return self.annotation_from_items(name, items, span=span)

    def annotation_from_items(
        self,
        name: str,
        items: Sequence[MetaItem],
        *,
        span: Span = DUMMY_SPAN,
    ) -> Annotation:
        attr_id = self._next_attr_id
        self._next_attr_id += 1
        return Annotation(attr_id=attr_id, name=name, items=tuple(items), span=span)

    def parse_annotation(self, text: str, *, span: Span = DUMMY_SPAN) -> Annotation:
        name, items = parse_annotation_text(text, span=span)
        return self.annotation_from_items(name, items, span=span)

    def decl(
        self,
        kind: DeclKind,
        name: str,
        *,
        annotations: Sequence[Annotation] = (),
        children: Sequence[Declaration] = (),
        span: Span = DUMMY_SPAN,
        identity: str = "",
    ) -> Declaration:
        node_id = self._next_node_id
        self._next_node_id += 1
        return Declaration(
            node_id=node_id,
            kind=kind,
            name=name,
            span=span,
            identity=identity,
            annotations=tuple(annotations),
            children=list(children),
        )
