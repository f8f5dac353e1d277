from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from incrcheck.analysis.model import ITEM_KINDS, Annotation, DeclKind, Declaration

if TYPE_CHECKING:
    from incrcheck.analysis.tree import DeclarationTree


class ItemLikeVisitor(Protocol):
    def visit_item(self, item: Declaration) -> None: ...

    def visit_trait_item(self, item: Declaration) -> None: ...

    def visit_impl_item(self, item: Declaration) -> None: ...


_VISIT_CATEGORY: dict[DeclKind, str] = {kind: "item" for kind in ITEM_KINDS}
_VISIT_CATEGORY.update(
    {
        DeclKind.TRAIT_ITEM: "trait_item",
        DeclKind.IMPL_ITEM: "impl_item",
        DeclKind.VARIANT: "variant",
        DeclKind.DISCRIMINANT: "discriminant",
        DeclKind.FIELD: "field",
        DeclKind.FOREIGN_ITEM: "foreign_item",
    }
)


class DeclVisitor:
    """Full-depth walk over a declaration tree.

    Dispatches to ``visit_<category>`` (``item``, ``trait_item``,
    ``impl_item``, ``variant``, ``discriminant``, ``field``,
    ``foreign_item``) and falls back to `generic_visit`, which reports the
    declaration's annotations and then descends into its children. Overrides
    call `generic_visit` themselves to keep walking.
    """

    def walk_crate(self, tree: DeclarationTree) -> None:
        for item in tree.items():
            self.visit(item)

    def visit(self, decl: Declaration) -> None:
        category = _VISIT_CATEGORY[decl.kind]
        visitor = getattr(self, f"visit_{category}", self.generic_visit)
        visitor(decl)

    def generic_visit(self, decl: Declaration) -> None:
        for attr in decl.annotations:
            self.visit_annotation(attr, decl)
        for child in decl.children:
            self.visit(child)

    def visit_annotation(self, attr: Annotation, decl: Declaration) -> None:
        return None

