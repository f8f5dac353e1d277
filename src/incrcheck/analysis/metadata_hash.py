"""Check serialized-metadata hashes against dirty/clean metadata annotations.

- ``clean_metadata(cfg="rev2")``: the metadata hash of the declaration under
  ``rev2`` must equal the one from the previous run.
- ``dirty_metadata(cfg="rev2")``: it must differ.

These annotations must never name the first revision: there is no previous
hash to compare against, which is reported as an error.
"""

from __future__ import annotations

import logging
from typing import Mapping

from incrcheck.analysis.annotations import (
    ATTR_CLEAN_METADATA,
    ATTR_DIRTY_METADATA,
    check_config,
)
from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.dirty_clean import CheckOutcome, FindAllAttrs
from incrcheck.analysis.model import Declaration, Span
from incrcheck.analysis.tree import DeclarationTree
from incrcheck.analysis.visitors import DeclVisitor

logger = logging.getLogger(__name__)


def check_dirty_clean_metadata(
    tree: DeclarationTree,
    *,
    prev_metadata_hashes: Mapping[str, str],
    current_metadata_hashes: Mapping[str, str],
    session: Session,
    cfg: frozenset[str],
) -> CheckOutcome:
    logger.info("metadata hash pass over %s (cfg=%s)", tree.crate, sorted(cfg))
    visitor = DirtyCleanMetadataVisitor(
        tree=tree,
        prev_metadata_hashes=prev_metadata_hashes,
        current_metadata_hashes=current_metadata_hashes,
        session=session,
        cfg=cfg,
    )
    visitor.walk_crate(tree)

    all_attrs = FindAllAttrs(
        session=session,
        cfg=cfg,
        attr_names=(ATTR_DIRTY_METADATA, ATTR_CLEAN_METADATA),
        description="dirty/clean metadata",
    )
    all_attrs.walk_crate(tree)
    all_attrs.report_unchecked_attrs(visitor.checked_attrs)
    return CheckOutcome(
        checked_attrs=frozenset(visitor.checked_attrs),
        asserted_artifacts=visitor.asserted_hashes,
    )


class DirtyCleanMetadataVisitor(DeclVisitor):
    def __init__(
        self,
        *,
        tree: DeclarationTree,
        prev_metadata_hashes: Mapping[str, str],
        current_metadata_hashes: Mapping[str, str],
        session: Session,
        cfg: frozenset[str],
    ) -> None:
        self.tree = tree
        self.prev_metadata_hashes = prev_metadata_hashes
        self.current_metadata_hashes = current_metadata_hashes
        self.session = session
        self.cfg = cfg
        self.checked_attrs: set[int] = set()
        self.asserted_hashes = 0

    def visit_item(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_trait_item(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_impl_item(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_variant(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_discriminant(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_field(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def visit_foreign_item(self, decl: Declaration) -> None:
        self.check_item(decl)
        self.generic_visit(decl)

    def check_item(self, decl: Declaration) -> None:
        for attr in self.tree.annotations_of(decl):
            if attr.check_name(ATTR_DIRTY_METADATA):
                should_be_clean = False
            elif attr.check_name(ATTR_CLEAN_METADATA):
                should_be_clean = True
            else:
                continue
            if not check_config(self.session, self.cfg, attr):
                continue
            if attr.attr_id in self.checked_attrs:
                continue
            self.checked_attrs.add(attr.attr_id)
            self.assert_state(should_be_clean, decl, decl.span)

    def assert_state(self, should_be_clean: bool, decl: Declaration, span: Span) -> None:
        item_path = self.tree.path_of(decl)
        identity = self.tree.identity_of(decl)
        logger.debug("assert_state(%s)", item_path)
        self.asserted_hashes += 1

        prev_hash = self.prev_metadata_hashes.get(identity)
        if prev_hash is None:
            self.session.span_err(
                span,
                f"Could not find previous metadata hash of `{item_path}`",
            )
            return
        current_hash = self.current_metadata_hashes.get(identity)
        if current_hash is None:
            self.session.span_err(
                span,
                f"Could not find current metadata hash of `{item_path}`",
            )
            return

        hashes_are_equal = prev_hash == current_hash
        if should_be_clean and not hashes_are_equal:
            self.session.span_err(
                span,
                f"Metadata hash of `{item_path}` is dirty, but should be clean",
            )
        if not should_be_clean and hashes_are_equal:
            self.session.span_err(
                span,
                f"Metadata hash of `{item_path}` is clean, but should be dirty",
            )
