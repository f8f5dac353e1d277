"""Check fingerprints of labeled artifacts against dirty/clean annotations.

For each declaration annotated with ``dirty(...)`` or ``clean(...)`` whose
``cfg`` predicate is active, the fingerprint of every asserted artifact from
the current run is compared with the one from the previous run:

- ``dirty(label="inferred-types", cfg="rev2")``: the fingerprints of
  ``inferred-types`` for the declaration must DIFFER.
- ``clean(label="inferred-types", cfg="rev2")``: they must be the SAME.

Mismatches are recoverable errors. Afterwards every dirty/clean annotation in
the tree is checked off against the ones that were evaluated, which catches
annotations placed where the item-like walk never looks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable, Iterator, Sequence

from incrcheck.analysis.annotations import (
    ATTR_CLEAN,
    ATTR_DIRTY,
    AssertionResolver,
    check_config,
    tracked_names,
)
from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.engine import DepGraph, UnknownArtifactError
from incrcheck.analysis.labels import LabelRegistry
from incrcheck.analysis.model import Annotation, ArtifactIdentity, Declaration, Span
from incrcheck.analysis.tree import DeclarationTree
from incrcheck.analysis.visitors import DeclVisitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    """What one pass evaluated; diagnostics live on the session."""

    checked_attrs: frozenset[int]
    asserted_artifacts: int


def check_dirty_clean_annotations(
    tree: DeclarationTree,
    graph: DepGraph,
    *,
    registry: LabelRegistry,
    session: Session,
    cfg: frozenset[str],
) -> CheckOutcome:
    """Run the labeled-fingerprint pass over ``tree``.

    Raises `FatalCheckError` on a malformed annotation; recoverable
    mismatches accumulate on ``session``.
    """
    logger.info("dirty/clean pass over %s (cfg=%s)", tree.crate, sorted(cfg))
    visitor = DirtyCleanVisitor(
        tree=tree,
        graph=graph,
        registry=registry,
        session=session,
        cfg=cfg,
    )
    tree.visit_all_item_likes(visitor)

    all_attrs = FindAllAttrs(
        session=session,
        cfg=cfg,
        attr_names=(ATTR_DIRTY, ATTR_CLEAN),
        description="dirty/clean",
    )
    all_attrs.walk_crate(tree)
    all_attrs.report_unchecked_attrs(visitor.checked_attrs)
    return CheckOutcome(
        checked_attrs=frozenset(visitor.checked_attrs),
        asserted_artifacts=visitor.asserted_artifacts,
    )


@dataclass
class DirtyCleanVisitor:
    tree: DeclarationTree
    graph: DepGraph
    registry: LabelRegistry
    session: Session
    cfg: frozenset[str]
    checked_attrs: set[int] = field(default_factory=set)
    asserted_artifacts: int = 0

    def __post_init__(self) -> None:
        self.resolver = AssertionResolver(
            session=self.session,
            registry=self.registry,
            cfg=self.cfg,
        )

    def visit_item(self, item: Declaration) -> None:
        self.check_item(item)

    def visit_trait_item(self, item: Declaration) -> None:
        self.check_item(item)

    def visit_impl_item(self, item: Declaration) -> None:
        self.check_item(item)

    def check_item(self, decl: Declaration) -> None:
        for attr in self.tree.annotations_of(decl):
            if attr.attr_id in self.checked_attrs:
                continue
            assertion = self.resolver.assertion_maybe(decl, attr)
            if assertion is None:
                continue
            self.checked_attrs.add(attr.attr_id)
            for artifact in self.artifacts(assertion.clean, decl):
                self.assert_clean(decl.span, artifact)
            for artifact in self.artifacts(assertion.dirty, decl):
                self.assert_dirty(decl.span, artifact)

    def artifacts(self, labels: Iterable[str], decl: Declaration) -> Iterator[ArtifactIdentity]:
        identity = self.tree.identity_of(decl)
        for label in sorted(labels):
            yield self.registry.build(label, identity)

    def artifact_str(self, artifact: ArtifactIdentity) -> str:
        decl = self.tree.by_identity(artifact.identity)
        if decl is not None:
            return f"{artifact.label}({self.tree.path_of(decl)})"
        return f"{artifact.label}({artifact.identity!r})"

    def _fingerprints(self, span: Span, artifact: ArtifactIdentity) -> tuple[str, str | None]:
        self.asserted_artifacts += 1
        try:
            current = self.graph.fingerprint_of(artifact)
        except UnknownArtifactError:
            self.session.span_fatal(
                span,
                f"no current fingerprint for `{self.artifact_str(artifact)}`",
            )
        return current, self.graph.prev_fingerprint_of(artifact)

    def assert_dirty(self, span: Span, artifact: ArtifactIdentity) -> None:
        logger.debug("assert_dirty(%s)", artifact)
        current, previous = self._fingerprints(span, artifact)
        if previous is not None and current == previous:
            self.session.span_err(
                span,
                f"`{self.artifact_str(artifact)}` should be dirty but is not",
            )

    def assert_clean(self, span: Span, artifact: ArtifactIdentity) -> None:
        logger.debug("assert_clean(%s)", artifact)
        current, previous = self._fingerprints(span, artifact)
        if previous is None or current != previous:
            self.session.span_err(
                span,
                f"`{self.artifact_str(artifact)}` should be clean but is not",
            )


class FindAllAttrs(DeclVisitor):
    """Collects every active annotation with one of ``attr_names``.

    Used to verify that checks really ran for all annotated declarations;
    the host pipeline's unused-annotation lint runs before these passes and
    cannot see them.
    """

    def __init__(
        self,
        *,
        session: Session,
        cfg: frozenset[str],
        attr_names: Sequence[str],
        description: str,
    ) -> None:
        self.session = session
        self.cfg = cfg
        self.attr_names = tuple(attr_names)
        self.description = description
        self.found_attrs: list[Annotation] = []

    def is_active_attr(self, attr: Annotation) -> bool:
        return tracked_names(self.attr_names, attr) and check_config(self.session, self.cfg, attr)

    def visit_annotation(self, attr: Annotation, decl: Declaration) -> None:
        if self.is_active_attr(attr):
            self.found_attrs.append(attr)

    def unchecked_attrs(self, checked_attrs: set[int] | frozenset[int]) -> list[Annotation]:
        return [attr for attr in self.found_attrs if attr.attr_id not in checked_attrs]

    def report_unchecked_attrs(self, checked_attrs: set[int] | frozenset[int]) -> None:
        for attr in self.unchecked_attrs(checked_attrs):
            self.session.span_err(
                attr.span,
                f"found unchecked {self.description} attribute",
            )
