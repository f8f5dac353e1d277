"""Annotation syntax and resolution of dirty/clean annotations into assertions.

An annotation reads ``dirty(cfg="rev2", label="type-of,fn-signature")`` or
``clean(cfg="rev2", except="inferred-types")``:

- ``cfg`` (required) names the configuration predicate that gates it.
- ``label`` lists the asserted labels explicitly.
- ``except`` derives the baseline set for the declaration's kind and asserts
  the listed labels with the opposite polarity.

``label`` and ``except`` are mutually exclusive.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.labels import LabelRegistry, auto_labels
from incrcheck.analysis.model import (
    DUMMY_SPAN,
    Annotation,
    Assertion,
    Declaration,
    MetaItem,
    Span,
)

logger = logging.getLogger(__name__)

ATTR_DIRTY = "dirty"
ATTR_CLEAN = "clean"
ATTR_DIRTY_METADATA = "dirty_metadata"
ATTR_CLEAN_METADATA = "clean_metadata"

EXCEPT = "except"
LABEL = "label"
CFG = "cfg"

_HEAD_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*(?:\((?P<body>.*)\))?\s*$",
    re.DOTALL,
)
_ITEM_RE = re.compile(
    r"\s*(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*"
    r"(?:=\s*(?:\"(?P<string>(?:[^\"\\]|\\.)*)\"|(?P<bare>[^,\s)\"]+)))?\s*"
)
_ESCAPE_RE = re.compile(r"\\(.)")


def parse_annotation_text(
    text: str,
    *,
    span: Span = DUMMY_SPAN,
) -> tuple[str, tuple[MetaItem, ...]]:
    """Split ``name(key="value", flag)`` into a name and its meta items.

    Only string values are kept. A key bound to a non-string token keeps no
    value, so resolution later reports it as missing its associated value.
    """
    head = _HEAD_RE.match(text)
    if head is None:
        raise ValueError(f"malformed annotation: {text!r}")
    body = head.group("body")
    if body is None or not body.strip():
        return head.group("name"), ()
    items: list[MetaItem] = []
    pos = 0
    while pos < len(body):
        match = _ITEM_RE.match(body, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"malformed annotation item at offset {pos}: {text!r}")
        raw = match.group("string")
        value = _ESCAPE_RE.sub(r"\1", raw) if raw is not None else None
        items.append(MetaItem(name=match.group("key"), value=value, span=span))
        pos = match.end()
        if pos < len(body):
            if body[pos] != ",":
                raise ValueError(f"expected ',' at offset {pos}: {text!r}")
            pos += 1
    return head.group("name"), tuple(items)


def expect_associated_value(session: Session, item: MetaItem) -> str:
    if item.value is not None:
        return item.value
    if item.name:
        msg = f"associated value expected for `{item.name}`"
    else:
        msg = "expected an associated value"
    session.span_fatal(item.span, msg)


def check_config(session: Session, cfg: frozenset[str], attr: Annotation) -> bool:
    """Return whether ``attr`` applies under the active configuration.

    Also rejects annotations that name both ``label`` and ``except`` or that
    carry no ``cfg`` at all.
    """
    logger.debug("check_config(attr=%r)", attr)
    active: bool | None = None
    has_label = has_except = False
    for item in attr.meta_item_list():
        if item.check_name(CFG):
            value = expect_associated_value(session, item)
            logger.debug("check_config: searching for cfg %r in %r", value, sorted(cfg))
            active = value in cfg
        if item.check_name(LABEL):
            has_label = True
        if item.check_name(EXCEPT):
            has_except = True

    if has_label and has_except:
        session.span_fatal(attr.span, "must specify only one of: `label`, `except`")

    if active is None:
        session.span_fatal(attr.span, "no cfg attribute")
    return active


class AssertionResolver:
    """Turns one dirty/clean annotation into an `Assertion`."""

    def __init__(
        self,
        *,
        session: Session,
        registry: LabelRegistry,
        cfg: frozenset[str],
    ) -> None:
        self.session = session
        self.registry = registry
        self.cfg = cfg

    def assertion_maybe(self, decl: Declaration, attr: Annotation) -> Assertion | None:
        """Possibly deserialize ``attr`` into a clean/dirty assertion."""
        if attr.check_name(ATTR_DIRTY):
            is_clean = False
        elif attr.check_name(ATTR_CLEAN):
            is_clean = True
        else:
            # not a dirty/clean annotation
            return None
        if not check_config(self.session, self.cfg, attr):
            return None
        labels = self.labels(attr)
        if labels is not None:
            if is_clean:
                return Assertion.from_clean_labels(labels)
            return Assertion.from_dirty_labels(labels)
        return self.assertion_auto(decl, attr, is_clean)

    def assertion_auto(self, decl: Declaration, attr: Annotation, is_clean: bool) -> Assertion:
        name, auto = auto_labels(decl.kind, session=self.session, span=attr.span)
        except_labels = self.except_labels(attr)
        for label in sorted(except_labels):
            if label not in auto:
                self.session.span_fatal(
                    attr.span,
                    "`except` specified labels that can not be affected for "
                    f'"{name}": "{label}"',
                )
        remaining = auto - except_labels
        if is_clean:
            return Assertion(clean=remaining, dirty=except_labels)
        return Assertion(clean=except_labels, dirty=remaining)

    def labels(self, attr: Annotation) -> frozenset[str] | None:
        for item in attr.meta_item_list():
            if item.check_name(LABEL):
                value = expect_associated_value(self.session, item)
                return self.resolve_labels(item, value)
        return None

    def except_labels(self, attr: Annotation) -> frozenset[str]:
        for item in attr.meta_item_list():
            if item.check_name(EXCEPT):
                value = expect_associated_value(self.session, item)
                return self.resolve_labels(item, value)
        # without `label` or `except` the whole baseline is asserted
        return frozenset()

    def resolve_labels(self, item: MetaItem, value: str) -> frozenset[str]:
        out: set[str] = set()
        for raw in value.split(","):
            label = raw.strip()
            if not self.registry.is_known(label):
                self.session.span_fatal(item.span, f"label `{label}` not recognized")
            if label in out:
                self.session.span_fatal(item.span, f"label `{label}` is repeated")
            out.add(label)
        return frozenset(out)


def tracked_names(names: Sequence[str], attr: Annotation) -> bool:
    return any(attr.check_name(name) for name in names)
