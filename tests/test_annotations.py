from __future__ import annotations

from itertools import combinations

import pytest

from incrcheck.analysis import labels as L
from incrcheck.analysis.annotations import (
    AssertionResolver,
    check_config,
    parse_annotation_text,
)
from incrcheck.analysis.diagnostics import Session
from incrcheck.analysis.model import DeclKind, MetaItem
from incrcheck.exceptions import FatalCheckError

REV2 = frozenset({"rev2"})


def _resolver(session: Session, registry) -> AssertionResolver:
    return AssertionResolver(session=session, registry=registry, cfg=REV2)


def test_parse_annotation_text_reads_keys_and_values() -> None:
    name, items = parse_annotation_text('clean(cfg="rev2", label="type-of, fn-signature")')
    assert name == "clean"
    assert [(item.name, item.value) for item in items] == [
        ("cfg", "rev2"),
        ("label", "type-of, fn-signature"),
    ]


def test_parse_annotation_text_handles_flags_escapes_and_bare_values() -> None:
    name, items = parse_annotation_text(r'dirty(cfg=rev2, except="a\"b", flag)')
    assert name == "dirty"
    assert [(item.name, item.value) for item in items] == [
        ("cfg", None),
        ("except", 'a"b'),
        ("flag", None),
    ]


def test_parse_annotation_text_without_body() -> None:
    assert parse_annotation_text("clean") == ("clean", ())
    assert parse_annotation_text("clean()") == ("clean", ())


@pytest.mark.parametrize(
    "text",
    ["", "clean(", 'clean(cfg="rev2" label="x")', "clean(,)", "1clean()"],
)
def test_parse_annotation_text_rejects_malformed(text: str) -> None:
    with pytest.raises(ValueError):
        parse_annotation_text(text)


def test_check_config_follows_active_predicates(builder, session) -> None:
    assert check_config(session, REV2, builder.annotation("clean", cfg="rev2")) is True
    assert check_config(session, REV2, builder.annotation("clean", cfg="rev1")) is False
    assert session.diagnostics == []


def test_check_config_requires_cfg(builder, session) -> None:
    with pytest.raises(FatalCheckError, match="no cfg attribute"):
        check_config(session, REV2, builder.annotation("clean", label="type-of"))


def test_check_config_requires_cfg_value(builder, session) -> None:
    with pytest.raises(FatalCheckError, match="associated value expected for `cfg`"):
        check_config(session, REV2, builder.annotation("clean", "cfg"))


def test_label_and_except_together_are_fatal_even_when_inactive(builder, session) -> None:
    attr = builder.annotation("dirty", cfg="rev1", label="type-of", except_="type-of")
    with pytest.raises(FatalCheckError, match="only one of: `label`, `except`"):
        check_config(session, REV2, attr)


def test_other_annotations_are_ignored(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation("inline")
    assert _resolver(session, registry).assertion_maybe(decl, attr) is None
    assert session.diagnostics == []


def test_inactive_annotation_is_skipped(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation("clean", cfg="rev1", label="bogus")
    assert _resolver(session, registry).assertion_maybe(decl, attr) is None


def test_explicit_labels_are_used_verbatim(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.STRUCT, "S")
    resolver = _resolver(session, registry)
    clean = resolver.assertion_maybe(
        decl, builder.annotation("clean", cfg="rev2", label=" fn-signature ,inferred-types")
    )
    assert clean is not None
    assert clean.clean == {L.FN_SIGNATURE, L.INFERRED_TYPES}
    assert clean.dirty == frozenset()
    dirty = resolver.assertion_maybe(decl, builder.annotation("dirty", cfg="rev2", label="item-attrs"))
    assert dirty is not None
    assert dirty.dirty == {L.ITEM_ATTRS}
    assert dirty.clean == frozenset()


def test_auto_assertion_without_except_covers_baseline(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.TRAIT, "T")
    assertion = _resolver(session, registry).assertion_maybe(
        decl, builder.annotation("dirty", cfg="rev2")
    )
    assert assertion is not None
    assert assertion.dirty == L.catalog_entry(DeclKind.TRAIT).labels
    assert assertion.clean == frozenset()


@pytest.mark.parametrize("kind", L.supported_kinds())
@pytest.mark.parametrize("polarity", ["clean", "dirty"])
def test_except_partitions_baseline(builder, registry, kind: DeclKind, polarity: str) -> None:
    baseline = L.catalog_entry(kind).labels
    ordered = sorted(baseline)
    candidates = [tuple(ordered[:1]), *combinations(ordered[:4], 2), tuple(ordered)]
    for excluded in candidates:
        session = Session()
        decl = builder.decl(kind, "item")
        attr = builder.annotation(polarity, cfg="rev2", except_=",".join(excluded))
        assertion = _resolver(session, registry).assertion_maybe(decl, attr)
        assert assertion is not None
        same, opposite = (
            (assertion.clean, assertion.dirty)
            if polarity == "clean"
            else (assertion.dirty, assertion.clean)
        )
        assert opposite == frozenset(excluded)
        assert same == baseline - frozenset(excluded)
        assert not (same & opposite)


@pytest.mark.parametrize("kind", L.supported_kinds())
def test_except_outside_baseline_is_fatal(builder, registry, kind: DeclKind) -> None:
    baseline = L.catalog_entry(kind).labels
    outsider = sorted(set(L.LabelRegistry.default().labels()) - baseline)[0]
    session = Session()
    decl = builder.decl(kind, "item")
    attr = builder.annotation("clean", cfg="rev2", except_=outsider)
    with pytest.raises(FatalCheckError) as excinfo:
        _resolver(session, registry).assertion_maybe(decl, attr)
    message = str(excinfo.value)
    assert "can not be affected" in message
    assert outsider in message
    assert L.catalog_entry(kind).name in message


def test_unknown_label_is_fatal(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation("clean", cfg="rev2", label="type-of,typo")
    with pytest.raises(FatalCheckError, match="label `typo` not recognized"):
        _resolver(session, registry).assertion_maybe(decl, attr)


def test_repeated_label_is_fatal(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation("dirty", cfg="rev2", except_="type-of, type-of")
    with pytest.raises(FatalCheckError, match="label `type-of` is repeated"):
        _resolver(session, registry).assertion_maybe(decl, attr)


def test_empty_label_entry_is_not_recognized(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation("dirty", cfg="rev2", label="type-of,")
    with pytest.raises(FatalCheckError, match="label `` not recognized"):
        _resolver(session, registry).assertion_maybe(decl, attr)


def test_label_without_value_is_fatal(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.FN, "f")
    attr = builder.annotation_from_items(
        "clean",
        [MetaItem("cfg", "rev2"), MetaItem("label")],
    )
    with pytest.raises(FatalCheckError, match="associated value expected for `label`"):
        _resolver(session, registry).assertion_maybe(decl, attr)


def test_auto_assertion_on_unsupported_kind_is_fatal(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.MOD, "m")
    with pytest.raises(FatalCheckError, match="not yet defined for mod"):
        _resolver(session, registry).assertion_maybe(decl, builder.annotation("clean", cfg="rev2"))


def test_explicit_labels_on_unsupported_kind_are_accepted(builder, session, registry) -> None:
    decl = builder.decl(DeclKind.MOD, "m")
    assertion = _resolver(session, registry).assertion_maybe(
        decl, builder.annotation("clean", cfg="rev2", label="tree-shape")
    )
    assert assertion is not None
    assert assertion.clean == {L.TREE_SHAPE}
