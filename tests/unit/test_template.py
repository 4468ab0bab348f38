"""Tests for sbprofile.core.policy.template: rendering and statement instantiation."""

from __future__ import annotations

import pytest

from sbprofile.core.exceptions import (
    TypeMismatchError,
    UndefinedParameterError,
    UnresolvedTemplateError,
)
from sbprofile.core.params import ParameterStore, ParamKind
from sbprofile.core.policy.model import (
    Filter,
    Ref,
    Regex,
    RequireAll,
    RequireAny,
    RequireNot,
    Symbol,
    allow,
    named,
    subpath,
    template,
)
from sbprofile.core.policy.template import (
    instantiate,
    instantiate_statement,
    regex_quote,
    render,
)


def _store(**extra) -> ParameterStore:
    store = ParameterStore()
    store.bind("HOME_PATH", ParamKind.PATH, extra.pop("home", "/Users/a"))
    store.bind("PROFILE_DIR", ParamKind.OPTIONAL_PATH, extra.pop("profile", None))
    store.bind("SHOULD_LOG", ParamKind.BOOL, False)
    store.bind("MAC_OS_VERSION", ParamKind.INT, 1013)
    return store.freeze()


class TestRegexQuote:
    def test_escapes_metacharacters(self):
        assert regex_quote("a.b(c)") == r"a\.b\(c\)"

    def test_plain_text_untouched(self):
        assert regex_quote("/Users/alice") == "/Users/alice"

    def test_every_special(self):
        assert regex_quote(r"\^$|?*+[]{}") == r"\\\^\$\|\?\*\+\[\]\{\}"


class TestRender:
    def test_fixed_and_ref(self):
        assert render(template(Ref("HOME_PATH"), "/Library"), _store()) == "/Users/a/Library"

    def test_regex_quoted_ref(self):
        tmpl = template("^", Ref("HOME_PATH", regex_quote=True), "/Library")
        assert render(tmpl, _store(home="/Users/a.b")) == r"^/Users/a\.b/Library"

    def test_unset_optional_renders_none(self):
        assert render(template(Ref("PROFILE_DIR"), "/chrome"), _store()) is None

    def test_required_unset_raises(self):
        with pytest.raises(UnresolvedTemplateError, match="PROFILE_DIR"):
            render(template(Ref("PROFILE_DIR", required=True)), _store())

    def test_bool_cannot_be_substituted(self):
        with pytest.raises(TypeMismatchError):
            render(template(Ref("SHOULD_LOG")), _store())

    def test_int_substituted_as_text(self):
        assert render(template("v", Ref("MAC_OS_VERSION")), _store()) == "v1013"

    def test_unbound_ref_raises(self):
        with pytest.raises(UndefinedParameterError):
            render(template(Ref("NOT_BOUND")), _store())


class TestInstantiate:
    def test_filter_with_template(self):
        expr = subpath(template(Ref("HOME_PATH"), "/Library"))
        assert instantiate(expr, _store()) == Filter("subpath", ("/Users/a/Library",))

    def test_plain_filter_unchanged(self):
        expr = named("target", Symbol("self"))
        assert instantiate(expr, _store()) == expr

    def test_regex_template(self):
        expr = Filter("regex", (Regex(template("^", Ref("HOME_PATH", regex_quote=True))),))
        resolved = instantiate(expr, _store(home="/Users/x.y"))
        assert resolved == Filter("regex", (Regex(r"^/Users/x\.y"),))

    def test_nested_combinators(self):
        expr = RequireAll(
            (
                RequireNot(subpath(template(Ref("HOME_PATH"), "/Library"))),
                RequireAny((subpath("/a"), subpath("/b"))),
            )
        )
        assert instantiate(expr, _store()) == RequireAll(
            (
                RequireNot(subpath("/Users/a/Library")),
                RequireAny((subpath("/a"), subpath("/b"))),
            )
        )

    def test_unset_child_skips_whole_expression(self):
        expr = RequireAll((subpath("/a"), subpath(template(Ref("PROFILE_DIR")))))
        assert instantiate(expr, _store()) is None

    def test_not_an_expression(self):
        with pytest.raises(TypeError):
            instantiate("subpath", _store())  # type: ignore[arg-type]


class TestInstantiateStatement:
    def test_resolves_all_filters(self):
        stmt = allow("file-read*", subpath(template(Ref("PROFILE_DIR"), "/chrome")), subpath("/x"))
        resolved = instantiate_statement(stmt, _store(profile="/Users/a/p"))
        assert resolved is not None
        assert resolved.filters == (subpath("/Users/a/p/chrome"), subpath("/x"))
        assert resolved.operations == ("file-read*",)

    def test_unset_optional_skips_statement(self):
        stmt = allow("file-read*", subpath("/x"), subpath(template(Ref("PROFILE_DIR"))))
        assert instantiate_statement(stmt, _store()) is None

    def test_scope_resolved(self):
        stmt = allow(
            "file-read*",
            subpath("/x"),
            scope=subpath(template(Ref("HOME_PATH"))),
        )
        resolved = instantiate_statement(stmt, _store())
        assert resolved is not None
        assert resolved.scope == subpath("/Users/a")

    def test_original_statement_untouched(self):
        filt = subpath(template(Ref("HOME_PATH")))
        stmt = allow("file-read*", filt)
        instantiate_statement(stmt, _store())
        assert stmt.filters == (filt,)
