"""Tests for sbprofile.core.policy.evaluator: evaluate() and describe()."""

from __future__ import annotations

import pytest

from sbprofile.core.exceptions import TypeMismatchError, UndefinedParameterError
from sbprofile.core.params import ParameterStore, ParamKind
from sbprofile.core.policy.evaluator import describe, evaluate
from sbprofile.core.policy.model import (
    ALWAYS,
    All,
    Any,
    Compare,
    Defined,
    Equals,
    IsSet,
    IsTrue,
    Not,
    version_at_least,
    version_at_most,
)


def _store(version: int = 1013, primitives=("mach-register",)) -> ParameterStore:
    store = ParameterStore(primitives=primitives)
    store.bind("MAC_OS_VERSION", ParamKind.INT, version)
    store.bind("ON", ParamKind.BOOL, True)
    store.bind("OFF", ParamKind.BOOL, False)
    store.bind("PORT", ParamKind.OPTIONAL_STRING, "org.example.crash")
    store.bind("UNSET", ParamKind.OPTIONAL_PATH, None)
    store.bind("NAME", ParamKind.STRING, "content")
    return store.freeze()


# ---------------------------------------------------------------------------
# Atoms
# ---------------------------------------------------------------------------


class TestAtoms:
    def test_always(self):
        assert evaluate(ALWAYS, _store())

    @pytest.mark.parametrize(
        "op,value,expected",
        [
            ("<", 1014, True),
            ("<", 1013, False),
            ("<=", 1013, True),
            ("=", 1013, True),
            ("=", 1012, False),
            (">=", 1013, True),
            (">", 1013, False),
        ],
    )
    def test_compare(self, op, value, expected):
        assert evaluate(Compare("MAC_OS_VERSION", op, value), _store()) is expected

    def test_version_helpers(self):
        store = _store(1009)
        assert evaluate(version_at_least(1009), store)
        assert not evaluate(version_at_least(1010), store)
        assert evaluate(version_at_most(1009), store)

    def test_unsupported_operator(self):
        with pytest.raises(ValueError):
            Compare("MAC_OS_VERSION", "!=", 1)

    def test_compare_on_non_integer(self):
        with pytest.raises(TypeMismatchError):
            evaluate(Compare("NAME", ">", 1), _store())

    def test_compare_on_bool(self):
        with pytest.raises(TypeMismatchError):
            evaluate(Compare("ON", "=", 1), _store())

    def test_equals(self):
        assert evaluate(Equals("NAME", "content"), _store())
        assert not evaluate(Equals("NAME", "gpu"), _store())

    def test_is_true(self):
        assert evaluate(IsTrue("ON"), _store())
        assert not evaluate(IsTrue("OFF"), _store())

    def test_is_true_on_non_bool(self):
        with pytest.raises(TypeMismatchError):
            evaluate(IsTrue("MAC_OS_VERSION"), _store())

    def test_is_set(self):
        assert evaluate(IsSet("PORT"), _store())
        assert not evaluate(IsSet("UNSET"), _store())

    def test_defined(self):
        assert evaluate(Defined("mach-register"), _store())
        assert not evaluate(Defined("file-map-executable"), _store())

    def test_defined_without_primitive_set(self):
        with pytest.raises(UndefinedParameterError):
            evaluate(Defined("mach-register"), _store(primitives=None))

    def test_undefined_parameter_is_an_error(self):
        with pytest.raises(UndefinedParameterError) as exc_info:
            evaluate(IsTrue("NEVER_BOUND"), _store())
        assert exc_info.value.name == "NEVER_BOUND"

    def test_not_a_guard(self):
        with pytest.raises(TypeError):
            evaluate("MAC_OS_VERSION", _store())  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


class TestCombinators:
    def test_all(self):
        assert evaluate(All((IsTrue("ON"), version_at_least(1010))), _store())
        assert not evaluate(All((IsTrue("ON"), IsTrue("OFF"))), _store())

    def test_any(self):
        assert evaluate(Any((IsTrue("OFF"), IsTrue("ON"))), _store())
        assert not evaluate(Any((IsTrue("OFF"), IsSet("UNSET"))), _store())

    def test_not(self):
        assert evaluate(Not(IsTrue("OFF")), _store())

    def test_empty_all_and_any(self):
        assert evaluate(All(()), _store())
        assert not evaluate(Any(()), _store())

    def test_all_short_circuits(self):
        # The second term would raise if it were evaluated.
        guard = All((IsTrue("OFF"), IsTrue("NEVER_BOUND")))
        assert evaluate(guard, _store()) is False

    def test_any_short_circuits(self):
        guard = Any((IsTrue("ON"), IsTrue("NEVER_BOUND")))
        assert evaluate(guard, _store()) is True

    def test_nested(self):
        guard = All((version_at_least(1009), Not(Any((IsTrue("OFF"), IsSet("UNSET"))))))
        assert evaluate(guard, _store())

    def test_evaluation_is_repeatable(self):
        store = _store()
        guard = All((IsSet("PORT"), version_at_most(1013)))
        assert [evaluate(guard, store) for _ in range(3)] == [True, True, True]


# ---------------------------------------------------------------------------
# describe()
# ---------------------------------------------------------------------------


class TestDescribe:
    def test_atoms(self):
        assert describe(ALWAYS) == "always"
        assert describe(version_at_least(1009)) == "MAC_OS_VERSION >= 1009"
        assert describe(IsSet("CRASH_PORT")) == "set(CRASH_PORT)"
        assert describe(Defined("nvram*")) == "defined(nvram*)"
        assert describe(IsTrue("SHOULD_LOG")) == "SHOULD_LOG"
        assert describe(Equals("NAME", "x")) == "NAME == 'x'"

    def test_combinators(self):
        guard = All((Compare("V", ">=", 1009), Not(IsTrue("X"))))
        assert describe(guard) == "(V >= 1009) and (not (X))"
        assert describe(Any((IsTrue("A"), IsTrue("B")))) == "(A) or (B)"
