"""
Guard evaluator: pure, total evaluation of fragment guards against a store.

Usage::

    if evaluate(Compare("MAC_OS_VERSION", ">=", 1009), store):
        ...

Referencing an unbound parameter raises :class:`UndefinedParameterError`;
it is never treated as false.
"""

from __future__ import annotations

import operator
from collections.abc import Callable

from sbprofile.core.exceptions import TypeMismatchError
from sbprofile.core.params import ParameterStore
from sbprofile.core.policy.model import (
    All,
    Always,
    Any,
    Compare,
    Defined,
    Equals,
    IsSet,
    IsTrue,
    Not,
    Predicate,
)

_OPERATORS: dict[str, Callable[[int, int], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "=": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
}


def _compare(guard: Compare, store: ParameterStore) -> bool:
    value = store.value(guard.param)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeMismatchError(
            f"Guard compares {guard.param!r} numerically but its value is {value!r}",
            guard.param,
        )
    return _OPERATORS[guard.op](value, guard.value)


def _is_true(guard: IsTrue, store: ParameterStore) -> bool:
    value = store.value(guard.param)
    if not isinstance(value, bool):
        raise TypeMismatchError(
            f"Guard tests toggle {guard.param!r} but its value is {value!r}", guard.param
        )
    return value


def evaluate(guard: Predicate, store: ParameterStore) -> bool:
    """Return whether ``guard`` holds for ``store``.  Conjunction and disjunction short-circuit."""
    if isinstance(guard, Always):
        return True
    if isinstance(guard, Compare):
        return _compare(guard, store)
    if isinstance(guard, Equals):
        return store.value(guard.param) == guard.value
    if isinstance(guard, IsTrue):
        return _is_true(guard, store)
    if isinstance(guard, IsSet):
        return store.is_set(guard.param)
    if isinstance(guard, Defined):
        return store.defines(guard.primitive)
    if isinstance(guard, All):
        return all(evaluate(term, store) for term in guard.terms)
    if isinstance(guard, Any):
        return any(evaluate(term, store) for term in guard.terms)
    if isinstance(guard, Not):
        return not evaluate(guard.term, store)
    raise TypeError(f"Not a guard: {guard!r}")


def describe(guard: Predicate) -> str:
    """Render a guard as a short human-readable expression."""
    if isinstance(guard, Always):
        return "always"
    if isinstance(guard, Compare):
        return f"{guard.param} {guard.op} {guard.value}"
    if isinstance(guard, Equals):
        return f"{guard.param} == {guard.value!r}"
    if isinstance(guard, IsTrue):
        return guard.param
    if isinstance(guard, IsSet):
        return f"set({guard.param})"
    if isinstance(guard, Defined):
        return f"defined({guard.primitive})"
    if isinstance(guard, All):
        return " and ".join(f"({describe(t)})" for t in guard.terms)
    if isinstance(guard, Any):
        return " or ".join(f"({describe(t)})" for t in guard.terms)
    if isinstance(guard, Not):
        return f"not ({describe(guard.term)})"
    raise TypeError(f"Not a guard: {guard!r}")
