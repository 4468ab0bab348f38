"""
Template instantiator: substitutes parameter values into filter arguments.

Templates only concatenate fixed text and parameter values; nothing is ever
evaluated.  An unset optional parameter makes the render return ``None``,
which the composer treats as "skip the enclosing statement".
"""

from __future__ import annotations

import re

from sbprofile.core.exceptions import TypeMismatchError, UnresolvedTemplateError
from sbprofile.core.params import ParameterStore
from sbprofile.core.policy.model import (
    Arg,
    Filter,
    FilterExpr,
    Ref,
    Regex,
    RequireAll,
    RequireAny,
    RequireNot,
    Statement,
    Template,
)

_REGEX_SPECIAL = re.compile(r"([\\.^$|?*+()\[\]{}])")


def regex_quote(text: str) -> str:
    """Escape regex metacharacters the way SBPL's ``regex-quote`` does."""
    return _REGEX_SPECIAL.sub(r"\\\1", text)


def _render_ref(ref: Ref, store: ParameterStore) -> str | None:
    param = store.get(ref.param)
    if param.value is None:
        if ref.required:
            raise UnresolvedTemplateError(
                f"Template requires parameter {ref.param!r} but it is not set"
            )
        return None
    if isinstance(param.value, bool):
        raise TypeMismatchError(
            f"Boolean parameter {ref.param!r} cannot be substituted into a template", ref.param
        )
    text = str(param.value)
    return regex_quote(text) if ref.regex_quote else text


def render(tmpl: Template, store: ParameterStore) -> str | None:
    """Concatenate ``tmpl``; ``None`` when an optional reference is unset."""
    pieces: list[str] = []
    for part in tmpl.parts:
        if isinstance(part, Ref):
            text = _render_ref(part, store)
            if text is None:
                return None
            pieces.append(text)
        else:
            pieces.append(part)
    return "".join(pieces)


def _resolve_arg(arg: Arg, store: ParameterStore) -> Arg | None:
    if isinstance(arg, Template):
        return render(arg, store)
    if isinstance(arg, Regex) and isinstance(arg.pattern, Template):
        pattern = render(arg.pattern, store)
        return None if pattern is None else Regex(pattern)
    return arg


def instantiate(expr: FilterExpr, store: ParameterStore) -> FilterExpr | None:
    """Resolve every template inside ``expr``; ``None`` if any part must be skipped."""
    if isinstance(expr, Filter):
        args: list[Arg] = []
        for arg in expr.args:
            resolved = _resolve_arg(arg, store)
            if resolved is None:
                return None
            args.append(resolved)
        return Filter(expr.kind, tuple(args))
    if isinstance(expr, RequireNot):
        inner = instantiate(expr.filter, store)
        return None if inner is None else RequireNot(inner)
    if not isinstance(expr, (RequireAll, RequireAny)):
        raise TypeError(f"Not a filter expression: {expr!r}")
    children = []
    for child in expr.filters:
        resolved_child = instantiate(child, store)
        if resolved_child is None:
            return None
        children.append(resolved_child)
    return type(expr)(tuple(children))


def instantiate_statement(statement: Statement, store: ParameterStore) -> Statement | None:
    """Resolve all filters of ``statement``, or ``None`` to skip it entirely."""
    filters = []
    for expr in statement.filters:
        resolved = instantiate(expr, store)
        if resolved is None:
            return None
        filters.append(resolved)
    scope = None
    if statement.scope is not None:
        scope = instantiate(statement.scope, store)
        if scope is None:
            return None
    return Statement(
        action=statement.action,
        operations=statement.operations,
        filters=tuple(filters),
        modifiers=statement.modifiers,
        scope=scope,  # type: ignore[arg-type]
    )
