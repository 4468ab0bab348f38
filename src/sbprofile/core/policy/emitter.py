"""
Policy emitter: renders a PolicyDocument as SBPL text.

The rendering is lossless and byte-stable: statements appear in document
order, nothing is merged or deduplicated, and the same document always
produces the same bytes.

    (version 1)
    (deny default (with no-log))
    (allow file-read*
      (subpath "/System")
      (subpath "/usr/lib"))
"""

from __future__ import annotations

from dataclasses import replace

from sbprofile.core.constants import SBPL_VERSION
from sbprofile.core.exceptions import UnresolvedTemplateError
from sbprofile.core.policy.model import (
    Arg,
    Filter,
    FilterExpr,
    Mode,
    PolicyDocument,
    Regex,
    RequireAll,
    RequireAny,
    RequireNot,
    Statement,
    Symbol,
    Template,
)

INDENT = "  "


def quote(text: str) -> str:
    """Render ``text`` as an SBPL string literal."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _render_arg(arg: Arg) -> str:
    if isinstance(arg, str):
        return quote(arg)
    if isinstance(arg, Symbol):
        return arg.name
    if isinstance(arg, Mode):
        return f"#o{arg.mask:04o}"
    if isinstance(arg, Regex):
        if isinstance(arg.pattern, Template):
            raise UnresolvedTemplateError(f"Unresolved regex template: {arg.pattern!r}")
        return f'#"{arg.pattern}"'
    if isinstance(arg, Template):
        raise UnresolvedTemplateError(f"Unresolved template: {arg!r}")
    raise TypeError(f"Not a filter argument: {arg!r}")


def render_filter(expr: FilterExpr) -> str:
    if isinstance(expr, Filter):
        return "(" + " ".join([expr.kind, *(_render_arg(a) for a in expr.args)]) + ")"
    if isinstance(expr, RequireNot):
        return f"(require-not {render_filter(expr.filter)})"
    if isinstance(expr, RequireAll):
        name = "require-all"
    elif isinstance(expr, RequireAny):
        name = "require-any"
    else:
        raise TypeError(f"Not a filter expression: {expr!r}")
    return "(" + " ".join([name, *(render_filter(f) for f in expr.filters)]) + ")"


def render_statement(statement: Statement, depth: int = 0) -> str:
    pad = INDENT * depth
    if statement.scope is not None:
        inner = render_statement(replace(statement, scope=None), depth + 1)
        return f"{pad}(with-filter {render_filter(statement.scope)}\n{inner})"

    head = f"{pad}({' '.join([statement.action.value, *statement.operations])}"
    items = [render_filter(f) for f in statement.filters]
    items += [f"(with {m})" for m in statement.modifiers]
    if not items:
        return head + ")"
    if len(items) == 1:
        return f"{head} {items[0]})"
    body = "\n".join(f"{pad}{INDENT}{item}" for item in items)
    return f"{head}\n{body})"


def emit(document: PolicyDocument) -> str:
    """Render ``document`` as SBPL source text, newline-terminated."""
    lines = [f"(version {SBPL_VERSION})"]
    lines.extend(render_statement(s) for s in document.statements)
    return "\n".join(lines) + "\n"
