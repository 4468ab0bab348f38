"""
Policy model: guard-tagged fragment trees and the documents assembled from them.

A library is a fixed set of :class:`Fragment` objects.  Each fragment carries
a guard and a body of nodes; a node is either a :class:`Leaf` (one
statement) or a :class:`Guarded` block with its own guard, children and
optional else-branch.  Everything here is frozen: a library is built once
and shared read-only between compilations.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Union

from sbprofile.core.constants import DEFAULT_OPERATION
from sbprofile.core.exceptions import DuplicateFragmentError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Action(StrEnum):
    ALLOW = "allow"
    DENY = "deny"
    DEBUG = "debug"


class Tier(IntEnum):
    """Mutually exclusive restriction levels; a higher value is more restrictive."""

    LEVEL_1 = 1  # global read access
    LEVEL_2 = 2  # global read except ~/Library and the profile
    LEVEL_3 = 3  # no global read access


class ProcessRole(StrEnum):
    """Process roles that select addendum fragments."""

    DEFAULT = "default"
    FILE = "file"
    AUDIO = "audio"


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

COMPARISON_OPERATORS = ("<", "<=", "=", ">=", ">")


@dataclass(frozen=True)
class Always:
    """Guard that is always true."""


@dataclass(frozen=True)
class Compare:
    """Numeric comparison of an integer parameter against a constant."""

    param: str
    op: str
    value: int

    def __post_init__(self) -> None:
        if self.op not in COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported comparison operator {self.op!r}")


@dataclass(frozen=True)
class Equals:
    """String equality against a parameter value."""

    param: str
    value: str


@dataclass(frozen=True)
class IsTrue:
    """A boolean toggle parameter is on."""

    param: str


@dataclass(frozen=True)
class IsSet:
    """An optional parameter was supplied."""

    param: str


@dataclass(frozen=True)
class Defined:
    """The target enforcement engine defines the named primitive."""

    primitive: str


@dataclass(frozen=True)
class All:
    terms: tuple[Predicate, ...]


@dataclass(frozen=True)
class Any:
    terms: tuple[Predicate, ...]


@dataclass(frozen=True)
class Not:
    term: Predicate


Predicate = Union[Always, Compare, Equals, IsTrue, IsSet, Defined, All, Any, Not]

ALWAYS = Always()


def version_at_least(version: int, param: str = "MAC_OS_VERSION") -> Compare:
    return Compare(param, ">=", version)


def version_at_most(version: int, param: str = "MAC_OS_VERSION") -> Compare:
    return Compare(param, "<=", version)


# ---------------------------------------------------------------------------
# Templates and filter arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ref:
    """Reference to a parameter inside a template.

    ``regex_quote`` escapes the value for use inside a regex; ``required``
    turns an unset optional parameter into an error instead of a skip.
    """

    param: str
    regex_quote: bool = False
    required: bool = False


@dataclass(frozen=True)
class Template:
    """Concatenation of fixed text and parameter references."""

    parts: tuple[str | Ref, ...]

    @property
    def refs(self) -> tuple[Ref, ...]:
        return tuple(p for p in self.parts if isinstance(p, Ref))


def template(*parts: str | Ref) -> Template:
    return Template(tuple(parts))


@dataclass(frozen=True)
class Symbol:
    """A bare symbol argument, e.g. ``self`` in ``(target self)``."""

    name: str


@dataclass(frozen=True)
class Regex:
    """A regex literal, rendered as ``#"..."``."""

    pattern: str | Template


@dataclass(frozen=True)
class Mode:
    """A numeric file-mode mask, rendered in octal."""

    mask: int


Arg = Union[str, Symbol, Regex, Mode, Template]

FILTER_KINDS = frozenset(
    {
        "literal",
        "subpath",
        "regex",
        "file-mode",
        "vnode-type",
        "target",
        "global-name",
        "global-name-regex",
        "xpc-service-name",
        "sysctl-name",
        "sysctl-name-regex",
        "iokit-property",
        "iokit-user-client-class",
        "iokit-connection",
        "iokit-registry-entry-class",
        "ipc-posix-name-regex",
        "preference-domain",
        "extension",
    }
)


@dataclass(frozen=True)
class Filter:
    """A qualifier narrowing a statement, e.g. ``(subpath "/System")``."""

    kind: str
    args: tuple[Arg, ...]

    def __post_init__(self) -> None:
        if self.kind not in FILTER_KINDS:
            raise ValueError(f"Unknown filter kind {self.kind!r}")
        if not self.args:
            raise ValueError(f"Filter {self.kind!r} needs at least one argument")


@dataclass(frozen=True)
class RequireAll:
    filters: tuple[FilterExpr, ...]


@dataclass(frozen=True)
class RequireAny:
    filters: tuple[FilterExpr, ...]


@dataclass(frozen=True)
class RequireNot:
    filter: FilterExpr


FilterExpr = Union[Filter, RequireAll, RequireAny, RequireNot]


def literal(path: str | Template) -> Filter:
    return Filter("literal", (path,))


def subpath(path: str | Template) -> Filter:
    return Filter("subpath", (path,))


def regex(*patterns: str | Template) -> Filter:
    return Filter("regex", tuple(Regex(p) for p in patterns))


def named(kind: str, *names: Arg) -> Filter:
    return Filter(kind, tuple(names))


# ---------------------------------------------------------------------------
# Statements and fragment trees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Statement:
    """One directive: action, operation names, filters, modifiers, optional scope."""

    action: Action
    operations: tuple[str, ...]
    filters: tuple[FilterExpr, ...] = ()
    modifiers: tuple[str, ...] = ()
    scope: Filter | None = None

    @property
    def is_deny_default(self) -> bool:
        return (
            self.action is Action.DENY
            and self.operations == (DEFAULT_OPERATION,)
            and not self.filters
            and self.scope is None
        )


def _directive(action: Action, parts: tuple[str | FilterExpr, ...], **kwargs: object) -> Statement:
    operations = tuple(p for p in parts if isinstance(p, str))
    filters = tuple(p for p in parts if not isinstance(p, str))
    return Statement(action, operations, filters, **kwargs)  # type: ignore[arg-type]


def allow(*parts: str | FilterExpr, scope: Filter | None = None) -> Statement:
    """``allow("file-read*", subpath("/System"))``: strings are operations, the rest filters."""
    return _directive(Action.ALLOW, parts, scope=scope)


def deny(*parts: str | FilterExpr, modifiers: tuple[str, ...] = ()) -> Statement:
    return _directive(Action.DENY, parts, modifiers=modifiers)


def debug(operation: str) -> Statement:
    return Statement(Action.DEBUG, (operation,))


@dataclass(frozen=True)
class Leaf:
    statement: Statement


@dataclass(frozen=True)
class Guarded:
    """Nested conditional block: ``children`` when the guard holds, else ``otherwise``."""

    guard: Predicate
    children: tuple[Node, ...]
    otherwise: tuple[Node, ...] = ()


Node = Union[Leaf, Guarded]


def _as_nodes(items: Iterable[Node | Statement]) -> tuple[Node, ...]:
    return tuple(Leaf(i) if isinstance(i, Statement) else i for i in items)


def when(
    guard: Predicate,
    *children: Node | Statement,
    otherwise: Iterable[Node | Statement] = (),
) -> Guarded:
    return Guarded(guard, _as_nodes(children), _as_nodes(otherwise))


@dataclass(frozen=True)
class Fragment:
    """A named, guarded group of statements."""

    id: str
    body: tuple[Node, ...]
    guard: Predicate = ALWAYS
    description: str = ""


def fragment(
    fragment_id: str,
    *body: Node | Statement,
    guard: Predicate = ALWAYS,
    description: str = "",
) -> Fragment:
    return Fragment(fragment_id, _as_nodes(body), guard, description)


@dataclass(frozen=True)
class AliasSet:
    """Operation renames that apply while ``guard`` holds."""

    guard: Predicate
    renames: tuple[tuple[str, str], ...]


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FragmentLibrary:
    """
    Read-only catalogue of fragments for one process type.

    ``posture`` must resolve to the deny-default statement first.  ``tiers``
    maps each :class:`Tier` to its own fragments; ``addenda`` maps role
    names to additive fragments.  Fragment ids are unique across all
    sections.
    """

    name: str
    posture: Fragment
    base: tuple[Fragment, ...]
    tiers: Mapping[Tier, tuple[Fragment, ...]] = field(default_factory=dict)
    addenda: Mapping[str, tuple[Fragment, ...]] = field(default_factory=dict)
    aliases: tuple[AliasSet, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiers", MappingProxyType(dict(self.tiers)))
        object.__setattr__(
            self, "addenda", MappingProxyType({str(k): v for k, v in self.addenda.items()})
        )
        seen: set[str] = set()
        for frag in self.fragments():
            if frag.id in seen:
                raise DuplicateFragmentError(
                    f"Library {self.name!r} declares fragment {frag.id!r} twice", frag.id
                )
            seen.add(frag.id)

    def fragments(self) -> Iterator[Fragment]:
        """Every fragment in declaration order: posture, base, tiers, addenda."""
        yield self.posture
        yield from self.base
        for tier in sorted(self.tiers):
            yield from self.tiers[tier]
        for role in self.addenda:
            yield from self.addenda[role]

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self.addenda)

    def get(self, fragment_id: str) -> Fragment:
        for frag in self.fragments():
            if frag.id == fragment_id:
                return frag
        raise KeyError(fragment_id)


# ---------------------------------------------------------------------------
# Compiled document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyDocument:
    """Ordered, fully resolved statements; the deny-default posture comes first."""

    statements: tuple[Statement, ...]
    tier: Tier | None
    roles: tuple[str, ...]
    fragment_ids: tuple[str, ...]
    library: str = ""

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.statements)

    def __len__(self) -> int:
        return len(self.statements)

    def content_hash(self) -> str:
        """Short stable digest of the emitted text."""
        import hashlib

        from sbprofile.core.policy.emitter import emit

        return hashlib.sha256(emit(self).encode("utf-8")).hexdigest()[:16]
