"""
Tier and addendum composer: assembles one policy document from a library.

Order of the assembled document:

    1. posture   the deny-default statement (always first)
    2. base      every base fragment whose guard holds, in declaration order
    3. tier      the selected tier, cumulative from the most restrictive level
    4. addenda   each requested role's fragments, in request order

Composition either returns a complete document or raises; a partially
assembled document is never handed out.

Usage::

    document = compose(content_library(), store, Tier.LEVEL_2, ["file"])
    text = emit(document)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sbprofile.core.exceptions import (
    AssemblyError,
    DuplicateFragmentError,
    ParameterError,
    UnknownRoleError,
    UnknownTierError,
)
from sbprofile.core.params import ParameterStore
from sbprofile.core.policy.evaluator import evaluate
from sbprofile.core.policy.model import (
    Fragment,
    FragmentLibrary,
    Guarded,
    Leaf,
    Node,
    PolicyDocument,
    Statement,
    Tier,
)
from sbprofile.core.policy.template import instantiate_statement

logger = logging.getLogger(__name__)


class _Assembly:
    """Mutable scratch state for one compose() call; never escapes it."""

    def __init__(self, store: ParameterStore) -> None:
        self.store = store
        self.statements: list[Statement] = []
        self.fragment_ids: list[str] = []
        self.visited: set[str] = set()

    def include(self, frag: Fragment) -> None:
        if frag.id in self.visited:
            raise DuplicateFragmentError(
                f"Fragment {frag.id!r} would be included twice", frag.id
            )
        self.visited.add(frag.id)
        try:
            if not evaluate(frag.guard, self.store):
                logger.debug("Fragment %s skipped: guard is false", frag.id)
                return
            before = len(self.statements)
            self._resolve(frag.body, frag.id)
        except ParameterError as exc:
            exc.fragment_id = frag.id
            logger.error("Assembly aborted in fragment %s: %s", frag.id, exc)
            raise
        except AssemblyError as exc:
            if exc.fragment_id is None:
                exc.fragment_id = frag.id
            logger.error("Assembly aborted in fragment %s: %s", frag.id, exc)
            raise
        self.fragment_ids.append(frag.id)
        logger.debug(
            "Fragment %s included: %d statement(s)", frag.id, len(self.statements) - before
        )

    def _resolve(self, nodes: Iterable[Node], fragment_id: str) -> None:
        for node in nodes:
            if isinstance(node, Leaf):
                resolved = instantiate_statement(node.statement, self.store)
                if resolved is None:
                    logger.debug(
                        "Fragment %s: statement %s skipped, optional parameter unset",
                        fragment_id,
                        " ".join(node.statement.operations),
                    )
                    continue
                self.statements.append(resolved)
            elif isinstance(node, Guarded):
                branch = node.children if evaluate(node.guard, self.store) else node.otherwise
                self._resolve(branch, fragment_id)
            else:
                raise TypeError(f"Not a fragment node: {node!r}")


def _select_tier(library: FragmentLibrary, tier: Tier | int | None) -> Tier | None:
    if tier is None:
        return None
    if isinstance(tier, bool):
        raise UnknownTierError(f"Unknown tier {tier!r}")
    try:
        selected = Tier(tier)
    except ValueError:
        raise UnknownTierError(f"Unknown tier {tier!r}") from None
    if selected not in library.tiers:
        raise UnknownTierError(f"Library {library.name!r} does not declare tier {int(selected)}")
    return selected


def _tier_fragments(library: FragmentLibrary, tier: Tier) -> list[Fragment]:
    """Fragments of ``tier`` and every more restrictive tier, most restrictive first."""
    levels = sorted((t for t in library.tiers if t >= tier), reverse=True)
    return [frag for level in levels for frag in library.tiers[level]]


def _active_renames(library: FragmentLibrary, store: ParameterStore) -> dict[str, str]:
    renames: dict[str, str] = {}
    for alias in library.aliases:
        if evaluate(alias.guard, store):
            renames.update(alias.renames)
    return renames


def _rename(statement: Statement, renames: Mapping[str, str]) -> Statement:
    operations = tuple(renames.get(op, op) for op in statement.operations)
    if operations == statement.operations:
        return statement
    return Statement(
        action=statement.action,
        operations=operations,
        filters=statement.filters,
        modifiers=statement.modifiers,
        scope=statement.scope,
    )


def compose(
    library: FragmentLibrary,
    store: ParameterStore,
    tier: Tier | int | None = None,
    addenda: Sequence[str] = (),
) -> PolicyDocument:
    """
    Assemble ``library`` against ``store`` into a :class:`PolicyDocument`.

    Args:
        library:  The fragment library (read-only).
        store:    Bound parameters for this process.
        tier:     Restriction tier, or None for the shared base only.
        addenda:  Role names whose addenda are appended, in this order.

    Raises:
        UnknownTierError, UnknownRoleError, DuplicateFragmentError,
        UnresolvedTemplateError, or a ParameterError carrying ``fragment_id``.
    """
    selected = _select_tier(library, tier)
    roles = tuple(str(role) for role in addenda)
    for role in roles:
        if role not in library.addenda:
            raise UnknownRoleError(f"Unknown process role {role!r}")

    assembly = _Assembly(store)
    assembly.include(library.posture)
    if not assembly.statements or not assembly.statements[0].is_deny_default:
        raise AssemblyError(
            f"Posture of library {library.name!r} does not start with deny default",
            library.posture.id,
        )

    for frag in library.base:
        assembly.include(frag)
    if selected is not None:
        for frag in _tier_fragments(library, selected):
            assembly.include(frag)
    for role in roles:
        for frag in library.addenda[role]:
            assembly.include(frag)

    renames = _active_renames(library, store)
    statements = tuple(_rename(s, renames) for s in assembly.statements)

    logger.info(
        "Composed %s policy: tier=%s roles=%s fragments=%d statements=%d",
        library.name,
        int(selected) if selected is not None else "none",
        ",".join(roles) or "-",
        len(assembly.fragment_ids),
        len(statements),
    )
    return PolicyDocument(
        statements=statements,
        tier=selected,
        roles=roles,
        fragment_ids=tuple(assembly.fragment_ids),
        library=library.name,
    )


def compile_profile(
    values: Mapping[str, Any],
    tier: Tier | int | None = None,
    roles: Sequence[str] = (),
    library: FragmentLibrary | None = None,
) -> str:
    """Build a store from raw ``values``, compose, and emit the profile text."""
    from sbprofile.core.params import build_store
    from sbprofile.core.policy.emitter import emit
    from sbprofile.profiles import content_library

    library = library or content_library()
    store = build_store(values)
    return emit(compose(library, store, tier, roles))
