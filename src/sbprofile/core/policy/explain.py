"""
Assembly explain: human-readable output for ``sbprofile explain``.

Usage::

    output = explain_assembly(content_library(), store, Tier.LEVEL_2, ["file"])
    print(output)
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from sbprofile.core.params import ParameterStore
from sbprofile.core.policy.composer import _tier_fragments, compose
from sbprofile.core.policy.evaluator import describe
from sbprofile.core.policy.model import Fragment, FragmentLibrary, PolicyDocument, Tier


def _sections(library: FragmentLibrary, document: PolicyDocument) -> Iterator[tuple[str, Fragment]]:
    """Fragments considered for ``document``, in composition order."""
    yield "posture", library.posture
    for frag in library.base:
        yield "base", frag
    if document.tier is not None:
        for frag in _tier_fragments(library, document.tier):
            yield "tier", frag
    for role in document.roles:
        for frag in library.addenda[role]:
            yield f"role:{role}", frag


def explain_parameters(store: ParameterStore) -> str:
    lines = ["Parameters:"]
    for param in sorted(store, key=lambda p: p.name):
        value = "(unset)" if param.value is None else repr(param.value)
        lines.append(f"  {param.name:<24} {param.kind.value:<16} {value}")
    if store.primitives is not None:
        lines.append(f"  primitives: {', '.join(sorted(store.primitives)) or '(none)'}")
    return "\n".join(lines)


def explain_assembly(
    library: FragmentLibrary,
    store: ParameterStore,
    tier: Tier | int | None = None,
    roles: Sequence[str] = (),
) -> str:
    """
    Compose the document and show, per fragment, whether its guard held.

    Composition errors propagate unchanged; nothing is printed for a
    document that cannot be assembled.
    """
    document = compose(library, store, tier, roles)
    tier_label = int(document.tier) if document.tier is not None else "none"

    lines: list[str] = []
    lines.append(
        f"Library: {library.name!r}  (tier={tier_label}, roles={list(document.roles)}, "
        f"hash={document.content_hash()})"
    )
    lines.append("")
    lines.append(explain_parameters(store))
    lines.append("")

    for section, frag in _sections(library, document):
        status = "INCLUDE" if frag.id in document.fragment_ids else "skip"
        lines.append(f"  {section:<12} {frag.id:<28} [{status}]")
        lines.append(f"      guard: {describe(frag.guard)}")
        if frag.description:
            lines.append(f"      {frag.description}")

    lines.append("")
    lines.append(
        f"{len(document.fragment_ids)} fragment(s) included, {len(document)} statement(s) emitted"
    )
    return "\n".join(lines)
