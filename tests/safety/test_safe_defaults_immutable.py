"""Safety guard: safety-critical default values must not drift."""

from __future__ import annotations

from collections.abc import Iterator


def _statements(nodes) -> Iterator:
    """Every statement in a fragment body, both branches of every guard."""
    from sbprofile.core.policy.model import Leaf

    for node in nodes:
        if isinstance(node, Leaf):
            yield node.statement
        else:
            yield from _statements(node.children)
            yield from _statements(node.otherwise)


def test_max_testing_read_paths():
    """MAX_CONTENT_TESTING_READ_PATHS must be 4."""
    from sbprofile.core.constants import MAX_CONTENT_TESTING_READ_PATHS

    assert MAX_CONTENT_TESTING_READ_PATHS == 4, (
        f"SAFETY: MAX_CONTENT_TESTING_READ_PATHS changed from 4 to {MAX_CONTENT_TESTING_READ_PATHS}"
    )


def test_default_tier_is_most_restrictive():
    """CompileConfig().default_tier must be LEVEL_3 (no global read)."""
    from sbprofile.core.config import CompileConfig
    from sbprofile.core.policy.model import Tier

    assert CompileConfig().default_tier is Tier.LEVEL_3


def test_default_roles():
    """CompileConfig().default_roles must be ['default'] (no addenda)."""
    from sbprofile.core.config import CompileConfig

    assert CompileConfig().default_roles == ["default"]


def test_should_log_defaults_off():
    """SHOULD_LOG must default to False so denials stay silent."""
    from sbprofile.core.params import CONTENT_PARAMETERS

    assert CONTENT_PARAMETERS["SHOULD_LOG"].default is False


def test_has_sandboxed_profile_defaults_off():
    """HAS_SANDBOXED_PROFILE must default to False."""
    from sbprofile.core.params import CONTENT_PARAMETERS

    assert CONTENT_PARAMETERS["HAS_SANDBOXED_PROFILE"].default is False


def test_posture_denies_default():
    """The content posture must only ever produce deny default."""
    from sbprofile.profiles import content_library

    posture = list(_statements(content_library().posture.body))
    assert posture
    assert all(s.is_deny_default for s in posture)


def test_no_global_read_in_base():
    """Unfiltered file-read* belongs to tier 1 and the file addendum only."""
    from sbprofile.profiles import content_library

    for frag in content_library().base:
        for stmt in _statements(frag.body):
            assert not ("file-read*" in stmt.operations and not stmt.filters), (
                f"SAFETY: base fragment {frag.id!r} grants global read"
            )


def test_addenda_only_allow():
    """Addenda are additive: they never deny or debug."""
    from sbprofile.core.policy.model import Action
    from sbprofile.profiles import content_library

    library = content_library()
    for role in library.roles:
        for frag in library.addenda[role]:
            for stmt in _statements(frag.body):
                assert stmt.action is Action.ALLOW, f"SAFETY: {frag.id!r} emits {stmt.action}"


def test_default_role_has_no_addendum():
    """The default role must add nothing."""
    from sbprofile.profiles import content_library

    assert content_library().addenda["default"] == ()


def test_single_threaded_invocations():
    """Every platform must resolve single_threaded_invocations=True."""
    from sbprofile.core.capabilities import OSFamily, PlatformDescriptor, resolve_capabilities

    for family in OSFamily:
        assert resolve_capabilities(PlatformDescriptor(family)).single_threaded_invocations
