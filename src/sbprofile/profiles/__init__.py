"""
Built-in fragment libraries.

Libraries are built once per process and never mutated afterwards; every
compilation shares the same instance.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

from sbprofile.core.constants import CONTENT_LIBRARY_NAME
from sbprofile.core.exceptions import ConfigError
from sbprofile.core.policy.model import FragmentLibrary


@lru_cache(maxsize=None)
def content_library() -> FragmentLibrary:
    """The content-process library (built on first use)."""
    from sbprofile.profiles.content import build_content_library

    return build_content_library()


_LIBRARIES: dict[str, Callable[[], FragmentLibrary]] = {
    CONTENT_LIBRARY_NAME: content_library,
}


def get_library(name: str) -> FragmentLibrary:
    """Return the built-in library called ``name``."""
    factory = _LIBRARIES.get(name)
    if factory is None:
        raise ConfigError(f"Unknown fragment library {name!r} (available: {sorted(_LIBRARIES)})")
    return factory()


def library_names() -> list[str]:
    return sorted(_LIBRARIES)
