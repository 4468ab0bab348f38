"""
Capability configuration for the sandboxed-call runtime.

Resolved once per platform at process start; the resulting
:class:`CapabilitySet` is immutable and shared read-only.

    caps = resolve_capabilities(PlatformDescriptor(OSFamily.MACOS, (10, 9)))
    caps.custom_shared_lock   # True on every macOS build
    lock = caps.new_lock()
"""

from __future__ import annotations

import logging
import platform
import sys
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from functools import lru_cache
from typing import NoReturn

from sbprofile.core.constants import WASM_MODULE_NAME
from sbprofile.core.exceptions import SandboxAbortError
from sbprofile.core.sync import SerialLock, SharedLock

logger = logging.getLogger(__name__)


class OSFamily(StrEnum):
    MACOS = "macos"
    LINUX = "linux"
    WINDOWS = "windows"


def parse_version(text: str) -> tuple[int, ...]:
    """``"10.9"`` → ``(10, 9)``."""
    try:
        return tuple(int(part) for part in text.strip().split("."))
    except ValueError:
        raise ValueError(f"Invalid version {text!r}; expected dotted integers") from None


@dataclass(frozen=True)
class PlatformDescriptor:
    """OS family and supported version range."""

    family: OSFamily
    min_version: tuple[int, ...] = (0,)
    max_version: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "family", OSFamily(self.family))
        if self.max_version is not None and self.max_version < self.min_version:
            raise ValueError(
                f"max_version {self.max_version} is lower than min_version {self.min_version}"
            )


AbortHook = Callable[[str], NoReturn]


def default_abort(message: str) -> NoReturn:
    """Abort on a fatal runtime contract violation."""
    logger.critical("RLBox crash: %s", message)
    raise SandboxAbortError(f"RLBox crash: {message}")


@dataclass(frozen=True)
class CapabilitySet:
    custom_shared_lock: bool
    embedder_provides_tls: bool
    single_threaded_invocations: bool
    wasm_module_name: str = WASM_MODULE_NAME
    abort: AbortHook = field(default=default_abort, compare=False, repr=False)

    def new_lock(self) -> SharedLock | SerialLock:
        return SharedLock() if self.custom_shared_lock else SerialLock()

    def as_dict(self) -> dict[str, object]:
        data = asdict(self)
        data.pop("abort")
        return data


@lru_cache(maxsize=None)
def resolve_capabilities(descriptor: PlatformDescriptor) -> CapabilitySet:
    """Pure mapping from a platform descriptor to its capability flags."""
    caps = CapabilitySet(
        # std shared locks are unavailable on macOS 10.9 to 10.11.
        custom_shared_lock=descriptor.family is OSFamily.MACOS,
        # Set for every build so the same runtime also links under MinGW.
        embedder_provides_tls=True,
        # All sandboxed calls currently happen on one thread.
        single_threaded_invocations=True,
    )
    logger.debug("Capabilities for %s: %s", descriptor, caps)
    return caps


def descriptor_for_host() -> PlatformDescriptor:
    """Describe the running interpreter's platform."""
    if sys.platform == "darwin":
        release = platform.mac_ver()[0] or "0"
        version = parse_version(release)
        return PlatformDescriptor(OSFamily.MACOS, version, version)
    if sys.platform == "win32":
        return PlatformDescriptor(OSFamily.WINDOWS)
    return PlatformDescriptor(OSFamily.LINUX)
