"""
Parameter store: validated, typed name → value bindings for one compilation.

Usage::

    store = build_store({"MAC_OS_VERSION": 1013, "HOME_PATH": "/Users/a", ...})
    store.value("MAC_OS_VERSION")      # 1013
    store.is_set("TESTING_READ_PATH1") # False unless supplied

A store is filled once, frozen, and read-only thereafter.  When a catalogue
is attached, unknown names are rejected and every kind must agree with the
catalogue entry.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePath
from types import MappingProxyType
from typing import Any

from sbprofile.core.constants import MAX_CONTENT_TESTING_READ_PATHS
from sbprofile.core.exceptions import (
    DuplicateParameterError,
    StoreFrozenError,
    TypeMismatchError,
    UndefinedParameterError,
    UnknownParameterError,
)

logger = logging.getLogger(__name__)


class ParamKind(StrEnum):
    """Kinds a parameter value can be bound as."""

    BOOL = "bool"
    INT = "int"
    STRING = "string"
    OPTIONAL_STRING = "optional_string"
    PATH = "path"
    OPTIONAL_PATH = "optional_path"

    @property
    def optional(self) -> bool:
        return self in (ParamKind.OPTIONAL_STRING, ParamKind.OPTIONAL_PATH)


@dataclass(frozen=True)
class Parameter:
    """A bound parameter. ``value`` is None only for unset optional kinds."""

    name: str
    kind: ParamKind
    value: bool | int | str | None

    @property
    def is_set(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class ParameterSpec:
    """Catalogue entry: the kind a name must be bound as, and whether it is required."""

    name: str
    kind: ParamKind
    required: bool = False
    description: str = ""

    @property
    def default(self) -> bool | None:
        # Toggles default to off; optional kinds default to unset.
        return False if self.kind is ParamKind.BOOL else None


# ---------------------------------------------------------------------------
# Kind coercion
# ---------------------------------------------------------------------------

_BOOL_STRINGS = {"TRUE": True, "FALSE": False}
_INT_RE = re.compile(r"-?[0-9]+")


def _coerce_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.upper() in _BOOL_STRINGS:
        return _BOOL_STRINGS[raw.upper()]
    raise TypeMismatchError(f"Parameter {name!r} expects a boolean, got {raw!r}", name)


def _coerce_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise TypeMismatchError(f"Parameter {name!r} expects an integer, got {raw!r}", name)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and _INT_RE.fullmatch(raw.strip()):
        return int(raw.strip())
    raise TypeMismatchError(f"Parameter {name!r} expects an integer, got {raw!r}", name)


def _coerce_string(name: str, raw: Any) -> str:
    if not isinstance(raw, str):
        raise TypeMismatchError(f"Parameter {name!r} expects a string, got {raw!r}", name)
    if "\x00" in raw:
        raise TypeMismatchError(f"Parameter {name!r} contains a NUL byte", name)
    return raw


def _coerce_path(name: str, raw: Any) -> str:
    if isinstance(raw, PurePath):
        raw = raw.as_posix()
    path = _coerce_string(name, raw)
    if not path.startswith("/"):
        raise TypeMismatchError(f"Parameter {name!r} must be an absolute path, got {path!r}", name)
    if '"' in path:
        raise TypeMismatchError(f"Parameter {name!r} must not contain a double quote", name)
    return path


def coerce_value(name: str, kind: ParamKind, raw: Any) -> bool | int | str | None:
    """Validate ``raw`` against ``kind`` and return the normalised value.

    Optional kinds treat ``None`` and the empty string as unset.
    """
    if kind.optional and (raw is None or raw == ""):
        return None
    if raw is None:
        raise TypeMismatchError(f"Parameter {name!r} ({kind.value}) cannot be unset", name)
    if kind is ParamKind.BOOL:
        return _coerce_bool(name, raw)
    if kind is ParamKind.INT:
        return _coerce_int(name, raw)
    if kind in (ParamKind.PATH, ParamKind.OPTIONAL_PATH):
        return _coerce_path(name, raw)
    return _coerce_string(name, raw)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ParameterStore:
    """
    Typed parameter table for one compilation.

    Parameters
    ----------
    catalogue:
        Optional name → :class:`ParameterSpec` mapping.  When given, names
        outside it are rejected and kinds must match.
    primitives:
        Operation names the target enforcement engine defines; consulted by
        ``Defined`` guards.  ``None`` means the set is not known.
    """

    def __init__(
        self,
        catalogue: Mapping[str, ParameterSpec] | None = None,
        primitives: Iterable[str] | None = None,
    ) -> None:
        self._catalogue = catalogue
        self._params: dict[str, Parameter] = {}
        self._primitives = frozenset(primitives) if primitives is not None else None
        self._frozen = False

    def bind(self, name: str, kind: ParamKind | str, raw: Any) -> Parameter:
        """Bind ``name`` once.  Raises a :class:`ParameterError` subclass on failure."""
        if self._frozen:
            raise StoreFrozenError(f"Cannot bind {name!r}: parameter store is frozen", name)
        kind = ParamKind(kind)
        if self._catalogue is not None:
            spec = self._catalogue.get(name)
            if spec is None:
                raise UnknownParameterError(f"Unrecognized parameter name {name!r}", name)
            if spec.kind is not kind:
                raise TypeMismatchError(
                    f"Parameter {name!r} must be bound as {spec.kind.value}, not {kind.value}",
                    name,
                )
        if name in self._params:
            raise DuplicateParameterError(f"Parameter {name!r} is already bound", name)
        param = Parameter(name=name, kind=kind, value=coerce_value(name, kind, raw))
        self._params[name] = param
        return param

    def get(self, name: str) -> Parameter:
        try:
            return self._params[name]
        except KeyError:
            raise UndefinedParameterError(f"Parameter {name!r} is not bound", name) from None

    def value(self, name: str) -> bool | int | str | None:
        return self.get(name).value

    def is_bound(self, name: str) -> bool:
        return name in self._params

    def is_set(self, name: str) -> bool:
        """True when ``name`` is bound to a value (raises if it is not bound at all)."""
        return self.get(name).is_set

    def defines(self, primitive: str) -> bool:
        if self._primitives is None:
            raise UndefinedParameterError(
                f"Cannot test for primitive {primitive!r}: platform primitive set is not bound"
            )
        return primitive in self._primitives

    @property
    def primitives(self) -> frozenset[str] | None:
        return self._primitives

    def set_primitives(self, primitives: Iterable[str]) -> None:
        if self._frozen:
            raise StoreFrozenError("Cannot change primitives: parameter store is frozen")
        self._primitives = frozenset(primitives)

    def freeze(self) -> ParameterStore:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def as_dict(self) -> Mapping[str, bool | int | str | None]:
        return MappingProxyType({name: p.value for name, p in self._params.items()})

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._params.values())

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<ParameterStore {len(self)} params, {state}>"


# ---------------------------------------------------------------------------
# Content-process catalogue
# ---------------------------------------------------------------------------


def _catalogue(*specs: ParameterSpec) -> Mapping[str, ParameterSpec]:
    return MappingProxyType({s.name: s for s in specs})


CONTENT_PARAMETERS: Mapping[str, ParameterSpec] = _catalogue(
    ParameterSpec("MAC_OS_VERSION", ParamKind.INT, required=True,
                  description="macOS version as major*100+minor, e.g. 1013"),
    ParameterSpec("HOME_PATH", ParamKind.PATH, required=True,
                  description="User home directory"),
    ParameterSpec("APP_PATH", ParamKind.PATH, required=True,
                  description="Application bundle directory"),
    ParameterSpec("SHOULD_LOG", ParamKind.BOOL, description="Log denied operations"),
    ParameterSpec("HAS_SANDBOXED_PROFILE", ParamKind.BOOL,
                  description="PROFILE_DIR is protected from content processes"),
    ParameterSpec("PROFILE_DIR", ParamKind.OPTIONAL_PATH, description="Browser profile directory"),
    ParameterSpec("HAS_WINDOW_SERVER", ParamKind.BOOL,
                  description="Process may talk to the window server"),
    ParameterSpec("IS_ROSETTA_TRANSLATED", ParamKind.BOOL,
                  description="Process runs under Rosetta translation"),
    ParameterSpec("DEBUG_WRITE_DIR", ParamKind.OPTIONAL_PATH,
                  description="Scratch directory writable for debugging"),
    ParameterSpec("DARWIN_USER_CACHE_DIR", ParamKind.OPTIONAL_PATH,
                  description="Per-user cache directory"),
    *(
        ParameterSpec(f"TESTING_READ_PATH{i}", ParamKind.OPTIONAL_PATH,
                      description="Extra read-only path for test harnesses")
        for i in range(1, MAX_CONTENT_TESTING_READ_PATHS + 1)
    ),
    ParameterSpec("CRASH_PORT", ParamKind.OPTIONAL_STRING,
                  description="Mach service name of the crash reporter"),
)

# Operation names and the first platform version that defines them.
PRIMITIVE_MIN_VERSION: Mapping[str, int] = MappingProxyType(
    {
        "mach-register": 1005,
        "nvram*": 1009,
        "iokit-get-properties": 1010,
        "file-map-executable": 1010,
    }
)


def primitives_for_version(version: int) -> frozenset[str]:
    """Return the optional operation names available on platform ``version``."""
    return frozenset(name for name, since in PRIMITIVE_MIN_VERSION.items() if version >= since)


def build_store(
    values: Mapping[str, Any],
    catalogue: Mapping[str, ParameterSpec] | None = CONTENT_PARAMETERS,
    primitives: Iterable[str] | None = None,
    version_param: str = "MAC_OS_VERSION",
) -> ParameterStore:
    """
    Build and freeze a store from raw ``values``.

    Catalogue defaults are bound for every name not supplied; a required
    catalogue name that is missing stays unbound and fails when a guard or
    template references it.  When ``primitives`` is None the primitive set is
    derived from ``version_param``.
    """
    store = ParameterStore(catalogue=catalogue)
    if catalogue is None:
        for name, raw in values.items():
            store.bind(name, _infer_kind(raw), raw)
    else:
        for name in values:
            if name not in catalogue:
                raise UnknownParameterError(f"Unrecognized parameter name {name!r}", name)
        for name, spec in catalogue.items():
            if name in values:
                store.bind(name, spec.kind, values[name])
            elif not spec.required:
                store.bind(name, spec.kind, spec.default)

    if primitives is not None:
        store.set_primitives(primitives)
    elif store.is_bound(version_param):
        version = store.value(version_param)
        if isinstance(version, int):
            store.set_primitives(primitives_for_version(version))

    logger.debug("Parameter store built: %d bound, primitives=%s", len(store), store.primitives)
    return store.freeze()


def _infer_kind(raw: Any) -> ParamKind:
    if isinstance(raw, bool):
        return ParamKind.BOOL
    if isinstance(raw, int):
        return ParamKind.INT
    if isinstance(raw, (str, PurePath)) and str(raw).startswith("/"):
        return ParamKind.PATH
    if raw is None:
        return ParamKind.OPTIONAL_STRING
    return ParamKind.STRING
