"""sbprofile exception hierarchy."""

from __future__ import annotations


class SbProfileError(Exception):
    """Base exception for all sbprofile errors."""


class ConfigError(SbProfileError):
    """Raised when the configuration is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file does not exist."""


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class ParameterError(SbProfileError):
    """Base class for parameter binding and lookup failures.

    ``fragment_id`` is filled in by the composer when the failure happened
    while resolving a fragment.
    """

    def __init__(self, message: str, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.fragment_id: str | None = None


class UndefinedParameterError(ParameterError):
    """Raised when a guard or template references a name that was never bound."""


class TypeMismatchError(ParameterError, TypeError):
    """Raised when a parameter value does not fit its declared kind."""


class DuplicateParameterError(ParameterError):
    """Raised when a parameter name is bound twice in one store."""


class UnknownParameterError(ParameterError):
    """Raised when a name is not part of the store's parameter catalogue."""


class StoreFrozenError(ParameterError):
    """Raised when binding into a store that has already been frozen."""


class ParameterFileError(SbProfileError, ValueError):
    """Raised when a parameter file cannot be parsed or fails validation."""


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class AssemblyError(SbProfileError):
    """Raised when a policy document cannot be assembled.

    Carries the id of the offending fragment when one is known.
    """

    def __init__(self, message: str, fragment_id: str | None = None) -> None:
        super().__init__(message)
        self.fragment_id = fragment_id


class DuplicateFragmentError(AssemblyError):
    """Raised when two fragments with the same id would be included."""


class UnresolvedTemplateError(AssemblyError):
    """Raised when a template demands a value from an unset optional parameter."""


class UnknownRoleError(AssemblyError):
    """Raised when a requested process role has no addendum in the library."""


class UnknownTierError(AssemblyError):
    """Raised when a requested tier is not declared by the library."""


# ---------------------------------------------------------------------------
# Sandboxed runtime
# ---------------------------------------------------------------------------


class SandboxAbortError(SbProfileError):
    """Raised by the default abort hook on a fatal sandbox runtime violation."""
