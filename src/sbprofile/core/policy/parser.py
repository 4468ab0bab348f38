"""
Parameter file parser: loads and validates a compilation request from YAML.

A parameter file names the raw parameters plus the tier and roles to
compile for::

    parameters:
      MAC_OS_VERSION: 1013
      HOME_PATH: /Users/a
      APP_PATH: /Applications/Firefox.app/Contents/MacOS
      HAS_SANDBOXED_PROFILE: true
      PROFILE_DIR: /Users/a/profile
    tier: 2
    roles: [default]

Usage::

    request = load_parameter_file("content.yaml")
    store = request.to_store()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sbprofile.core.constants import CONTENT_LIBRARY_NAME
from sbprofile.core.exceptions import ParameterFileError
from sbprofile.core.params import CONTENT_PARAMETERS, ParameterStore, build_store
from sbprofile.core.policy.model import Tier


class ParameterFile(BaseModel):
    """One compilation request: raw parameters, tier, roles and library."""

    model_config = ConfigDict(extra="forbid")

    parameters: dict[str, bool | int | str | None] = Field(default_factory=dict)
    tier: Tier | None = None
    roles: list[str] = Field(default_factory=list)
    library: str = CONTENT_LIBRARY_NAME

    @field_validator("roles", mode="before")
    @classmethod
    def parse_roles(cls, v: Any) -> Any:
        """Accept both list and comma-separated string."""
        if isinstance(v, str):
            return [r.strip() for r in v.split(",") if r.strip()]
        return v

    def to_store(self) -> ParameterStore:
        """Bind the parameters against the content catalogue and freeze the store."""
        return build_store(self.parameters, catalogue=CONTENT_PARAMETERS)


def load_parameter_file(path: str | Path) -> ParameterFile:
    """
    Load and validate a parameter file.

    Raises:
        ParameterFileError: if the file is missing, unreadable, or invalid.
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise ParameterFileError(f"Parameter file not found: {p}")
    try:
        content = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParameterFileError(f"Cannot read parameter file {p}: {exc}") from exc
    return parse_parameter_file(content, source=str(p))


def parse_parameter_file(yaml_text: str, source: str = "<string>") -> ParameterFile:
    """
    Parse and validate a YAML parameter file.

    Args:
        yaml_text: Raw YAML content.
        source:    Human-readable source label for error messages.

    Raises:
        ParameterFileError: on YAML syntax errors or schema violations.
    """
    import yaml

    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as exc:
        raise ParameterFileError(f"YAML syntax error in {source}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParameterFileError(
            f"Parameter file {source} must be a YAML mapping (got {type(data).__name__})"
        )

    try:
        return ParameterFile.model_validate(data)
    except ValidationError as exc:
        lines = [f"Parameter file validation failed in {source}:"]
        for err in exc.errors():
            loc = " → ".join(str(x) for x in err["loc"]) if err["loc"] else "(root)"
            lines.append(f"  {loc}: {err['msg']}")
        raise ParameterFileError("\n".join(lines)) from exc
