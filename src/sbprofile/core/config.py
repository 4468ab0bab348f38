"""sbprofile configuration: Pydantic model, load, and save."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from sbprofile.core.capabilities import OSFamily, PlatformDescriptor, parse_version
from sbprofile.core.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    CONTENT_LIBRARY_NAME,
    SBPROFILE_DIR_NAME,
)
from sbprofile.core.exceptions import ConfigError, ConfigNotFoundError
from sbprofile.core.policy.model import ProcessRole, Tier


def sbprofile_dir() -> Path:
    """Return the sbprofile config directory (~/.sbprofile)."""
    return Path.home() / SBPROFILE_DIR_NAME


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v


class CompileConfig(BaseModel):
    library: str = CONTENT_LIBRARY_NAME
    default_tier: Tier | None = Tier.LEVEL_3
    default_roles: list[str] = Field(default_factory=lambda: [ProcessRole.DEFAULT.value])

    @field_validator("default_tier", mode="before")
    @classmethod
    def parse_tier(cls, v: Any) -> Any:
        """TOML has no null: 0 or "none" selects no tier."""
        if v in (0, "0") or (isinstance(v, str) and v.lower() == "none"):
            return None
        return v

    @field_validator("default_roles", mode="before")
    @classmethod
    def parse_roles(cls, v: Any) -> Any:
        """Accept both list and comma-separated string."""
        if isinstance(v, str):
            return [r.strip() for r in v.split(",") if r.strip()]
        return v


class PlatformConfig(BaseModel):
    family: OSFamily = OSFamily.MACOS
    min_version: str = "10.15"
    max_version: str | None = None

    @field_validator("min_version", "max_version")
    @classmethod
    def validate_version(cls, v: str | None) -> str | None:
        if v is not None:
            parse_version(v)
        return v

    def descriptor(self) -> PlatformDescriptor:
        return PlatformDescriptor(
            family=self.family,
            min_version=parse_version(self.min_version),
            max_version=parse_version(self.max_version) if self.max_version else None,
        )


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class SbProfileConfig(BaseModel):
    """Root sbprofile configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    compile: CompileConfig = Field(default_factory=CompileConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path)
    return sbprofile_dir() / CONFIG_FILENAME


def load_config(path: Path | None = None) -> SbProfileConfig:
    """
    Load SbProfileConfig from TOML file, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (SBPROFILE_*)
      2. Config file (~/.sbprofile/config.toml)
      3. Built-in defaults (only when no path was given explicitly)
    """
    import tomllib

    cfg_path = path or _config_file_path()
    explicit = path is not None or CONFIG_ENV_VAR in os.environ

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif explicit:
        raise ConfigNotFoundError(f"Config file not found: {cfg_path}")

    _apply_env_overrides(data)

    try:
        return SbProfileConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid config at {cfg_path}: {exc}") from exc


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay SBPROFILE_* environment variables onto the parsed TOML data."""
    if level := os.environ.get("SBPROFILE_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("SBPROFILE_LOG_FORMAT"):
        data.setdefault("logging", {})["format"] = fmt
    if tier := os.environ.get("SBPROFILE_DEFAULT_TIER"):
        data.setdefault("compile", {})["default_tier"] = int(tier) if tier.isdigit() else tier
    if roles := os.environ.get("SBPROFILE_DEFAULT_ROLES"):
        data.setdefault("compile", {})["default_roles"] = roles


def save_config(config_data: dict[str, Any], path: Path | None = None) -> Path:
    """Write config dict to TOML file with secure permissions (0600)."""
    import tomli_w

    cfg_path = path or _config_file_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Write atomically
    tmp_path = cfg_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "wb") as f:
            tomli_w.dump(config_data, f)
        tmp_path.replace(cfg_path)
    except (OSError, TypeError, ValueError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Cannot write config to {cfg_path}: {exc}") from exc

    cfg_path.chmod(0o600)
    return cfg_path


def config_to_dict(config: SbProfileConfig) -> dict[str, Any]:
    """Serialise ``config`` into the TOML layout :func:`load_config` reads back."""
    data = config.model_dump(mode="json", exclude_none=True)
    if config.compile.default_tier is None:
        data["compile"]["default_tier"] = 0
    return data
