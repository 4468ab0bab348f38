"""sbprofile compile / explain: assemble a profile from a parameter file."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

import click
from rich.console import Console

from sbprofile.core.config import SbProfileConfig
from sbprofile.core.constants import ExitCode
from sbprofile.core.exceptions import (
    AssemblyError,
    ConfigError,
    ParameterError,
    ParameterFileError,
)
from sbprofile.core.policy.model import Tier
from sbprofile.core.policy.parser import ParameterFile, load_parameter_file


def _resolve_tier(cli_tier: int | None, request: ParameterFile, config: SbProfileConfig) -> Tier | None:
    if cli_tier is not None:
        return Tier(cli_tier) if cli_tier else None
    if request.tier is not None:
        return request.tier
    return config.compile.default_tier


def _resolve_roles(
    cli_roles: Sequence[str], request: ParameterFile, config: SbProfileConfig
) -> list[str]:
    if cli_roles:
        return list(cli_roles)
    if request.roles:
        return list(request.roles)
    return list(config.compile.default_roles)


def _fail(console: Console, label: str, exc: Exception, code: ExitCode) -> None:
    fragment_id = getattr(exc, "fragment_id", None)
    where = f" (fragment {fragment_id!r})" if fragment_id else ""
    console.print(f"[red]{label}{where}:[/red] {exc}")
    sys.exit(code)


def _prepare(config: SbProfileConfig, params_file: str, tier: int | None, roles: Sequence[str], console: Console):
    from sbprofile.profiles import get_library

    try:
        request = load_parameter_file(params_file)
        library = get_library(request.library)
        store = request.to_store()
    except ParameterFileError as exc:
        _fail(console, "Invalid parameter file", exc, ExitCode.PARAMETER_ERROR)
    except ConfigError as exc:
        _fail(console, "Config error", exc, ExitCode.CONFIG_ERROR)
    except ParameterError as exc:
        _fail(console, "Parameter error", exc, ExitCode.PARAMETER_ERROR)
    return library, store, _resolve_tier(tier, request, config), _resolve_roles(roles, request, config)


def cmd_compile(
    config: SbProfileConfig,
    params_file: str,
    tier: int | None,
    roles: Sequence[str],
    output: str | None,
    console: Console,
) -> None:
    from sbprofile.core.policy.composer import compose
    from sbprofile.core.policy.emitter import emit

    library, store, selected, role_list = _prepare(config, params_file, tier, roles, console)
    try:
        document = compose(library, store, selected, role_list)
    except AssemblyError as exc:
        _fail(console, "Assembly failed", exc, ExitCode.ASSEMBLY_ERROR)
    except ParameterError as exc:
        _fail(console, "Parameter error", exc, ExitCode.PARAMETER_ERROR)

    text = emit(document)
    if output:
        try:
            Path(output).write_text(text, encoding="utf-8")
        except OSError as exc:
            _fail(console, "Cannot write output", exc, ExitCode.ERROR)
        console.print(
            f"✓  Wrote {output} ({len(document)} statement(s), hash={document.content_hash()})"
        )
    else:
        click.echo(text, nl=False)


def cmd_explain(
    config: SbProfileConfig,
    params_file: str,
    tier: int | None,
    roles: Sequence[str],
    console: Console,
) -> None:
    from sbprofile.core.policy.explain import explain_assembly

    library, store, selected, role_list = _prepare(config, params_file, tier, roles, console)
    try:
        click.echo(explain_assembly(library, store, selected, role_list))
    except AssemblyError as exc:
        _fail(console, "Assembly failed", exc, ExitCode.ASSEMBLY_ERROR)
    except ParameterError as exc:
        _fail(console, "Parameter error", exc, ExitCode.PARAMETER_ERROR)
