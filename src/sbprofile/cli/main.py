"""
sbprofile CLI entry point.

Commands:
  sbprofile compile <params.yaml>   assemble and print the SBPL profile
  sbprofile explain <params.yaml>   show which fragments were included and why
  sbprofile params                  list the parameter catalogue
  sbprofile capabilities            resolve sandboxed-runtime capability flags
  sbprofile config init|show        write or display the configuration file
  sbprofile version                 show version information
"""

from __future__ import annotations

import sys

import click
from rich.console import Console

from sbprofile import __version__
from sbprofile.cli._config_cmd import config_group
from sbprofile.core.constants import ExitCode

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="sbprofile %(version)s")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: ~/.sbprofile/config.toml or $SBPROFILE_CONFIG)",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """sbprofile: compile parameterized sandbox profiles."""
    from pathlib import Path

    from sbprofile.core.config import load_config
    from sbprofile.core.exceptions import ConfigError
    from sbprofile.core.log import configure_logging

    try:
        config = load_config(Path(config_path) if config_path else None)
        if log_level:
            config.logging = config.logging.model_validate(
                {**config.logging.model_dump(), "level": log_level}
            )
    except (ConfigError, ValueError) as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    configure_logging(config.logging)
    ctx.obj = config


# ---------------------------------------------------------------------------
# compile / explain
# ---------------------------------------------------------------------------


@cli.command("compile")
@click.argument("params_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--tier",
    type=click.IntRange(0, 3),
    default=None,
    help="Restriction tier 1-3, 0 for none (default: from file, then config)",
)
@click.option("--role", "roles", multiple=True, help="Process role; repeat for several addenda")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write here")
@click.pass_obj
def compile_cmd(
    config: object, params_file: str, tier: int | None, roles: tuple[str, ...], output: str | None
) -> None:
    """Assemble the sandbox profile described by PARAMS_FILE."""
    from sbprofile.cli._compile import cmd_compile

    cmd_compile(
        config=config,
        params_file=params_file,
        tier=tier,
        roles=roles,
        output=output,
        console=err_console,
    )


@cli.command("explain")
@click.argument("params_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tier", type=click.IntRange(0, 3), default=None, help="Override the tier")
@click.option("--role", "roles", multiple=True, help="Override the process roles")
@click.pass_obj
def explain_cmd(config: object, params_file: str, tier: int | None, roles: tuple[str, ...]) -> None:
    """Show per-fragment inclusion decisions for PARAMS_FILE."""
    from sbprofile.cli._compile import cmd_explain

    cmd_explain(
        config=config, params_file=params_file, tier=tier, roles=roles, console=err_console
    )


# ---------------------------------------------------------------------------
# params
# ---------------------------------------------------------------------------


@cli.command("params")
@click.option("--json", "as_json", is_flag=True, default=False)
def params_cmd(as_json: bool) -> None:
    """List the content-process parameter catalogue."""
    from sbprofile.core.params import CONTENT_PARAMETERS

    rows = [
        {
            "name": spec.name,
            "kind": spec.kind.value,
            "required": spec.required,
            "description": spec.description,
        }
        for spec in CONTENT_PARAMETERS.values()
    ]
    if as_json:
        import json

        click.echo(json.dumps(rows, indent=2))
        return

    console.print("\n[bold]Content Process Parameters[/bold]\n")
    for row in rows:
        marker = "[red]*[/red]" if row["required"] else " "
        console.print(
            f" {marker} [cyan]{row['name']:<24}[/cyan] {row['kind']:<16} {row['description']}"
        )
    console.print("\n  [red]*[/red] required\n")


# ---------------------------------------------------------------------------
# capabilities
# ---------------------------------------------------------------------------


@cli.command("capabilities")
@click.option("--os", "family", type=click.Choice(["macos", "linux", "windows"]), default=None)
@click.option("--min-version", default=None, help="Oldest supported OS version, e.g. 10.9")
@click.option("--max-version", default=None, help="Newest supported OS version")
@click.option("--host", is_flag=True, default=False, help="Describe the running platform")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_obj
def capabilities_cmd(
    config: object,
    family: str | None,
    min_version: str | None,
    max_version: str | None,
    host: bool,
    as_json: bool,
) -> None:
    """Resolve capability flags for the sandboxed-call runtime."""
    from sbprofile.cli._capabilities import cmd_capabilities

    cmd_capabilities(
        config=config,
        family=family,
        min_version=min_version,
        max_version=max_version,
        host=host,
        as_json=as_json,
        console=console,
    )


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

cli.add_command(config_group)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def version(as_json: bool) -> None:
    """Show version information and built-in libraries."""
    import platform
    import sys as _sys

    from sbprofile.profiles import library_names

    if as_json:
        import json

        click.echo(
            json.dumps(
                {
                    "sbprofile": __version__,
                    "python": _sys.version.split()[0],
                    "platform": _sys.platform,
                    "arch": platform.machine(),
                    "libraries": library_names(),
                },
                indent=2,
            )
        )
    else:
        console.print(f"sbprofile {__version__}")
        console.print(f"Python {_sys.version.split()[0]}")
        console.print(f"Platform: {_sys.platform} {platform.machine()}")
        console.print(f"Libraries: {', '.join(library_names())}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
