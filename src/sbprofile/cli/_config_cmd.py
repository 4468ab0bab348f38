"""CLI commands: sbprofile config init | show."""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console

from sbprofile.core.constants import ExitCode

console = Console()
err_console = Console(stderr=True)


@click.group("config")
def config_group() -> None:
    """Write and inspect the sbprofile configuration file."""


@config_group.command("init")
@click.argument("path", type=click.Path(dir_okay=False), required=False)
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file")
@click.pass_obj
def config_init(config, path, force):
    """Write the effective configuration to PATH (default: ~/.sbprofile/config.toml)."""
    from pathlib import Path

    from sbprofile.core.config import _config_file_path, config_to_dict, save_config
    from sbprofile.core.exceptions import ConfigError

    cfg_path = Path(path) if path else _config_file_path()
    if cfg_path.exists() and not force:
        err_console.print(f"[red]Config already exists:[/red] {cfg_path}")
        err_console.print("Use --force to overwrite it.")
        sys.exit(ExitCode.ERROR)

    try:
        save_config(config_to_dict(config), cfg_path)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    console.print(f"[green]Config written:[/green] {cfg_path}")


@config_group.command("show")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_obj
def config_show(config, as_json):
    """Display the effective configuration."""
    from sbprofile.core.config import config_to_dict

    data = config_to_dict(config)
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    for section, values in data.items():
        console.print(f"[bold]{section}[/bold]")
        for key, value in values.items():
            console.print(f"  {key:<16} {value}")
