"""sbprofile capabilities: capability flags for the sandboxed-call runtime."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from sbprofile.core.capabilities import (
    PlatformDescriptor,
    descriptor_for_host,
    parse_version,
    resolve_capabilities,
)
from sbprofile.core.config import SbProfileConfig
from sbprofile.core.constants import ExitCode


def _descriptor(
    config: SbProfileConfig,
    family: str | None,
    min_version: str | None,
    max_version: str | None,
) -> PlatformDescriptor:
    base = config.platform
    max_text = max_version if max_version is not None else base.max_version
    return PlatformDescriptor(
        family=family or base.family,
        min_version=parse_version(min_version or base.min_version),
        max_version=parse_version(max_text) if max_text else None,
    )


def cmd_capabilities(
    config: SbProfileConfig,
    family: str | None,
    min_version: str | None,
    max_version: str | None,
    host: bool,
    as_json: bool,
    console: Console,
) -> None:
    try:
        if host:
            descriptor = descriptor_for_host()
        else:
            descriptor = _descriptor(config, family, min_version, max_version)
    except ValueError as exc:
        Console(stderr=True).print(f"[red]Invalid platform:[/red] {exc}")
        sys.exit(ExitCode.ERROR)

    caps = resolve_capabilities(descriptor)
    data = caps.as_dict()

    if as_json:
        print(json.dumps({"platform": _describe(descriptor), "capabilities": data}, indent=2))
        return

    console.print(f"[bold]Capabilities[/bold]  ({_describe(descriptor)})\n")
    for name, value in data.items():
        if isinstance(value, bool):
            shown = "[green]yes[/green]" if value else "[dim]no[/dim]"
        else:
            shown = str(value)
        console.print(f"  {name:<28} {shown}")


def _describe(descriptor: PlatformDescriptor) -> str:
    def fmt(v: tuple[int, ...] | None) -> str:
        return ".".join(str(p) for p in v) if v else "*"

    return f"{descriptor.family.value} {fmt(descriptor.min_version)}-{fmt(descriptor.max_version)}"
