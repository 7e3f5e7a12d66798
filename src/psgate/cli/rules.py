"""CLI command: psgate rules — list the effective ruleset."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from psgate.cli.policy import config_option, preset_option, resolve_policy
from psgate.config import GateConfig
from psgate.errors import ConfigurationError
from psgate.scanner.models import Severity
from psgate.scanner.ruleset import build_ruleset

_SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "dim",
}


@click.command()
@config_option
@preset_option
@click.pass_context
def rules(ctx: click.Context, config_path: Path | None, preset: str | None) -> None:
    """Show the rules a scan would apply."""
    config: GateConfig = ctx.obj["config"]
    try:
        policy = resolve_policy(config_path, preset, config)
        ruleset = build_ruleset(policy)
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(2)

    console = Console(no_color=not config.color, highlight=False)
    table = Table(title=f"Ruleset '{ruleset.name}' (version {ruleset.version})")
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Category")
    table.add_column("Severity", width=10)
    table.add_column("Applies to")
    table.add_column("Description")

    for rule in ruleset.rules:
        style = _SEVERITY_COLORS[rule.severity]
        table.add_row(
            rule.id,
            rule.category.value,
            f"[{style}]{rule.severity.value}[/{style}]",
            rule.applies_to.value,
            rule.description,
        )

    console.print(table)
    console.print(f"\n{len(ruleset)} rules")
