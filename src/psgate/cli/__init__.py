"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging
import sys

import click

from psgate import __version__
from psgate.config import GateConfig
from psgate.errors import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="psgate")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """psgate — PowerShell standards compliance gate."""
    ctx.ensure_object(dict)

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = GateConfig.load()
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(2)
    config.verbose = verbose
    ctx.obj["config"] = config


def _register_commands() -> None:
    from psgate.cli.rules import rules  # noqa: F811
    from psgate.cli.scan import scan  # noqa: F811

    main.add_command(scan)
    main.add_command(rules)


_register_commands()
