"""Policy selection shared by CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from psgate.config import GateConfig
from psgate.errors import ConfigurationError
from psgate.policy.loader import list_presets, load_policy, load_preset
from psgate.policy.models import StandardsPolicy

logger = logging.getLogger(__name__)

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a standards policy YAML file.",
)
preset_option = click.option(
    "--preset",
    type=str,
    help=f"Bundled policy preset ({', '.join(list_presets())}).",
)


def resolve_policy(
    config_path: Path | None,
    preset: str | None,
    config: GateConfig,
) -> StandardsPolicy:
    """--config, then --preset, then the user policy, then preset:default."""
    if config_path and preset:
        raise ConfigurationError("Use either --config or --preset, not both")
    if config_path:
        return load_policy(config_path)
    if preset:
        return load_preset(preset)
    user_policy = config.default_policy_path
    if user_policy:
        logger.debug("Using user policy %s", user_policy)
        return load_policy(user_policy)
    return load_preset("default")
