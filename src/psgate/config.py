"""Global configuration — XDG paths, env vars, typed scan options."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from psgate.errors import ConfigurationError
from psgate.scanner.classifier import DEFAULT_EXCLUDE_GLOBS, DEFAULT_TEST_SUFFIXES
from psgate.scanner.engine import DEFAULT_EXTENSIONS, DEFAULT_RULE_TIMEOUT

REPORT_FORMATS = ("console", "json", "xml", "html")


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "psgate"
    return Path.home() / ".config" / "psgate"


@dataclass
class GateConfig:
    """Application-wide configuration."""

    config_dir: Path = field(default_factory=_default_config_dir)
    workers: int = 1
    rule_timeout: float = DEFAULT_RULE_TIMEOUT
    color: bool = True
    verbose: bool = False

    @property
    def default_policy_path(self) -> Path | None:
        """User policy picked up when no --config/--preset is given."""
        path = self.config_dir / "policy.yaml"
        return path if path.is_file() else None

    @classmethod
    def load(cls) -> GateConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        if "NO_COLOR" in os.environ:
            config.color = False

        env_workers = os.environ.get("PSGATE_WORKERS")
        if env_workers:
            try:
                config.workers = max(1, int(env_workers))
            except ValueError as e:
                raise ConfigurationError(f"PSGATE_WORKERS must be an integer: {env_workers!r}") from e

        env_timeout = os.environ.get("PSGATE_RULE_TIMEOUT")
        if env_timeout:
            try:
                config.rule_timeout = float(env_timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"PSGATE_RULE_TIMEOUT must be a number: {env_timeout!r}"
                ) from e

        return config


@dataclass(frozen=True)
class ScanOptions:
    """Every recognised scan option, with explicit defaults."""

    root: Path
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    test_suffixes: tuple[str, ...] = DEFAULT_TEST_SUFFIXES
    report_format: str = "console"
    detailed: bool = False
    exclude_tests: bool = False
    output: Path | None = None
    workers: int = 1
    rule_timeout: float | None = DEFAULT_RULE_TIMEOUT
    color: bool = True

    def __post_init__(self) -> None:
        if self.report_format not in REPORT_FORMATS:
            raise ConfigurationError(
                f"Unknown report format {self.report_format!r}; "
                f"expected one of {', '.join(REPORT_FORMATS)}"
            )
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")
        if self.rule_timeout is not None and self.rule_timeout < 0:
            raise ConfigurationError("rule timeout cannot be negative")
        if not self.root.is_dir():
            raise ConfigurationError(f"Path does not exist or is not a directory: {self.root}")
