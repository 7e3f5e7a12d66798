"""Pester coverage adapter — JaCoCo XML report mapped to Coverage findings."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from pathlib import Path

from psgate.errors import ConfigurationError
from psgate.scanner.models import AppliesTo, Category, Severity
from psgate.scanner.rules import RuleDefinition, RuleMatch

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 80.0


def load_jacoco(path: str | Path) -> dict[str, float]:
    """Return line coverage percentages keyed by lower-cased posix source path."""
    try:
        tree = ET.parse(path)
    except OSError as e:
        raise ConfigurationError(f"Cannot read coverage report {path}: {e.strerror or e}") from e
    except ET.ParseError as e:
        raise ConfigurationError(f"Malformed coverage report {path}: {e}") from e

    coverage: dict[str, float] = {}
    for package in tree.getroot().iter("package"):
        prefix = (package.get("name") or "").replace("\\", "/").strip("/")
        for source in package.iter("sourcefile"):
            counter = source.find("counter[@type='LINE']")
            if counter is None:
                continue
            missed = int(counter.get("missed", "0"))
            covered = int(counter.get("covered", "0"))
            total = missed + covered
            if total == 0:
                continue
            name = source.get("name", "").replace("\\", "/")
            key = f"{prefix}/{name}" if prefix else name
            coverage[key.lower()] = round(covered / total * 100, 2)
    logger.debug("Loaded coverage for %d files from %s", len(coverage), path)
    return coverage


def lookup(coverage: dict, path: str):
    """Match a scan-relative path against lower-cased report paths by common suffix."""
    wanted = path.replace("\\", "/").lower()
    for key in sorted(coverage):
        if key == wanted or wanted.endswith("/" + key) or key.endswith("/" + wanted):
            return coverage[key]
    return None


def coverage_rule(
    report_path: str | Path,
    threshold: float = DEFAULT_THRESHOLD,
) -> RuleDefinition:
    coverage = load_jacoco(report_path)

    def _match(text: str, path: str) -> Iterator[RuleMatch]:
        percent = lookup(coverage, path)
        if percent is None or percent >= threshold:
            return
        yield RuleMatch(
            line=None,
            message=f"Line coverage {percent:.2f}% is below the {threshold:g}% threshold",
        )

    return RuleDefinition(
        id="MinimumCodeCoverage",
        category=Category.COVERAGE,
        severity=Severity.MEDIUM,
        applies_to=AppliesTo.PRODUCTION,
        evaluate=_match,
        description=f"Pester line coverage of at least {threshold:g}%",
        remediation="Add Pester tests exercising the uncovered code paths.",
    )
