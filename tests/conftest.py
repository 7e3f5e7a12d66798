"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from psgate.scanner.engine import ScanContext
from psgate.scanner.models import Classification, FileRecord, Finding, Severity
from psgate.scanner.ruleset import RuleSet, default_ruleset


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def team_policy_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "team_policy.yaml"


@pytest.fixture
def jacoco_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "jacoco.xml"


@pytest.fixture
def nunit_results_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "pester-nunit.xml"


@pytest.fixture
def junit_results_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "pester-junit.xml"


@pytest.fixture
def ruleset() -> RuleSet:
    return default_ruleset()


@pytest.fixture
def context(ruleset: RuleSet) -> ScanContext:
    return ScanContext(ruleset=ruleset)


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Create files under a fresh scan root from a {relative path: content} map."""

    def _write(files: dict[str, str]) -> Path:
        root = tmp_path / "repo"
        root.mkdir(exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _write


@pytest.fixture
def make_record() -> Callable[..., FileRecord]:
    """Build a FileRecord with one finding per given severity."""

    def _make(
        path: str,
        *severities: Severity,
        classification: Classification = Classification.PRODUCTION,
    ) -> FileRecord:
        return FileRecord(
            path=path,
            size_bytes=10,
            classification=classification,
            findings=tuple(
                Finding(rule_id=f"Rule{i}", severity=s, file_path=path, message="m", line=i + 1)
                for i, s in enumerate(severities)
            ),
        )

    return _make
