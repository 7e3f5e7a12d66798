"""Scanner data models — findings, file records and scan reports."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


class Severity(enum.Enum):
    """Finding severity level, ordered from least to most severe."""

    INFO = "Info"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str) -> Severity:
        """Case-insensitive lookup by value or member name."""
        for member in cls:
            if value.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown severity: {value!r}")


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Most severe first, for reporting
SEVERITY_ORDER: tuple[Severity, ...] = tuple(
    sorted(Severity, key=lambda s: s.rank, reverse=True)
)


class Classification(enum.Enum):
    """How a discovered file is treated by the scanner."""

    PRODUCTION = "Production"
    TEST = "Test"
    EXCLUDED = "Excluded"


class Category(enum.Enum):
    """Rule category."""

    STRUCTURAL = "Structural"
    SECURITY = "Security"
    PERFORMANCE = "Performance"
    COVERAGE = "Coverage"
    TESTS = "Tests"  # failed Pester tests
    TOOLING = "Tooling"  # scanner failures, never produced by a rule match


class AppliesTo(enum.Enum):
    """Which file classifications a rule runs against."""

    PRODUCTION = "Production"
    TEST = "Test"
    BOTH = "Both"

    def covers(self, classification: Classification) -> bool:
        if classification == Classification.EXCLUDED:
            return False
        if self == AppliesTo.BOTH:
            return True
        return self.value == classification.value


class OverallStatus(enum.Enum):
    PASSED = "Passed"
    WARNING = "Warning"
    FAILED = "Failed"


# Minimum severity that makes a file fail, per classification
BLOCKING_SEVERITY = {
    Classification.PRODUCTION: Severity.HIGH,
    Classification.TEST: Severity.CRITICAL,
    Classification.EXCLUDED: Severity.CRITICAL,
}


@dataclass(frozen=True)
class Finding:
    """A single rule violation."""

    rule_id: str
    severity: Severity
    file_path: str
    message: str
    line: int | None = None
    column: int | None = None
    category: Category = Category.STRUCTURAL

    @property
    def sort_key(self) -> tuple:
        return (
            self.line if self.line is not None else 0,
            self.column if self.column is not None else 0,
            self.rule_id,
            self.message,
        )


@dataclass(frozen=True)
class FileRecord:
    """One scanned file and the findings produced for it."""

    path: str
    size_bytes: int
    classification: Classification
    findings: tuple[Finding, ...] = ()

    @property
    def passed(self) -> bool:
        threshold = BLOCKING_SEVERITY[self.classification]
        return not any(f.severity.at_least(threshold) for f in self.findings)

    @property
    def errored(self) -> bool:
        """True when the scanner itself failed on this file."""
        return any(f.category == Category.TOOLING for f in self.findings)

    @property
    def highest_severity(self) -> Severity | None:
        if not self.findings:
            return None
        return max((f.severity for f in self.findings), key=lambda s: s.rank)


@dataclass(frozen=True)
class ScanReport:
    """Aggregate result of a scan; built only by the aggregator."""

    total_files: int
    passed_files: int
    failed_files: int
    findings_by_severity: dict[Severity, int]
    file_records: tuple[FileRecord, ...]
    compliance_percentage: float
    overall_status: OverallStatus
    excluded_files: int = 0
    ruleset: str = ""
    root: str = ""
    timestamp: float = field(default_factory=time.time, compare=False)
    duration: float = field(default=0.0, compare=False)

    @property
    def findings(self) -> list[Finding]:
        return [f for record in self.file_records for f in record.findings]

    @property
    def errored_records(self) -> list[FileRecord]:
        return [r for r in self.file_records if r.errored]

    @property
    def records_with_findings(self) -> list[FileRecord]:
        return [
            r
            for r in self.file_records
            if any(f.category != Category.TOOLING for f in r.findings)
        ]
