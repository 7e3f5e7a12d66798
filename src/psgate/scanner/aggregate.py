"""Aggregation — reduce file records into a ScanReport."""

from __future__ import annotations

from collections.abc import Iterable

from psgate.scanner.models import (
    Classification,
    FileRecord,
    OverallStatus,
    ScanReport,
    Severity,
)


def overall_status(records: Iterable[FileRecord]) -> OverallStatus:
    """Failed on any blocking production/test finding, Warning on Low/Medium.

    Unreadable files are classified Excluded and never drive the status.
    """
    warning = False
    for record in records:
        if record.classification == Classification.EXCLUDED:
            continue
        for finding in record.findings:
            if record.classification == Classification.PRODUCTION and finding.severity.at_least(
                Severity.HIGH
            ):
                return OverallStatus.FAILED
            if finding.severity == Severity.CRITICAL:
                return OverallStatus.FAILED
            if finding.severity in (Severity.LOW, Severity.MEDIUM, Severity.HIGH):
                warning = True
    return OverallStatus.WARNING if warning else OverallStatus.PASSED


def aggregate(
    records: Iterable[FileRecord],
    excluded: int = 0,
    ruleset: str = "",
    root: str = "",
    duration: float = 0.0,
) -> ScanReport:
    """Build a ScanReport. The result does not depend on input order."""
    ordered = tuple(sorted(records, key=lambda r: r.path))

    by_severity = {severity: 0 for severity in Severity}
    for record in ordered:
        for finding in record.findings:
            by_severity[finding.severity] += 1

    total = len(ordered)
    passed = sum(1 for r in ordered if r.passed)
    percentage = round(passed / total * 100, 2) if total else 0.0

    return ScanReport(
        total_files=total,
        passed_files=passed,
        failed_files=total - passed,
        findings_by_severity=by_severity,
        file_records=ordered,
        compliance_percentage=percentage,
        overall_status=overall_status(ordered),
        excluded_files=excluded,
        ruleset=ruleset,
        root=root,
        duration=duration,
    )
