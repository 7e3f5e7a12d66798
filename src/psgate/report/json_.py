"""JSON serialization of scan reports (round-trippable)."""

from __future__ import annotations

import json
from typing import Any

from psgate.scanner.models import (
    SEVERITY_ORDER,
    Category,
    Classification,
    FileRecord,
    Finding,
    OverallStatus,
    ScanReport,
    Severity,
)


def finding_to_dict(finding: Finding) -> dict[str, Any]:
    return {
        "ruleId": finding.rule_id,
        "severity": finding.severity.value,
        "category": finding.category.value,
        "filePath": finding.file_path,
        "line": finding.line,
        "column": finding.column,
        "message": finding.message,
    }


def record_to_dict(record: FileRecord) -> dict[str, Any]:
    return {
        "path": record.path,
        "sizeBytes": record.size_bytes,
        "classification": record.classification.value,
        "passed": record.passed,
        "findings": [finding_to_dict(f) for f in record.findings],
    }


def report_to_dict(report: ScanReport) -> dict[str, Any]:
    records = sorted(report.file_records, key=lambda r: r.path)
    return {
        "totalFiles": report.total_files,
        "passedFiles": report.passed_files,
        "failedFiles": report.failed_files,
        "excludedFiles": report.excluded_files,
        "compliancePercentage": report.compliance_percentage,
        "overallStatus": report.overall_status.value,
        "findingsBySeverity": {
            s.value: report.findings_by_severity.get(s, 0) for s in SEVERITY_ORDER
        },
        "ruleset": report.ruleset,
        "root": report.root,
        "timestamp": report.timestamp,
        "duration": report.duration,
        "findings": [finding_to_dict(f) for r in records for f in r.findings],
        "files": [record_to_dict(r) for r in records],
    }


def finding_from_dict(data: dict[str, Any]) -> Finding:
    return Finding(
        rule_id=data["ruleId"],
        severity=Severity(data["severity"]),
        file_path=data["filePath"],
        message=data["message"],
        line=data.get("line"),
        column=data.get("column"),
        category=Category(data.get("category", Category.STRUCTURAL.value)),
    )


def record_from_dict(data: dict[str, Any]) -> FileRecord:
    return FileRecord(
        path=data["path"],
        size_bytes=int(data.get("sizeBytes", 0)),
        classification=Classification(data["classification"]),
        findings=tuple(finding_from_dict(f) for f in data.get("findings", [])),
    )


def report_from_dict(data: dict[str, Any]) -> ScanReport:
    counts = data.get("findingsBySeverity", {})
    return ScanReport(
        total_files=int(data["totalFiles"]),
        passed_files=int(data["passedFiles"]),
        failed_files=int(data["failedFiles"]),
        findings_by_severity={s: int(counts.get(s.value, 0)) for s in Severity},
        file_records=tuple(record_from_dict(r) for r in data.get("files", [])),
        compliance_percentage=float(data["compliancePercentage"]),
        overall_status=OverallStatus(data["overallStatus"]),
        excluded_files=int(data.get("excludedFiles", 0)),
        ruleset=data.get("ruleset", ""),
        root=data.get("root", ""),
        timestamp=float(data.get("timestamp", 0.0)),
        duration=float(data.get("duration", 0.0)),
    )


def render_json(report: ScanReport) -> str:
    return json.dumps(report_to_dict(report), indent=2)


def parse_json(text: str) -> ScanReport:
    """Rebuild a ScanReport from :func:`render_json` output.

    Raises ``ValueError`` on malformed input.
    """
    try:
        return report_from_dict(json.loads(text))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Not a psgate JSON report: {e}") from e
