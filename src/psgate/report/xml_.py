"""XML serialization of scan reports (round-trippable)."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET

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

# Characters not allowed in XML 1.0 documents
_INVALID_XML = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")
_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def _clean(value: str) -> str:
    return _INVALID_XML.sub("\ufffd", value)


def _finding_element(parent: ET.Element, finding: Finding) -> None:
    elem = ET.SubElement(
        parent,
        "finding",
        ruleId=_clean(finding.rule_id),
        severity=finding.severity.value,
        category=finding.category.value,
    )
    if finding.line is not None:
        elem.set("line", str(finding.line))
    if finding.column is not None:
        elem.set("column", str(finding.column))
    elem.text = _clean(finding.message)


def render_xml(report: ScanReport) -> str:
    root = ET.Element(
        "scanReport",
        totalFiles=str(report.total_files),
        passedFiles=str(report.passed_files),
        failedFiles=str(report.failed_files),
        excludedFiles=str(report.excluded_files),
        compliancePercentage=repr(report.compliance_percentage),
        overallStatus=report.overall_status.value,
        ruleset=_clean(report.ruleset),
        root=_clean(report.root),
        timestamp=repr(report.timestamp),
        duration=repr(report.duration),
    )

    counts = ET.SubElement(root, "findingsBySeverity")
    for severity in SEVERITY_ORDER:
        ET.SubElement(
            counts,
            "severity",
            name=severity.value,
            count=str(report.findings_by_severity.get(severity, 0)),
        )

    files = ET.SubElement(root, "files")
    for record in sorted(report.file_records, key=lambda r: r.path):
        file_elem = ET.SubElement(
            files,
            "file",
            path=_clean(record.path),
            sizeBytes=str(record.size_bytes),
            classification=record.classification.value,
            passed=str(record.passed).lower(),
        )
        for finding in record.findings:
            _finding_element(file_elem, finding)

    ET.indent(root)
    return _DECLARATION + ET.tostring(root, encoding="unicode")


def _optional_int(value: str | None) -> int | None:
    return int(value) if value is not None else None


def _parse_record(elem: ET.Element) -> FileRecord:
    path = elem.get("path", "")
    findings = tuple(
        Finding(
            rule_id=f.get("ruleId", ""),
            severity=Severity(f.get("severity")),
            file_path=path,
            message=f.text or "",
            line=_optional_int(f.get("line")),
            column=_optional_int(f.get("column")),
            category=Category(f.get("category", Category.STRUCTURAL.value)),
        )
        for f in elem.findall("finding")
    )
    return FileRecord(
        path=path,
        size_bytes=int(elem.get("sizeBytes", "0")),
        classification=Classification(elem.get("classification")),
        findings=findings,
    )


def parse_xml(text: str) -> ScanReport:
    """Rebuild a ScanReport from :func:`render_xml` output.

    Raises ``ValueError`` on malformed input.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ValueError(f"Not a psgate XML report: {e}") from e
    if root.tag != "scanReport":
        raise ValueError(f"Unexpected root element <{root.tag}>")

    counts = {s: 0 for s in Severity}
    for elem in root.iterfind("findingsBySeverity/severity"):
        counts[Severity(elem.get("name"))] = int(elem.get("count", "0"))

    return ScanReport(
        total_files=int(root.get("totalFiles", "0")),
        passed_files=int(root.get("passedFiles", "0")),
        failed_files=int(root.get("failedFiles", "0")),
        findings_by_severity=counts,
        file_records=tuple(_parse_record(e) for e in root.iterfind("files/file")),
        compliance_percentage=float(root.get("compliancePercentage", "0")),
        overall_status=OverallStatus(root.get("overallStatus")),
        excluded_files=int(root.get("excludedFiles", "0")),
        ruleset=root.get("ruleset", ""),
        root=root.get("root", ""),
        timestamp=float(root.get("timestamp", "0")),
        duration=float(root.get("duration", "0")),
    )
