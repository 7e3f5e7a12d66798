"""Tests for report rendering, parsing and exit codes."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from unittest.mock import patch

import pytest

from psgate.errors import ReportRenderError
from psgate.report import (
    ReportFormat,
    exit_code,
    parse_json,
    parse_xml,
    render,
    write_report,
)
from psgate.report.console import render_console
from psgate.report.html_ import render_html
from psgate.scanner.aggregate import aggregate
from psgate.scanner.models import (
    Category,
    Classification,
    FileRecord,
    Finding,
    OverallStatus,
    ScanReport,
    Severity,
)


@pytest.fixture
def report() -> ScanReport:
    records = [
        FileRecord(
            "src/Deploy.ps1",
            120,
            Classification.PRODUCTION,
            (
                Finding(
                    "AvoidHardcodedPassword",
                    Severity.CRITICAL,
                    "src/Deploy.ps1",
                    'Hardcoded password <script>alert("x")</script> & more',
                    line=4,
                    column=5,
                    category=Category.SECURITY,
                ),
                Finding("ValidateFunctionParameters", Severity.MEDIUM, "src/Deploy.ps1", "No validation"),
            ),
        ),
        FileRecord("src/Clean.ps1", 40, Classification.PRODUCTION),
        FileRecord(
            "Tests/Deploy.Tests.ps1",
            80,
            Classification.TEST,
            (
                Finding(
                    "AvoidArrayAccumulationInLoop",
                    Severity.INFO,
                    "Tests/Deploy.Tests.ps1",
                    "Accumulation [in] loop",
                    line=7,
                    category=Category.PERFORMANCE,
                ),
            ),
        ),
        FileRecord(
            "src/Locked.ps1",
            0,
            Classification.EXCLUDED,
            (
                Finding(
                    "FileUnreadable",
                    Severity.CRITICAL,
                    "src/Locked.ps1",
                    "File unreadable: Permission denied",
                    category=Category.TOOLING,
                ),
            ),
        ),
    ]
    return aggregate(records, excluded=2, ruleset="default", root="/repo", duration=0.5)


class TestFormats:
    def test_parse(self):
        assert ReportFormat.parse("JSON") == ReportFormat.JSON
        with pytest.raises(ValueError, match="Unknown report format"):
            ReportFormat.parse("pdf")

    def test_exit_code(self, report):
        assert report.overall_status == OverallStatus.FAILED
        assert exit_code(report) == 1
        assert exit_code(aggregate([])) == 0


class TestJson:
    def test_schema(self, report):
        data = json.loads(render(report, "json"))
        assert data["totalFiles"] == 4
        assert data["passedFiles"] == 2
        assert data["failedFiles"] == 2
        assert data["excludedFiles"] == 2
        assert data["overallStatus"] == "Failed"
        assert data["compliancePercentage"] == 50.0
        assert list(data["findingsBySeverity"]) == ["Critical", "High", "Medium", "Low", "Info"]
        assert data["findingsBySeverity"]["Critical"] == 2
        first = data["findings"][0]
        assert set(first) == {"ruleId", "severity", "category", "filePath", "line", "column", "message"}
        assert [f["path"] for f in data["files"]] == sorted(f["path"] for f in data["files"])

    def test_round_trip(self, report):
        assert parse_json(render(report, ReportFormat.JSON)) == report

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_json('{"totalFiles": 1}')
        with pytest.raises(ValueError):
            parse_json("not json")


class TestXml:
    def test_well_formed(self, report):
        text = render(report, "xml")
        assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ET.fromstring(text.encode("utf-8"))
        assert root.tag == "scanReport"
        assert root.get("overallStatus") == "Failed"
        assert len(root.findall("files/file")) == 4

    def test_round_trip(self, report):
        assert parse_xml(render(report, "xml")) == report

    def test_control_characters_replaced(self):
        record = FileRecord(
            "a.ps1",
            1,
            Classification.PRODUCTION,
            (Finding("R", Severity.LOW, "a.ps1", "bad\x07char"),),
        )
        text = render(aggregate([record]), "xml")
        root = ET.fromstring(text.encode("utf-8"))
        assert root.find("files/file/finding").text == "bad\ufffdchar"

    def test_wrong_root(self):
        with pytest.raises(ValueError):
            parse_xml("<other/>")


class TestHtml:
    def test_self_contained(self, report):
        html = render_html(report)
        assert html.startswith("<!DOCTYPE html>")
        assert "<style>" in html
        for external in ("<script", "<link", "src=", "http://", "https://"):
            assert external not in html

    def test_escapes_text(self, report):
        html = render_html(report)
        assert "&lt;script&gt;" in html
        assert "&amp; more" in html

    def test_contents(self, report):
        html = render_html(report)
        assert "src/Deploy.ps1" in html
        assert "AvoidHardcodedPassword" in html
        assert "Failed" in html


class TestConsole:
    def test_sections(self, report):
        text = render_console(report)
        assert "Findings by severity" in text
        assert "CRITICAL (1)" in text
        assert "Files with findings" in text
        assert "Files that errored during scanning" in text
        assert "src/Locked.ps1" in text
        assert "Compliance: 50.00%" in text
        assert "Status: FAILED" in text
        assert "Recommendations" in text

    def test_markup_in_messages_is_literal(self, report):
        assert "Accumulation [in] loop" in render_console(report, detailed=True)

    def test_summary_limit(self):
        findings = tuple(
            Finding("R", Severity.MEDIUM, "a.ps1", f"issue {i}", line=i + 1) for i in range(8)
        )
        report = aggregate([FileRecord("a.ps1", 1, Classification.PRODUCTION, findings)])
        short = render_console(report)
        assert "3 more (use --detailed)" in short
        assert "issue 7" not in short
        assert "issue 7" in render_console(report, detailed=True)

    def test_no_color_has_no_escape_codes(self, report):
        assert "\x1b[" not in render_console(report, color=False)

    def test_clean_report(self):
        text = render_console(aggregate([FileRecord("a.ps1", 1, Classification.PRODUCTION)]))
        assert "No findings." in text
        assert "Status: PASSED" in text
        assert "Recommendations" not in text


class TestWriteReport:
    def test_writes_and_creates_parent(self, tmp_path):
        target = tmp_path / "out" / "report.json"
        write_report("{}", target)
        assert target.read_text(encoding="utf-8") == "{}"

    def test_failure_raises_render_error(self, tmp_path):
        with patch("pathlib.Path.write_text", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(ReportRenderError, match="Permission denied"):
                write_report("{}", tmp_path / "report.json")
