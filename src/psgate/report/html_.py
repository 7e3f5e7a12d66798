"""Self-contained HTML report — inline CSS, no external resources."""

from __future__ import annotations

import html
from datetime import datetime, timezone

from psgate.scanner.models import SEVERITY_ORDER, OverallStatus, ScanReport, Severity

_STATUS_COLORS = {
    OverallStatus.PASSED: "#1a7f37",
    OverallStatus.WARNING: "#9a6700",
    OverallStatus.FAILED: "#cf222e",
}

_SEVERITY_COLORS = {
    Severity.CRITICAL: "#82071e",
    Severity.HIGH: "#cf222e",
    Severity.MEDIUM: "#9a6700",
    Severity.LOW: "#0969da",
    Severity.INFO: "#57606a",
}

_STYLE = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif;
       margin: 2rem; color: #24292f; }
h1 { font-size: 1.6rem; margin-bottom: 0.2rem; }
.meta { color: #57606a; font-size: 0.9rem; }
.status { display: inline-block; padding: 0.3rem 0.8rem; border-radius: 1rem;
          color: #fff; font-weight: 600; }
table { border-collapse: collapse; margin: 1rem 0; width: 100%; }
th, td { border: 1px solid #d0d7de; padding: 0.35rem 0.6rem; text-align: left;
         vertical-align: top; }
th { background: #f6f8fa; }
td.num { text-align: right; }
.sev { font-weight: 600; }
.pass { color: #1a7f37; }
.fail { color: #cf222e; }
.errored { background: #fff8c5; }
"""


def _e(value: object) -> str:
    return html.escape(str(value), quote=True)


def _severity_cell(severity: Severity) -> str:
    return (
        f'<td class="sev" style="color:{_SEVERITY_COLORS[severity]}">'
        f"{_e(severity.value)}</td>"
    )


def render_html(report: ScanReport) -> str:
    status_color = _STATUS_COLORS[report.overall_status]
    generated = datetime.fromtimestamp(report.timestamp, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )

    parts: list[str] = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        "<title>psgate compliance report</title>",
        f"<style>{_STYLE}</style>",
        "</head>",
        "<body>",
        "<h1>PowerShell standards compliance</h1>",
        f'<p class="meta">Root: {_e(report.root or "-")} &middot; '
        f"Ruleset: {_e(report.ruleset or '-')} &middot; Generated {_e(generated)}</p>",
        f'<p><span class="status" style="background:{status_color}">'
        f"{_e(report.overall_status.value)}</span></p>",
        "<h2>Summary</h2>",
        "<table>",
        "<tr><th>Total files</th><th>Passed</th><th>Failed</th><th>Excluded</th>"
        "<th>Compliance</th></tr>",
        f'<tr><td class="num">{report.total_files}</td>'
        f'<td class="num">{report.passed_files}</td>'
        f'<td class="num">{report.failed_files}</td>'
        f'<td class="num">{report.excluded_files}</td>'
        f'<td class="num">{report.compliance_percentage:.2f}%</td></tr>',
        "</table>",
        "<table>",
        "<tr><th>Severity</th><th>Findings</th></tr>",
    ]
    for severity in SEVERITY_ORDER:
        parts.append(
            f"<tr>{_severity_cell(severity)}"
            f'<td class="num">{report.findings_by_severity.get(severity, 0)}</td></tr>'
        )
    parts.append("</table>")

    records = [r for r in sorted(report.file_records, key=lambda r: r.path) if r.findings]
    parts.append("<h2>Findings</h2>")
    if not records:
        parts.append("<p>No findings.</p>")
    else:
        parts.append(
            "<table><tr><th>File</th><th>Class</th><th>Line</th><th>Severity</th>"
            "<th>Rule</th><th>Message</th></tr>"
        )
        for record in records:
            row_class = ' class="errored"' if record.errored else ""
            for finding in record.findings:
                line = "" if finding.line is None else str(finding.line)
                parts.append(
                    f"<tr{row_class}><td>{_e(record.path)}</td>"
                    f"<td>{_e(record.classification.value)}</td>"
                    f'<td class="num">{line}</td>'
                    f"{_severity_cell(finding.severity)}"
                    f"<td>{_e(finding.rule_id)}</td><td>{_e(finding.message)}</td></tr>"
                )
        parts.append("</table>")

    parts.append("<h2>Files</h2>")
    parts.append("<table><tr><th>File</th><th>Class</th><th>Bytes</th><th>Result</th></tr>")
    for record in sorted(report.file_records, key=lambda r: r.path):
        result = '<span class="pass">pass</span>' if record.passed else '<span class="fail">fail</span>'
        parts.append(
            f"<tr><td>{_e(record.path)}</td><td>{_e(record.classification.value)}</td>"
            f'<td class="num">{record.size_bytes}</td><td>{result}</td></tr>'
        )
    parts.append("</table>")
    parts.extend(["</body>", "</html>", ""])
    return "\n".join(parts)
