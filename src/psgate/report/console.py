"""Console report — Rich renderables captured into a string."""

from __future__ import annotations

from collections import defaultdict
from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from psgate.scanner.models import (
    SEVERITY_ORDER,
    Category,
    Finding,
    OverallStatus,
    ScanReport,
    Severity,
)

_SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "dim",
}

_STATUS_COLORS = {
    OverallStatus.PASSED: "green",
    OverallStatus.WARNING: "yellow",
    OverallStatus.FAILED: "red",
}

_RECOMMENDATIONS = {
    Category.SECURITY: "Move secrets to SecretManagement or a vault; avoid Invoke-Expression.",
    Category.STRUCTURAL: "Rename functions with verbs from Get-Verb and add [Validate*()] attributes.",
    Category.PERFORMANCE: "Replace += accumulation in loops with direct assignment or a generic List.",
    Category.COVERAGE: "Add Pester tests for the uncovered production files.",
    Category.TESTS: "Fix the failing Pester tests before merging.",
}

# Findings listed per severity group unless --detailed
_SUMMARY_LIMIT = 5


def _location(finding: Finding) -> str:
    if finding.line is None:
        return finding.file_path
    return f"{finding.file_path}:{finding.line}"


def render_console(
    report: ScanReport,
    detailed: bool = False,
    color: bool = False,
    width: int = 100,
) -> str:
    """Render a human-readable report grouped by severity."""
    buf = StringIO()
    console = Console(
        file=buf,
        force_terminal=color,
        no_color=not color,
        width=width,
        highlight=False,
    )

    console.print(
        f"[bold]psgate[/bold] compliance report for [cyan]{escape(report.root or '.')}[/cyan] "
        f"(ruleset [cyan]{escape(report.ruleset or 'default')}[/cyan])"
    )
    console.print()

    summary = Table(title="Findings by severity", show_lines=False)
    summary.add_column("Severity", style="bold", width=10)
    summary.add_column("Count", justify="right")
    for severity in SEVERITY_ORDER:
        style = _SEVERITY_COLORS[severity]
        summary.add_row(
            f"[{style}]{severity.value}[/{style}]",
            str(report.findings_by_severity.get(severity, 0)),
        )
    console.print(summary)

    _print_grouped(console, report, detailed)
    _print_files(console, report, detailed)
    _print_errored(console, report)

    console.print(
        f"\nScanned {report.total_files} files "
        f"({report.passed_files} passed, {report.failed_files} failed, "
        f"{report.excluded_files} excluded) in {report.duration:.2f}s"
    )
    console.print(f"Compliance: {report.compliance_percentage:.2f}%")
    status_color = _STATUS_COLORS[report.overall_status]
    console.print(
        f"Status: [{status_color}]{report.overall_status.value.upper()}[/{status_color}]"
    )

    if report.overall_status == OverallStatus.FAILED:
        _print_recommendations(console, report)

    return buf.getvalue()


def _print_grouped(console: Console, report: ScanReport, detailed: bool) -> None:
    groups: dict[Severity, list[Finding]] = defaultdict(list)
    for finding in report.findings:
        if finding.category != Category.TOOLING:
            groups[finding.severity].append(finding)

    if not groups:
        console.print("\n[green]No findings.[/green]")
        return

    for severity in SEVERITY_ORDER:
        findings = groups.get(severity)
        if not findings:
            continue
        style = _SEVERITY_COLORS[severity]
        console.print(f"\n[{style}]{severity.value.upper()} ({len(findings)})[/{style}]")
        shown = findings if detailed else findings[:_SUMMARY_LIMIT]
        for finding in shown:
            console.print(
                f"  {escape(_location(finding))}  [bold]{escape(finding.rule_id)}[/bold]  "
                f"{escape(finding.message)}"
            )
        hidden = len(findings) - len(shown)
        if hidden:
            console.print(f"  [dim]... {hidden} more (use --detailed)[/dim]")


def _print_files(console: Console, report: ScanReport, detailed: bool) -> None:
    records = report.records_with_findings
    if not records:
        return
    table = Table(title="Files with findings", show_lines=False)
    table.add_column("File", style="cyan")
    table.add_column("Class")
    table.add_column("Findings", justify="right")
    table.add_column("Highest")
    table.add_column("Result")
    for record in records:
        if not detailed and record.passed and record.highest_severity == Severity.INFO:
            continue
        highest = record.highest_severity
        style = _SEVERITY_COLORS[highest] if highest else "white"
        table.add_row(
            escape(record.path),
            record.classification.value,
            str(len(record.findings)),
            f"[{style}]{highest.value if highest else '-'}[/{style}]",
            "[green]pass[/green]" if record.passed else "[red]fail[/red]",
        )
    if table.row_count:
        console.print()
        console.print(table)


def _print_errored(console: Console, report: ScanReport) -> None:
    errored = report.errored_records
    if not errored:
        return
    console.print("\n[bold yellow]Files that errored during scanning[/bold yellow]")
    for record in errored:
        for finding in record.findings:
            if finding.category == Category.TOOLING:
                console.print(
                    f"  {escape(record.path)}  [bold]{escape(finding.rule_id)}[/bold]  "
                    f"{escape(finding.message)}"
                )


def _print_recommendations(console: Console, report: ScanReport) -> None:
    categories = {
        f.category
        for f in report.findings
        if f.severity.at_least(Severity.HIGH) and f.category in _RECOMMENDATIONS
    }
    if not categories:
        return
    console.print("\n[bold]Recommendations:[/bold]")
    for category in _RECOMMENDATIONS:
        if category in categories:
            console.print(f"  - {_RECOMMENDATIONS[category]}")
