"""CLI command: psgate scan --path <dir> — standards compliance scan."""

from __future__ import annotations

import logging
import os
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from psgate.adapters import coverage_rule, pester_results_rule, script_analyzer_rules
from psgate.cli.policy import config_option, preset_option, resolve_policy
from psgate.config import REPORT_FORMATS, GateConfig, ScanOptions
from psgate.errors import ConfigurationError, ReportRenderError
from psgate.report import ReportFormat, exit_code, render, write_report
from psgate.scanner.classifier import DEFAULT_EXCLUDE_GLOBS, DEFAULT_TEST_SUFFIXES
from psgate.scanner.engine import DEFAULT_EXTENSIONS, ScanContext, ScanEngine
from psgate.scanner.models import OverallStatus, ScanReport, Severity
from psgate.scanner.ruleset import RuleSet, build_ruleset

logger = logging.getLogger(__name__)

console = Console(stderr=True)

EXIT_INVOCATION_ERROR = 2
EXIT_CANCELLED = 130

_STATUS_COLORS = {
    OverallStatus.PASSED: "green",
    OverallStatus.WARNING: "yellow",
    OverallStatus.FAILED: "red",
}


@click.command()
@click.option(
    "--path",
    "-p",
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory to scan.",
)
@click.option("--detailed", is_flag=True, help="List every finding.")
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Extra glob patterns to exclude from the scan.",
)
@click.option("--exclude-tests", is_flag=True, help="Skip test files entirely.")
@click.option(
    "--format",
    "report_format",
    type=click.Choice(REPORT_FORMATS, case_sensitive=False),
    default="console",
    show_default=True,
    help="Report format.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the report to a file instead of stdout.",
)
@config_option
@preset_option
@click.option("--workers", "-j", type=click.IntRange(min=1), help="Files scanned in parallel.")
@click.option(
    "--rule-timeout",
    type=click.FloatRange(min=0),
    help="Seconds before a rule is abandoned (0 disables).",
)
@click.option("--script-analyzer", is_flag=True, help="Also run PSScriptAnalyzer via pwsh.")
@click.option(
    "--coverage-report",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Pester JaCoCo coverage XML to check.",
)
@click.option(
    "--coverage-threshold",
    type=click.FloatRange(0, 100),
    default=80.0,
    show_default=True,
    help="Minimum line coverage per production file.",
)
@click.option(
    "--test-results",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Pester NUnitXml/JUnitXml results; each failed test is a Critical finding.",
)
@click.option(
    "--github-output",
    is_flag=True,
    help="Append issue counts to the file named by $GITHUB_OUTPUT.",
)
@click.pass_context
def scan(
    ctx: click.Context,
    root: Path,
    detailed: bool,
    exclude: tuple[str, ...],
    exclude_tests: bool,
    report_format: str,
    output: Path | None,
    config_path: Path | None,
    preset: str | None,
    workers: int | None,
    rule_timeout: float | None,
    script_analyzer: bool,
    coverage_report: Path | None,
    coverage_threshold: float,
    test_results: Path | None,
    github_output: bool,
) -> None:
    """Scan PowerShell sources for standards violations."""
    config: GateConfig = ctx.obj["config"]

    try:
        policy = resolve_policy(config_path, preset, config)
        extra_rules = []
        if script_analyzer:
            extra_rules.extend(script_analyzer_rules())
        if coverage_report:
            extra_rules.append(coverage_rule(coverage_report, coverage_threshold))
        if test_results:
            if exclude_tests:
                logger.warning("--exclude-tests skips the test files failed tests are reported on")
            extra_rules.append(pester_results_rule(test_results))
        ruleset = build_ruleset(policy, extra_rules)
        options = ScanOptions(
            root=root,
            extensions=policy.extensions or DEFAULT_EXTENSIONS,
            exclude_globs=(policy.exclude or DEFAULT_EXCLUDE_GLOBS) + exclude,
            test_suffixes=policy.test_suffixes or DEFAULT_TEST_SUFFIXES,
            report_format=report_format.lower(),
            detailed=detailed,
            exclude_tests=exclude_tests,
            output=output,
            workers=workers or config.workers,
            rule_timeout=config.rule_timeout if rule_timeout is None else rule_timeout,
            color=config.color,
        )
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(EXIT_INVOCATION_ERROR)

    report, cancelled = _run(options, ruleset, show_progress=not config.verbose)

    fmt = ReportFormat.parse(options.report_format)
    color = (
        options.color
        and options.output is None
        and fmt == ReportFormat.CONSOLE
        and click.get_text_stream("stdout").isatty()
    )
    text = render(report, fmt, detailed=options.detailed, color=color)

    if options.output is None:
        click.echo(text, nl=not text.endswith("\n"))
    else:
        try:
            write_report(text, options.output)
        except ReportRenderError as e:
            click.echo(f"error: {e}", err=True)
            sys.exit(EXIT_INVOCATION_ERROR)
        _print_status(report, options.output)

    if github_output:
        _write_github_output(report)

    if cancelled:
        console.print("[yellow]Scan cancelled; the report covers the files scanned so far.[/yellow]")
        sys.exit(EXIT_CANCELLED)
    sys.exit(exit_code(report))


def _run(options: ScanOptions, ruleset: RuleSet, show_progress: bool) -> tuple[ScanReport, bool]:
    """Scan with a progress bar on an interactive stderr and Ctrl-C/SIGTERM cancellation."""
    context = ScanContext(
        ruleset=ruleset,
        extensions=options.extensions,
        exclude_globs=options.exclude_globs,
        test_suffixes=options.test_suffixes,
        exclude_tests=options.exclude_tests,
        rule_timeout=options.rule_timeout or None,
        workers=options.workers,
    )
    engine = ScanEngine(context)

    def _signal_handler(signum: int, frame: object) -> None:
        console.print("\n[dim]Stopping...[/dim]")
        context.cancel_event.set()

    previous = {
        signum: signal.signal(signum, _signal_handler)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        if show_progress and console.is_terminal:
            with Progress(
                TextColumn("[bold]Scanning[/bold]"),
                BarColumn(),
                MofNCompleteColumn(),
                TextColumn("{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("", total=None)
                context.on_start = lambda total: progress.update(task, total=total)
                context.on_file = lambda record: progress.update(
                    task, advance=1, description=record.path
                )
                report = engine.scan_report(options.root)
        else:
            report = engine.scan_report(options.root)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return report, context.cancel_event.is_set()


def _print_status(report: ScanReport, output: Path) -> None:
    color = _STATUS_COLORS[report.overall_status]
    console.print(
        f"[{color}]{report.overall_status.value}[/{color}]: "
        f"{report.passed_files}/{report.total_files} files compliant "
        f"({report.compliance_percentage:.2f}%)"
    )
    console.print(f"Report written to {output}")


def _write_github_output(report: ScanReport) -> None:
    target = os.environ.get("GITHUB_OUTPUT")
    if not target:
        logger.warning("--github-output given but GITHUB_OUTPUT is not set")
        return
    counts = report.findings_by_severity
    total = sum(n for s, n in counts.items() if s != Severity.INFO)
    critical = counts.get(Severity.CRITICAL, 0) + counts.get(Severity.HIGH, 0)
    lines = [
        f"total-issues={total}",
        f"critical-issues={critical}",
        f"overall-status={report.overall_status.value}",
        f"compliance-percentage={report.compliance_percentage:.2f}",
    ]
    try:
        with open(target, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
    except OSError as e:
        logger.warning("Cannot write GitHub output to %s: %s", target, e)
