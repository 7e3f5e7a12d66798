"""Report rendering — console, JSON, XML and HTML — and exit status."""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from psgate.errors import ReportRenderError
from psgate.report.console import render_console
from psgate.report.html_ import render_html
from psgate.report.json_ import parse_json, render_json
from psgate.report.xml_ import parse_xml, render_xml
from psgate.scanner.models import OverallStatus, ScanReport

logger = logging.getLogger(__name__)


class ReportFormat(enum.Enum):
    CONSOLE = "console"
    JSON = "json"
    XML = "xml"
    HTML = "html"

    @classmethod
    def parse(cls, value: str) -> ReportFormat:
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(
                f"Unknown report format {value!r}; expected one of "
                f"{', '.join(f.value for f in cls)}"
            ) from None


def render(
    report: ScanReport,
    fmt: ReportFormat | str = ReportFormat.CONSOLE,
    detailed: bool = False,
    color: bool = False,
) -> str:
    """Serialize ``report``. Pure: never writes anywhere."""
    if isinstance(fmt, str):
        fmt = ReportFormat.parse(fmt)
    if fmt == ReportFormat.JSON:
        return render_json(report)
    if fmt == ReportFormat.XML:
        return render_xml(report)
    if fmt == ReportFormat.HTML:
        return render_html(report)
    return render_console(report, detailed=detailed, color=color)


def exit_code(report: ScanReport) -> int:
    """0 for Passed or Warning, 1 for Failed."""
    return 1 if report.overall_status == OverallStatus.FAILED else 0


def write_report(text: str, path: str | Path) -> None:
    """Write rendered output; failures leave the caller's report intact."""
    output = Path(path)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ReportRenderError(f"Cannot write report to {output}: {e.strerror or e}") from e
    logger.debug("Report written to %s", output)


__all__ = [
    "ReportFormat",
    "exit_code",
    "parse_json",
    "parse_xml",
    "render",
    "write_report",
]
