"""Pester test-results adapter — failed tests mapped to findings on their script.

Reads the NUnitXml (Pester's default) or JUnitXml result file written by
``Invoke-Pester`` and reports one finding per failed test, against the
``*.Tests.ps1`` file that defines it.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from psgate.adapters.coverage import lookup
from psgate.errors import ConfigurationError
from psgate.scanner.models import AppliesTo, Category, Severity
from psgate.scanner.rules import RuleDefinition, RuleMatch

logger = logging.getLogger(__name__)

_SUITE_TAGS = {"test-suite", "testsuite"}
_CASE_TAGS = {"test-case", "testcase"}
_FAILED_RESULTS = {"failure", "failed", "error"}


@dataclass(frozen=True)
class FailedTest:
    """One failed Pester ``It`` block."""

    name: str
    script: str
    message: str = ""
    line: int | None = None


def load_test_results(path: str | Path) -> list[FailedTest]:
    """Return the failed tests in a Pester NUnit or JUnit result file."""
    try:
        tree = ET.parse(path)
    except OSError as e:
        raise ConfigurationError(f"Cannot read test results {path}: {e.strerror or e}") from e
    except ET.ParseError as e:
        raise ConfigurationError(f"Malformed test results {path}: {e}") from e

    root = tree.getroot()
    if root.tag not in {"test-results", "test-run", "testsuites", "testsuite"}:
        raise ConfigurationError(
            f"{path}: not an NUnit or JUnit result file (root <{root.tag}>)"
        )
    failed = list(_walk(root, script=""))
    logger.debug("Loaded %d failed tests from %s", len(failed), path)
    return failed


def _walk(element: ET.Element, script: str) -> Iterator[FailedTest]:
    if element.tag in _SUITE_TAGS or element.tag == "test-results":
        name = element.get("name") or element.get("filepath") or ""
        if name.lower().endswith(".ps1"):
            script = name
    if element.tag in _CASE_TAGS:
        failed = _failure(element)
        if failed is not None:
            yield _failed_test(element, script or element.get("classname", ""), failed)
        return
    for child in element:
        yield from _walk(child, script)


def _failure(case: ET.Element) -> ET.Element | None:
    """The <failure>/<error> element of a failed case, or the case itself."""
    for tag in ("failure", "error"):
        node = case.find(tag)
        if node is not None:
            return node
    if (case.get("result") or "").lower() in _FAILED_RESULTS:
        return case
    return None


def _failed_test(case: ET.Element, script: str, failure: ET.Element) -> FailedTest:
    message = failure.get("message") or failure.findtext("message") or failure.text or ""
    trace = failure.findtext("stack-trace") or failure.text or ""
    return FailedTest(
        name=case.get("name") or case.get("description") or "",
        script=script,
        message=message.strip().splitlines()[0] if message.strip() else "",
        line=_line_in(trace, script),
    )


def _line_in(trace: str, script: str) -> int | None:
    # Pester stack traces end with "<path>: line 12" or "<path>:12"
    base = re.escape(script.replace("\\", "/").rsplit("/", 1)[-1])
    if not base:
        return None
    match = re.search(base + r":\s*(?:line\s+)?(\d+)", trace.replace("\\", "/"), re.IGNORECASE)
    return int(match.group(1)) if match else None


def pester_results_rule(
    report_path: str | Path,
    severity: Severity = Severity.CRITICAL,
) -> RuleDefinition:
    by_script: dict[str, list[FailedTest]] = {}
    for test in load_test_results(report_path):
        if not test.script:
            logger.warning("Failed test %r has no script path; not reported", test.name)
            continue
        key = test.script.replace("\\", "/").lower()
        by_script.setdefault(key, []).append(test)

    def _match(text: str, path: str) -> Iterator[RuleMatch]:
        for test in lookup(by_script, path) or ():
            message = f"Pester test failed: {test.name}"
            if test.message:
                message = f"{message}: {test.message}"
            yield RuleMatch(line=test.line, message=message)

    return RuleDefinition(
        id="PesterTestsPass",
        category=Category.TESTS,
        severity=severity,
        applies_to=AppliesTo.TEST,
        evaluate=_match,
        description="Every Pester test passes",
        remediation="Fix the failing tests or the code under test.",
    )
