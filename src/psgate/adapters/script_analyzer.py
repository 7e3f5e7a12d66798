"""PSScriptAnalyzer adapter — maps Invoke-ScriptAnalyzer output to findings.

The analyzer runs in a ``pwsh`` subprocess per file and receives the file text
on stdin through ``-ScriptDefinition``, so the rule stays a text-in /
matches-out black box like the built-in rules.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from collections.abc import Iterable, Iterator

from psgate.errors import ConfigurationError
from psgate.scanner.models import AppliesTo, Category, Severity
from psgate.scanner.rules import RuleDefinition, RuleMatch

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0

# Diagnostics that are expected in test code (mocks, unused test params)
TEST_EXCLUDED_RULES: tuple[str, ...] = (
    "PSAvoidUsingComputerNameHardcoded",
    "PSReviewUnusedParameter",
    "PSUseDeclaredVarsMoreThanAssignments",
)

_SEVERITY_MAP = {
    "information": Severity.INFO,
    "warning": Severity.MEDIUM,
    "error": Severity.HIGH,
    "parseerror": Severity.CRITICAL,
}

# DiagnosticSeverity enum values, for output that was not stringified
_SEVERITY_NAMES = {0: "information", 1: "warning", 2: "error", 3: "parseerror"}

_SCRIPT = (
    "$ErrorActionPreference = 'Stop'; "
    "Import-Module PSScriptAnalyzer; "
    "$source = [Console]::In.ReadToEnd(); "
    "$found = Invoke-ScriptAnalyzer -ScriptDefinition $source{severity}{exclude}; "
    "@($found | Select-Object RuleName, "
    "@{{n='Severity';e={{$_.Severity.ToString()}}}}, Line, Column, Message) "
    "| ConvertTo-Json -Depth 3 -Compress"
)


def _ps_list(items: Iterable[str]) -> str:
    return ",".join("'" + item.replace("'", "''") + "'" for item in items)


def build_command(
    executable: str,
    severities: Iterable[str] = (),
    exclude_rules: Iterable[str] = (),
) -> list[str]:
    severities = list(severities)
    exclude_rules = list(exclude_rules)
    script = _SCRIPT.format(
        severity=f" -Severity {_ps_list(severities)}" if severities else "",
        exclude=f" -ExcludeRule {_ps_list(exclude_rules)}" if exclude_rules else "",
    )
    return [executable, "-NoProfile", "-NonInteractive", "-Command", script]


def parse_diagnostics(output: str) -> list[RuleMatch]:
    """Turn ConvertTo-Json output into rule matches."""
    output = output.strip()
    if not output:
        return []
    data = json.loads(output)
    if isinstance(data, dict):
        data = [data]

    matches: list[RuleMatch] = []
    for item in data:
        raw = item.get("Severity", "warning")
        name = _SEVERITY_NAMES.get(raw, "warning") if isinstance(raw, int) else str(raw).lower()
        matches.append(
            RuleMatch(
                line=item.get("Line"),
                column=item.get("Column"),
                message=str(item.get("Message", "")).strip(),
                severity=_SEVERITY_MAP.get(name, Severity.MEDIUM),
                rule_id=item.get("RuleName") or None,
            )
        )
    return matches


def _analyzer_matcher(command: list[str], timeout: float):
    def _match(text: str, path: str) -> Iterator[RuleMatch]:
        proc = subprocess.run(
            command,
            input=text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
        if proc.returncode != 0:
            raise RuntimeError(
                f"Invoke-ScriptAnalyzer exited {proc.returncode}: {proc.stderr.strip()[:200]}"
            )
        yield from parse_diagnostics(proc.stdout)

    return _match


def script_analyzer_rules(
    executable: str = "pwsh",
    timeout: float = DEFAULT_TIMEOUT,
) -> list[RuleDefinition]:
    """Adapter rules: strict for production files, errors only for tests."""
    resolved = shutil.which(executable)
    if resolved is None:
        raise ConfigurationError(
            f"'{executable}' not found on PATH; PSScriptAnalyzer needs PowerShell 7"
        )
    logger.debug("Using PSScriptAnalyzer via %s", resolved)

    # subprocess.TimeoutExpired surfaces as a rule error; the thread timeout is a backstop
    rule_timeout = timeout + 5
    return [
        RuleDefinition(
            id="ScriptAnalyzer",
            category=Category.STRUCTURAL,
            severity=Severity.MEDIUM,
            applies_to=AppliesTo.PRODUCTION,
            evaluate=_analyzer_matcher(
                build_command(resolved, severities=("Error", "Warning", "ParseError")),
                timeout,
            ),
            description="PSScriptAnalyzer default rules (errors and warnings)",
            remediation="See Get-ScriptAnalyzerRule for each rule's guidance.",
            timeout=rule_timeout,
        ),
        RuleDefinition(
            id="ScriptAnalyzerTests",
            category=Category.STRUCTURAL,
            severity=Severity.MEDIUM,
            applies_to=AppliesTo.TEST,
            evaluate=_analyzer_matcher(
                build_command(
                    resolved,
                    severities=("Error", "ParseError"),
                    exclude_rules=TEST_EXCLUDED_RULES,
                ),
                timeout,
            ),
            description="PSScriptAnalyzer errors in test code (relaxed)",
            remediation="See Get-ScriptAnalyzerRule for each rule's guidance.",
            timeout=rule_timeout,
        ),
    ]
