"""Standards policy models — immutable configuration of the ruleset."""

from __future__ import annotations

from dataclasses import dataclass

from psgate.scanner.models import Severity
from psgate.scanner.patterns import Pattern


@dataclass(frozen=True)
class StandardsPolicy:
    """A complete standards policy definition.

    Empty ``extensions``, ``exclude`` and ``test_suffixes`` mean the scanner
    defaults apply.
    """

    name: str
    description: str = ""
    version: str = "1"
    approved_verbs: tuple[str, ...] = ()
    disabled_rules: tuple[str, ...] = ()
    severity_overrides: tuple[tuple[str, Severity], ...] = ()
    security_patterns: tuple[Pattern, ...] = ()
    extensions: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    test_suffixes: tuple[str, ...] = ()
    inherit: tuple[str, ...] = ()

    def severity_for(self, rule_id: str) -> Severity | None:
        for rid, severity in self.severity_overrides:
            if rid == rule_id:
                return severity
        return None
