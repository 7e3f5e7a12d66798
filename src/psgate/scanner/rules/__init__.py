"""Rule definitions and the built-in rule catalogue."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import NamedTuple

from psgate.scanner.models import AppliesTo, Category, Severity


class RuleMatch(NamedTuple):
    """One raw match produced by a rule's matcher.

    ``severity`` and ``rule_id`` let adapter rules report the severity and
    identifier of a third-party diagnostic instead of the rule's own.
    """

    line: int | None
    message: str
    column: int | None = None
    severity: Severity | None = None
    rule_id: str | None = None


Matcher = Callable[[str, str], Iterable[RuleMatch]]


@dataclass(frozen=True)
class RuleDefinition:
    """Declarative rule metadata plus its matcher.

    The matcher receives ``(text, path)`` and must be deterministic: the same
    text always yields the same matches.
    """

    id: str
    category: Category
    severity: Severity
    applies_to: AppliesTo
    evaluate: Matcher
    description: str = ""
    remediation: str = ""
    timeout: float | None = None  # overrides the scan-wide rule timeout
    # matcher takes a ``timeout`` keyword and enforces it itself
    bounded: bool = False

    def applies(self, classification) -> bool:
        return self.applies_to.covers(classification)


def line_and_column(text: str, offset: int) -> tuple[int, int]:
    """1-based line and column for a character offset in ``text``."""
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def builtin_rules(
    approved_verbs: Iterable[str] = (),
    extra_patterns: Iterable = (),
) -> list[RuleDefinition]:
    """Return the default rule catalogue in a stable order."""
    from psgate.scanner.rules.performance import performance_rules
    from psgate.scanner.rules.security import security_rules
    from psgate.scanner.rules.structural import structural_rules

    return [
        *structural_rules(approved_verbs),
        *security_rules(extra_patterns),
        *performance_rules(),
    ]


__all__ = [
    "Matcher",
    "RuleDefinition",
    "RuleMatch",
    "builtin_rules",
    "line_and_column",
]
