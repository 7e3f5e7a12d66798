"""Security-pattern rules — one finding per pattern per file."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from psgate.scanner.models import AppliesTo, Category
from psgate.scanner.patterns import SECURITY_PATTERNS, Pattern
from psgate.scanner.rules import RuleDefinition, RuleMatch, line_and_column


def pattern_matcher(pattern: Pattern):
    """Report the first occurrence only, to keep duplicate reports down.

    ``timeout`` bounds the search itself; the regex engine raises
    ``TimeoutError`` once it is exceeded.
    """

    def _match(text: str, path: str, timeout: float | None = None) -> Iterator[RuleMatch]:
        match = pattern.regex.search(text, timeout=timeout)
        if match is None:
            return
        line, column = line_and_column(text, match.start())
        message = pattern.description or pattern.id
        if pattern.remediation:
            message = f"{message}. {pattern.remediation}"
        yield RuleMatch(line=line, column=column, message=message)

    return _match


def pattern_rule(pattern: Pattern) -> RuleDefinition:
    return RuleDefinition(
        id=pattern.id,
        category=Category.SECURITY,
        severity=pattern.severity,
        applies_to=AppliesTo.BOTH,
        evaluate=pattern_matcher(pattern),
        description=pattern.description,
        remediation=pattern.remediation,
        bounded=True,
    )


def security_rules(extra_patterns: Iterable[Pattern] = ()) -> list[RuleDefinition]:
    return [pattern_rule(p) for p in (*SECURITY_PATTERNS, *extra_patterns)]
