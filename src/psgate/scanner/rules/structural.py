"""Structural and naming rules — approved verbs, parameter validation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from psgate.scanner.models import AppliesTo, Category, Severity
from psgate.scanner.patterns import (
    APPROVED_VERBS,
    FUNCTION_DEFINITION,
    PARAM_BLOCK,
    VALIDATION_ATTRIBUTE,
)
from psgate.scanner.rules import RuleDefinition, RuleMatch, line_and_column


def approved_verb_matcher(approved_verbs: Iterable[str]):
    """Build a matcher that flags ``function Verb-Noun`` with an unknown verb.

    Verb comparison is case-insensitive, as in PowerShell itself.
    """
    allowed = {v.lower() for v in approved_verbs}

    def _match(text: str, path: str) -> Iterator[RuleMatch]:
        for match in FUNCTION_DEFINITION.finditer(text):
            verb = match.group(1)
            if verb.lower() in allowed:
                continue
            line, column = line_and_column(text, match.start())
            yield RuleMatch(
                line=line,
                column=column,
                message=(
                    f"Function '{verb}-{match.group(2)}' uses non-approved verb "
                    f"'{verb}' (see Get-Verb)"
                ),
            )

    return _match


def missing_validation(text: str, path: str) -> Iterator[RuleMatch]:
    """Flag files whose functions take parameters without any Validate* attribute."""
    if not FUNCTION_DEFINITION.search(text):
        return
    param = PARAM_BLOCK.search(text)
    if param is None or VALIDATION_ATTRIBUTE.search(text):
        return
    line, column = line_and_column(text, param.start())
    yield RuleMatch(
        line=line,
        column=column,
        message="Parameters are declared without any [Validate*()] attribute",
    )


def structural_rules(extra_verbs: Iterable[str] = ()) -> list[RuleDefinition]:
    verbs = set(APPROVED_VERBS) | set(extra_verbs)
    return [
        RuleDefinition(
            id="UseApprovedVerbs",
            category=Category.STRUCTURAL,
            severity=Severity.CRITICAL,
            applies_to=AppliesTo.PRODUCTION,
            evaluate=approved_verb_matcher(verbs),
            description="Function names must start with an approved verb",
            remediation="Rename the function using a verb from Get-Verb.",
        ),
        RuleDefinition(
            id="ValidateFunctionParameters",
            category=Category.STRUCTURAL,
            severity=Severity.MEDIUM,
            applies_to=AppliesTo.PRODUCTION,
            evaluate=missing_validation,
            description="Function parameters should declare input validation",
            remediation="Add [ValidateNotNullOrEmpty()], [ValidateSet()] or similar attributes.",
        ),
    ]
