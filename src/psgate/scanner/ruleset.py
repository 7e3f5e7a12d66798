"""RuleSet — ordered rule collection and per-file rule evaluation."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from psgate.errors import ConfigurationError, RuleEvaluationError
from psgate.scanner.models import Category, Classification, Finding, Severity
from psgate.scanner.rules import RuleDefinition, RuleMatch, builtin_rules

if TYPE_CHECKING:
    from psgate.policy.models import StandardsPolicy

logger = logging.getLogger(__name__)


class RuleOutcome(NamedTuple):
    """Matches from one rule run, or the error that stopped it."""

    matches: tuple[RuleMatch, ...] = ()
    error: RuleEvaluationError | None = None


def relaxed_severity(category: Category, severity: Severity) -> Severity:
    """Severity mapping for test files.

    Critical security findings stay blocking; other security findings drop to
    Low and every other category becomes informational. Failed Pester tests
    are findings about the test file itself and keep their severity.
    """
    if category == Category.TESTS:
        return severity
    if category == Category.SECURITY:
        return severity if severity == Severity.CRITICAL else Severity.LOW
    return Severity.INFO


def _collect(
    rule: RuleDefinition, text: str, path: str, timeout: float | None = None
) -> RuleOutcome:
    kwargs = {} if timeout is None else {"timeout": timeout}
    try:
        return RuleOutcome(matches=tuple(rule.evaluate(text, path, **kwargs)))
    except TimeoutError as e:
        if timeout is not None:
            return _timed_out(rule, timeout)
        return RuleOutcome(error=RuleEvaluationError(rule.id, f"{type(e).__name__}: {e}"))
    except Exception as e:  # any matcher failure is reported, never raised
        return RuleOutcome(error=RuleEvaluationError(rule.id, f"{type(e).__name__}: {e}"))


def _timed_out(rule: RuleDefinition, timeout: float) -> RuleOutcome:
    return RuleOutcome(error=RuleEvaluationError(rule.id, f"timed out after {timeout:g}s"))


def run_rule(
    rule: RuleDefinition,
    text: str,
    path: str,
    timeout: float | None = None,
) -> RuleOutcome:
    """Run a single rule, bounded by ``timeout`` seconds when given.

    Bounded rules (regex patterns) enforce the limit inside the regex engine.
    Other matchers run in a daemon thread. A thread that is still running at
    the deadline is abandoned; one that finished late, because it held the
    GIL, is still reported as timed out.
    """
    if rule.timeout is not None:
        timeout = rule.timeout
    if not timeout:
        return _collect(rule, text, path)
    if rule.bounded:
        return _collect(rule, text, path, timeout=timeout)

    box: list[RuleOutcome] = []
    thread = threading.Thread(
        target=lambda: box.append(_collect(rule, text, path)),
        name=f"psgate-rule-{rule.id}",
        daemon=True,
    )
    started = time.monotonic()
    thread.start()
    thread.join(timeout)
    if thread.is_alive() or not box or time.monotonic() - started > timeout:
        return _timed_out(rule, timeout)
    return box[0]


@dataclass(frozen=True)
class RuleSet:
    """A named, versioned, ordered collection of rules."""

    name: str
    rules: tuple[RuleDefinition, ...] = ()
    version: str = "1"

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ConfigurationError(f"Duplicate rule id in ruleset '{self.name}': {rule.id}")
            seen.add(rule.id)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.rules]

    def get(self, rule_id: str) -> RuleDefinition | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def rules_for(self, classification: Classification) -> list[RuleDefinition]:
        return [r for r in self.rules if r.applies(classification)]

    def by_category(self, category: Category) -> list[RuleDefinition]:
        return [r for r in self.rules if r.category == category]

    def without(self, rule_ids: Iterable[str]) -> RuleSet:
        drop = set(rule_ids)
        return dataclasses.replace(
            self, rules=tuple(r for r in self.rules if r.id not in drop)
        )

    def with_severities(self, overrides: Mapping[str, Severity]) -> RuleSet:
        rules = tuple(
            dataclasses.replace(r, severity=overrides[r.id]) if r.id in overrides else r
            for r in self.rules
        )
        return dataclasses.replace(self, rules=rules)

    def extended(self, rules: Iterable[RuleDefinition]) -> RuleSet:
        return dataclasses.replace(self, rules=self.rules + tuple(rules))

    def evaluate(
        self,
        path: str,
        classification: Classification,
        text: str,
        timeout: float | None = None,
    ) -> list[Finding]:
        """Apply every applicable rule to one file's text.

        Rule failures become Medium ``Tooling`` findings tagged with the rule id.
        """
        findings: list[Finding] = []
        for rule in self.rules_for(classification):
            outcome = run_rule(rule, text, path, timeout)
            if outcome.error is not None:
                logger.warning("Rule %s errored on %s: %s", rule.id, path, outcome.error.reason)
                findings.append(
                    Finding(
                        rule_id=rule.id,
                        severity=Severity.MEDIUM,
                        file_path=path,
                        message=f"Rule errored: {outcome.error.reason}",
                        category=Category.TOOLING,
                    )
                )
                continue
            for match in outcome.matches:
                findings.append(_to_finding(rule, match, path, classification))
        findings.sort(key=lambda f: f.sort_key)
        return findings


def _to_finding(
    rule: RuleDefinition,
    match: RuleMatch,
    path: str,
    classification: Classification,
) -> Finding:
    severity = match.severity or rule.severity
    if classification == Classification.TEST:
        severity = relaxed_severity(rule.category, severity)
    return Finding(
        rule_id=match.rule_id or rule.id,
        severity=severity,
        file_path=path,
        message=match.message,
        line=match.line,
        column=match.column,
        category=rule.category,
    )


def default_ruleset() -> RuleSet:
    return RuleSet(name="default", rules=tuple(builtin_rules()))


def build_ruleset(
    policy: StandardsPolicy,
    extra_rules: Iterable[RuleDefinition] = (),
) -> RuleSet:
    """Build the effective ruleset for a standards policy."""
    rules = builtin_rules(
        approved_verbs=policy.approved_verbs,
        extra_patterns=policy.security_patterns,
    )
    ruleset = RuleSet(name=policy.name, rules=tuple(rules), version=policy.version)
    ruleset = ruleset.extended(extra_rules)

    unknown = [rid for rid, _ in policy.severity_overrides if ruleset.get(rid) is None]
    unknown += [rid for rid in policy.disabled_rules if ruleset.get(rid) is None]
    for rule_id in unknown:
        logger.warning("Policy '%s' references unknown rule %s", policy.name, rule_id)

    overrides: dict[str, Severity] = {}
    for rule in ruleset.rules:
        severity = policy.severity_for(rule.id)
        if severity is not None:
            overrides[rule.id] = severity
    ruleset = ruleset.with_severities(overrides)
    return ruleset.without(policy.disabled_rules)
