"""Exception hierarchy shared across the scanner, loader and reporters."""

from __future__ import annotations


class PsGateError(Exception):
    """Base class for all psgate errors."""


class ConfigurationError(PsGateError):
    """Invalid options, unreadable scan root or malformed policy file.

    Fatal: the scan never starts.
    """


class FileAccessError(PsGateError):
    """A single source file could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class RuleEvaluationError(PsGateError):
    """A rule's matcher raised or exceeded its time limit."""

    def __init__(self, rule_id: str, reason: str) -> None:
        super().__init__(f"rule {rule_id} failed: {reason}")
        self.rule_id = rule_id
        self.reason = reason


class ReportRenderError(PsGateError):
    """A report could not be serialized or written.

    The scan already completed; callers keep the in-memory report.
    """
