"""Regex tables for the built-in rules: verbs, secrets, loops."""

from __future__ import annotations

from dataclasses import dataclass

import regex

from psgate.scanner.models import Severity


@dataclass(frozen=True)
class Pattern:
    """A security detection pattern with compiled regex and metadata."""

    id: str
    regex: regex.Pattern
    severity: Severity
    description: str = ""
    remediation: str = ""


# Output of Get-Verb on PowerShell 7
APPROVED_VERBS: frozenset[str] = frozenset(
    {
        "Add", "Approve", "Assert", "Backup", "Block", "Build", "Checkpoint",
        "Clear", "Close", "Compare", "Complete", "Compress", "Confirm",
        "Connect", "Convert", "ConvertFrom", "ConvertTo", "Copy", "Debug",
        "Deny", "Deploy", "Disable", "Disconnect", "Dismount", "Edit",
        "Enable", "Enter", "Exit", "Expand", "Export", "Find", "Format",
        "Get", "Grant", "Group", "Hide", "Import", "Initialize", "Install",
        "Invoke", "Join", "Limit", "Lock", "Measure", "Merge", "Mount",
        "Move", "New", "Open", "Optimize", "Out", "Ping", "Pop", "Protect",
        "Publish", "Push", "Read", "Receive", "Redo", "Register", "Remove",
        "Rename", "Repair", "Request", "Reset", "Resize", "Resolve",
        "Restart", "Restore", "Resume", "Revoke", "Save", "Search", "Select",
        "Send", "Set", "Show", "Skip", "Split", "Start", "Step", "Stop",
        "Submit", "Suspend", "Switch", "Sync", "Test", "Trace", "Unblock",
        "Undo", "Uninstall", "Unlock", "Unprotect", "Unpublish",
        "Unregister", "Update", "Use", "Wait", "Watch", "Write",
    }
)

FUNCTION_DEFINITION = regex.compile(
    r"\bfunction\s+([A-Za-z]+)-([A-Za-z0-9]+)", regex.IGNORECASE
)
PARAM_BLOCK = regex.compile(r"\bparam\s*\(", regex.IGNORECASE)
VALIDATION_ATTRIBUTE = regex.compile(
    r"\[\s*Validate(?:NotNullOrEmpty|NotNull|Pattern|Set|Range|Script|Length|Count)\b",
    regex.IGNORECASE,
)

SECURITY_PATTERNS: list[Pattern] = [
    Pattern(
        id="AvoidHardcodedPassword",
        regex=regex.compile(
            r"""(?:password|passwd|pwd)\s*[:=]\s*["']\w{3,}["']""",
            regex.IGNORECASE,
        ),
        severity=Severity.CRITICAL,
        description="Hardcoded password literal",
        remediation="Accept a [PSCredential] parameter or read the secret from a vault.",
    ),
    Pattern(
        id="AvoidHardcodedApiKey",
        regex=regex.compile(
            r"""api[_.\-]?key\s*[:=]\s*["']\w{10,}["']""",
            regex.IGNORECASE,
        ),
        severity=Severity.CRITICAL,
        description="Hardcoded API key literal",
        remediation="Load API keys from SecretManagement or an environment variable.",
    ),
    Pattern(
        id="AvoidHardcodedSecret",
        regex=regex.compile(
            r"""(?:client[_\-]?secret|secret[_\-]?key|access[_\-]?token|auth[_\-]?token)"""
            r"""\s*[:=]\s*["'][\w\-+/=]{8,}["']""",
            regex.IGNORECASE,
        ),
        severity=Severity.CRITICAL,
        description="Hardcoded secret or token literal",
        remediation="Load secrets from SecretManagement or an environment variable.",
    ),
    Pattern(
        id="AvoidInvokeExpression",
        regex=regex.compile(r"\bInvoke-Expression\b|\biex\s", regex.IGNORECASE),
        severity=Severity.HIGH,
        description="Dynamic code execution via Invoke-Expression",
        remediation="Call commands directly or use the call operator (&) with an argument array.",
    ),
    Pattern(
        id="AvoidPlainTextSecureString",
        regex=regex.compile(
            r"""ConvertTo-SecureString\b[^\n]*-AsPlainText"""
            r"""|ConvertTo-SecureString\s+(?:-String\s+)?["']\w+["']""",
            regex.IGNORECASE,
        ),
        severity=Severity.HIGH,
        description="Plain text converted to SecureString",
        remediation="Use Get-Credential, Read-Host -AsSecureString or a secret vault.",
    ),
    Pattern(
        id="AvoidSqlStringConcatenation",
        regex=regex.compile(
            r"""\$\w+\s*\+\s*["'][^\n]*\bSELECT\b[^\n]*\bFROM\b"""
            r"""|["'][^"'\n]*\bSELECT\b[^"'\n]*\bFROM\b[^"'\n]*["']\s*\+\s*\$\w+""",
            regex.IGNORECASE,
        ),
        severity=Severity.HIGH,
        description="SQL query built by string concatenation",
        remediation="Use parameterized queries (SqlParameter / -Variable) instead of concatenation.",
    ),
    Pattern(
        id="AvoidPathTraversal",
        regex=regex.compile(r"\.\.[/\\]"),
        severity=Severity.MEDIUM,
        description="Relative parent path segment",
        remediation="Build paths from $PSScriptRoot with Join-Path and validate user input.",
    ),
]

# Statement that opens a loop body; the body starts at the next '{'
LOOP_START = regex.compile(
    r"^\s*(?:foreach|for|while|do)\b"
    r"|\|\s*(?:ForEach-Object|foreach|%)\s*(?:-Process\s*)?\{",
    regex.IGNORECASE,
)

# $x += <non-numeric>   or   $x = $x + ...
ACCUMULATION = regex.compile(
    r"\$(\w+)\s*\+=(?!\s*\d+\s*(?:;|#|$))"
    r"|\$(\w+)\s*=\s*\$(\w+)\s*\+",
    regex.IGNORECASE,
)
