"""Tests for policy YAML loading and inheritance."""

from pathlib import Path

import pytest

from psgate.errors import ConfigurationError
from psgate.policy.loader import (
    list_presets,
    load_policy,
    load_policy_from_string,
    load_preset,
)
from psgate.scanner.models import Severity
from psgate.scanner.ruleset import build_ruleset


def test_list_presets():
    assert list_presets() == ["default", "strict"]


def test_load_default_preset():
    policy = load_preset("default")
    assert policy.name == "default"
    assert policy.extensions == (".ps1", ".psm1", ".psd1")
    assert "node_modules" in policy.exclude
    assert policy.test_suffixes == (".Tests.ps1", ".Test.ps1")


def test_strict_inherits_default():
    policy = load_preset("strict")
    assert policy.name == "strict"
    # Scan settings come from the parent
    assert policy.extensions == (".ps1", ".psm1", ".psd1")
    assert policy.severity_for("AvoidPathTraversal") == Severity.HIGH
    assert [p.id for p in policy.security_patterns] == [
        "AvoidHardcodedConnectionString",
        "AvoidDisabledCertificateValidation",
    ]


def test_unknown_preset():
    with pytest.raises(ConfigurationError, match="Unknown policy preset"):
        load_preset("nope")


def test_load_policy_file_with_inheritance(team_policy_path: Path):
    policy = load_policy(team_policy_path)
    assert policy.name == "team"
    assert "Ensure" in policy.approved_verbs
    assert policy.disabled_rules == ("AvoidPathTraversal",)
    # Own override wins over the strict preset
    assert policy.severity_for("AvoidArrayAccumulationInLoop") == Severity.LOW
    assert policy.severity_for("ValidateFunctionParameters") == Severity.HIGH
    ids = [p.id for p in policy.security_patterns]
    assert ids[0] == "AvoidWriteHost"
    assert "AvoidHardcodedConnectionString" in ids


def test_team_policy_ruleset(team_policy_path: Path):
    ruleset = build_ruleset(load_policy(team_policy_path))
    assert ruleset.name == "team"
    assert ruleset.get("AvoidPathTraversal") is None
    assert ruleset.get("AvoidWriteHost").severity == Severity.LOW
    assert ruleset.get("ValidateFunctionParameters").severity == Severity.HIGH
    matches = list(ruleset.get("UseApprovedVerbs").evaluate("function Ensure-Dir {}", "a.ps1"))
    assert matches == []


def test_load_policy_from_string():
    policy = load_policy_from_string(
        """
name: inline
extensions: [ps1, .PSM1]
security_patterns:
  - id: AvoidCurl
    regex: '\\bcurl\\b'
"""
    )
    assert policy.extensions == (".ps1", ".psm1")
    pattern = policy.security_patterns[0]
    assert pattern.severity == Severity.HIGH
    assert pattern.regex.search("CURL http://x")


def test_case_sensitive_pattern():
    policy = load_policy_from_string(
        """
name: cs
security_patterns:
  - id: ExactCase
    regex: 'Secret'
    case_sensitive: true
"""
    )
    assert policy.security_patterns[0].regex.search("secret") is None


def test_empty_document():
    policy = load_policy_from_string("")
    assert policy.name == "unnamed"


def test_circular_inheritance(tmp_path: Path):
    a = tmp_path / "a.yaml"
    b = tmp_path / "b.yaml"
    a.write_text(f"name: a\ninherit: [{b}]\n")
    b.write_text(f"name: b\ninherit: [{a}]\n")
    with pytest.raises(ConfigurationError, match="Circular"):
        load_policy(a)


def test_shared_parent_is_not_circular():
    policy = load_policy_from_string(
        "name: team\ninherit:\n  - preset:strict\n  - preset:default\n"
    )
    assert policy.name == "team"
    assert ("ValidateFunctionParameters", Severity.HIGH) in policy.severity_overrides


def test_unnamed_policies_can_inherit(tmp_path: Path):
    base = tmp_path / "base.yaml"
    child = tmp_path / "child.yaml"
    base.write_text("disabled_rules: [AvoidPathTraversal]\n")
    child.write_text(f"inherit: [{base}]\napproved_verbs: [Ensure]\n")
    policy = load_policy(child)
    assert policy.name == "unnamed"
    assert policy.disabled_rules == ("AvoidPathTraversal",)
    assert policy.approved_verbs == ("Ensure",)


def test_self_inheritance_is_circular(tmp_path: Path):
    a = tmp_path / "a.yaml"
    a.write_text(f"name: a\ninherit: [{a}]\n")
    with pytest.raises(ConfigurationError, match="Circular"):
        load_policy(a)


@pytest.mark.parametrize(
    "text, message",
    [
        ("name: [unclosed", "invalid YAML"),
        ("- just\n- a list\n", "must be a mapping"),
        ("name: x\nseverity_overrides:\n  UseApprovedVerbs: Severe\n", "Unknown severity"),
        ("name: x\nseverity_overrides: [a]\n", "must be a mapping"),
        ("name: x\nsecurity_patterns:\n  - id: Bad\n    regex: '('\n", "bad regex"),
        ("name: x\nsecurity_patterns:\n  - regex: 'x'\n", "'id' and 'regex' are required"),
        ("name: x\ndisabled_rules: {a: 1}\n", "must be a list"),
    ],
)
def test_invalid_policies(text, message):
    with pytest.raises(ConfigurationError, match=message):
        load_policy_from_string(text)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="Cannot read policy"):
        load_policy(tmp_path / "missing.yaml")


def test_duplicate_pattern_id_rejected_when_building():
    policy = load_policy_from_string(
        """
name: dup
security_patterns:
  - id: AvoidInvokeExpression
    regex: 'iex'
"""
    )
    with pytest.raises(ConfigurationError, match="Duplicate rule id"):
        build_ruleset(policy)
