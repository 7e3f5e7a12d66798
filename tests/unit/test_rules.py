"""Tests for the built-in structural, security and performance rules."""

from __future__ import annotations

from psgate.scanner.patterns import APPROVED_VERBS, SECURITY_PATTERNS
from psgate.scanner.rules import builtin_rules, line_and_column
from psgate.scanner.rules.performance import loop_accumulation
from psgate.scanner.rules.security import pattern_matcher, security_rules
from psgate.scanner.rules.structural import approved_verb_matcher, missing_validation


def _matches(matcher, text: str):
    return list(matcher(text, "x.ps1"))


def test_line_and_column():
    text = "a\nbc\ndef"
    assert line_and_column(text, 0) == (1, 1)
    assert line_and_column(text, 3) == (2, 2)
    assert line_and_column(text, 5) == (3, 1)


def test_builtin_rule_ids_are_unique_and_stable():
    ids = [r.id for r in builtin_rules()]
    assert len(ids) == len(set(ids))
    assert ids[:2] == ["UseApprovedVerbs", "ValidateFunctionParameters"]
    assert ids[-1] == "AvoidArrayAccumulationInLoop"


class TestApprovedVerbs:
    def test_unapproved_verb(self):
        matches = _matches(approved_verb_matcher(APPROVED_VERBS), "function Process-Thing {}")
        assert len(matches) == 1
        assert matches[0].line == 1
        assert "Process-Thing" in matches[0].message
        assert "'Process'" in matches[0].message

    def test_approved_verb_case_insensitive(self):
        assert _matches(approved_verb_matcher(APPROVED_VERBS), "FUNCTION get-thing {}") == []

    def test_one_match_per_definition(self):
        text = "function Fetch-A {}\n\nfunction Grab-B {}\nfunction Get-C {}\n"
        matches = _matches(approved_verb_matcher(APPROVED_VERBS), text)
        assert [m.line for m in matches] == [1, 3]

    def test_extra_verbs(self):
        matcher = approved_verb_matcher(set(APPROVED_VERBS) | {"Ensure"})
        assert _matches(matcher, "function Ensure-Folder {}") == []

    def test_non_verb_noun_functions_ignored(self):
        assert _matches(approved_verb_matcher(APPROVED_VERBS), "function helper { }") == []


class TestParameterValidation:
    def test_missing_validation(self):
        text = "function Get-Thing {\n    param([string]$Name)\n}\n"
        matches = _matches(missing_validation, text)
        assert len(matches) == 1
        assert matches[0].line == 2

    def test_validation_present(self):
        text = (
            "function Get-Thing {\n"
            "    param([ValidateNotNullOrEmpty()][string]$Name)\n"
            "}\n"
        )
        assert _matches(missing_validation, text) == []

    def test_no_param_block(self):
        assert _matches(missing_validation, "function Get-Thing { 'x' }") == []


class TestSecurityPatterns:
    @staticmethod
    def _rule(rule_id):
        return next(r for r in security_rules() if r.id == rule_id)

    def test_hardcoded_password(self):
        rule = self._rule("AvoidHardcodedPassword")
        matches = list(rule.evaluate('$password = "abc123"', "x.ps1"))
        assert len(matches) == 1
        assert matches[0].line == 1
        assert "Hardcoded password" in matches[0].message

    def test_reported_once_per_file(self):
        rule = self._rule("AvoidHardcodedPassword")
        text = '$password = "abc123"\n$pwd = "secret"\n$passwd: "other1"\n'
        matches = list(rule.evaluate(text, "x.ps1"))
        assert len(matches) == 1
        assert matches[0].line == 1

    def test_password_from_variable_not_flagged(self):
        rule = self._rule("AvoidHardcodedPassword")
        assert list(rule.evaluate("$password = $cred.Password", "x.ps1")) == []

    def test_invoke_expression(self):
        rule = self._rule("AvoidInvokeExpression")
        matches = list(rule.evaluate("\n  Invoke-Expression $cmd", "x.ps1"))
        assert matches[0].line == 2
        assert matches[0].column == 3

    def test_plain_text_secure_string(self):
        rule = self._rule("AvoidPlainTextSecureString")
        text = '$s = ConvertTo-SecureString "P@ss" -AsPlainText -Force'
        assert len(list(rule.evaluate(text, "x.ps1"))) == 1

    def test_sql_concatenation(self):
        rule = self._rule("AvoidSqlStringConcatenation")
        text = '$q = "SELECT * FROM Users WHERE Id = " + $id'
        assert len(list(rule.evaluate(text, "x.ps1"))) == 1

    def test_remediation_in_message(self):
        rule = self._rule("AvoidPathTraversal")
        matches = list(rule.evaluate("Get-Content ..\\secrets.txt", "x.ps1"))
        assert "Join-Path" in matches[0].message

    def test_pattern_matcher_no_match(self):
        pattern = next(p for p in SECURITY_PATTERNS if p.id == "AvoidHardcodedApiKey")
        assert list(pattern_matcher(pattern)("Get-Item -Path ./x", "x.ps1")) == []


class TestLoopAccumulation:
    def test_accumulation_in_foreach(self):
        text = (
            "$out = @()\n"
            "foreach ($i in $items) {\n"
            "    $out += $i\n"
            "}\n"
        )
        matches = _matches(loop_accumulation, text)
        assert len(matches) == 1
        assert matches[0].line == 3
        assert matches[0].column == 5
        assert "$out" in matches[0].message

    def test_self_concatenation(self):
        text = "while ($true) {\n    $s = $s + 'x'\n}\n"
        assert len(_matches(loop_accumulation, text)) == 1

    def test_pipeline_foreach_object(self):
        text = "$items | ForEach-Object {\n    $all += $_\n}\n"
        assert len(_matches(loop_accumulation, text)) == 1

    def test_brace_on_next_line(self):
        text = "for ($i = 0; $i -lt 3; $i++)\n{\n    $list += $i\n}\n"
        assert len(_matches(loop_accumulation, text)) == 1

    def test_numeric_counter_not_flagged(self):
        text = "foreach ($i in $items) {\n    $count += 1\n    $total += 10 # running\n}\n"
        assert _matches(loop_accumulation, text) == []

    def test_outside_loop_not_flagged(self):
        text = "$out = @()\n$out += 'a'\nif ($x) {\n    $out += 'b'\n}\n"
        assert _matches(loop_accumulation, text) == []

    def test_after_loop_closes_not_flagged(self):
        text = "foreach ($i in $items) {\n    Write-Output $i\n}\n$out += 'done'\n"
        assert _matches(loop_accumulation, text) == []

    def test_commented_out_code_ignored(self):
        text = (
            "foreach ($i in $items) {\n"
            "    # $out += $i\n"
            "    <# $out += $i #>\n"
            "}\n"
        )
        assert _matches(loop_accumulation, text) == []

    def test_block_comment_spanning_lines(self):
        text = (
            "<#\n"
            "foreach ($i in $items) {\n"
            "    $out += $i\n"
            "#>\n"
            "$out = 1\n"
        )
        assert _matches(loop_accumulation, text) == []

    def test_do_while_tail_does_not_open_loop(self):
        text = (
            "do {\n"
            "    $n++\n"
            "} while ($n -lt 3)\n"
            "if ($x) {\n"
            "    $out += 'a'\n"
            "}\n"
        )
        assert _matches(loop_accumulation, text) == []
