"""Adapters that map external tools (PSScriptAnalyzer, Pester) into rules."""

from psgate.adapters.coverage import coverage_rule
from psgate.adapters.pester import pester_results_rule
from psgate.adapters.script_analyzer import script_analyzer_rules

__all__ = ["coverage_rule", "pester_results_rule", "script_analyzer_rules"]
