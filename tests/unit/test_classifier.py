"""Tests for production/test/excluded file classification."""

from __future__ import annotations

import pytest

from psgate.scanner.classifier import classify, is_excluded, is_test_path
from psgate.scanner.models import Classification


@pytest.mark.parametrize(
    "path",
    [
        "Tests/Get-Thing.ps1",
        "src/UnitTests/Helpers.ps1",
        "module/test/Setup.ps1",
        "Get-Thing.Tests.ps1",
        "src/Get-Thing.tests.ps1",
        "src/Get-Thing.Test.ps1",
    ],
)
def test_test_paths(path):
    assert is_test_path(path)
    assert classify(path) == Classification.TEST


@pytest.mark.parametrize(
    "path",
    [
        "src/Get-Thing.ps1",
        "Module.psm1",
        # Only directory segments count, not the file name itself
        "src/Test-Connection.ps1",
    ],
)
def test_production_paths(path):
    assert classify(path) == Classification.PRODUCTION


def test_windows_separators():
    assert classify("src\\Tests\\Get-Thing.ps1") == Classification.TEST


class TestExcluded:
    def test_bare_pattern_matches_any_segment(self):
        assert is_excluded("node_modules/pkg/x.ps1", ["node_modules"])
        assert is_excluded("src/bin/Release/x.ps1", ["bin"])

    def test_glob_on_whole_path(self):
        assert is_excluded("build/out/x.ps1", ["build/*"])

    def test_not_excluded(self):
        assert not is_excluded("src/x.ps1", ["bin", "obj"])

    def test_exclusion_wins_over_test(self):
        assert classify("obj/Tests/x.ps1") == Classification.EXCLUDED

    def test_custom_suffixes(self):
        assert classify("src/x.Spec.ps1", test_suffixes=[".Spec.ps1"]) == Classification.TEST
        assert classify("src/x.Tests.ps1", test_suffixes=[".Spec.ps1"]) == Classification.PRODUCTION
