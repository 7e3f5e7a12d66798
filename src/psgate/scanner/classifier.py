"""File classification — production, test or excluded."""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from pathlib import PurePath, PurePosixPath

from psgate.scanner.models import Classification

DEFAULT_EXCLUDE_GLOBS: tuple[str, ...] = (
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "bin",
    "obj",
    ".vscode",
    ".idea",
)

DEFAULT_TEST_SUFFIXES: tuple[str, ...] = (".Tests.ps1", ".Test.ps1")


def _as_posix(path: str | PurePath) -> PurePosixPath:
    return PurePosixPath(str(path).replace("\\", "/"))


def is_excluded(path: str | PurePath, exclude_globs: Iterable[str]) -> bool:
    """True if ``path`` matches a glob or any segment equals a bare pattern."""
    posix = _as_posix(path)
    text = posix.as_posix()
    parts = posix.parts
    for pattern in exclude_globs:
        if fnmatch.fnmatch(text, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


def is_test_path(
    path: str | PurePath,
    test_suffixes: Iterable[str] = DEFAULT_TEST_SUFFIXES,
) -> bool:
    posix = _as_posix(path)
    if any("test" in part.lower() for part in posix.parts[:-1]):
        return True
    name = posix.name.lower()
    return any(name.endswith(suffix.lower()) for suffix in test_suffixes)


def classify(
    path: str | PurePath,
    exclude_globs: Iterable[str] = DEFAULT_EXCLUDE_GLOBS,
    test_suffixes: Iterable[str] = DEFAULT_TEST_SUFFIXES,
) -> Classification:
    """Classify a path relative to the scan root. First match wins."""
    if is_excluded(path, exclude_globs):
        return Classification.EXCLUDED
    if is_test_path(path, test_suffixes):
        return Classification.TEST
    return Classification.PRODUCTION
