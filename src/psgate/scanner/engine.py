"""Scan engine — orchestrates compliance analysis across files."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from psgate.errors import ConfigurationError, FileAccessError
from psgate.scanner.aggregate import aggregate
from psgate.scanner.classifier import (
    DEFAULT_EXCLUDE_GLOBS,
    DEFAULT_TEST_SUFFIXES,
    classify,
    is_excluded,
)
from psgate.scanner.models import (
    Category,
    Classification,
    FileRecord,
    Finding,
    ScanReport,
    Severity,
)
from psgate.scanner.ruleset import RuleSet

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".ps1", ".psm1", ".psd1")
DEFAULT_RULE_TIMEOUT = 5.0


@dataclass
class ScanContext:
    """Everything a scan needs; passed explicitly instead of held globally."""

    ruleset: RuleSet
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    test_suffixes: tuple[str, ...] = DEFAULT_TEST_SUFFIXES
    exclude_tests: bool = False
    rule_timeout: float | None = DEFAULT_RULE_TIMEOUT
    workers: int = 1
    on_start: Callable[[int], None] | None = None
    on_file: Callable[[FileRecord], None] | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)


@dataclass(frozen=True)
class _Candidate:
    path: Path
    relative: str
    classification: Classification


def _read_source(path: Path) -> tuple[str, int]:
    """Read a source file as UTF-8 (BOM tolerated) and return text and size."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileAccessError(str(path), e.strerror or str(e)) from e
    return data.decode("utf-8-sig", errors="replace"), len(data)


def _unreadable(relative: str, reason: str, kind: str = "File") -> FileRecord:
    return FileRecord(
        path=relative,
        size_bytes=0,
        classification=Classification.EXCLUDED,
        findings=(
            Finding(
                rule_id=f"{kind}Unreadable",
                severity=Severity.CRITICAL,
                file_path=relative,
                message=f"{kind} unreadable: {reason}",
                category=Category.TOOLING,
            ),
        ),
    )


class ScanEngine:
    """Walks a directory, classifies files and applies the ruleset."""

    def __init__(self, context: ScanContext) -> None:
        self._ctx = context
        self._extensions = {e.lower() for e in context.extensions}
        self.files_skipped = 0
        # Directories os.walk could not list, as errored records
        self.walk_errors: list[FileRecord] = []

    @property
    def context(self) -> ScanContext:
        return self._ctx

    def scan(self, directory: str | Path) -> list[FileRecord]:
        """Scan a directory tree and return records sorted by path.

        When cancelled, the records completed so far are returned.
        """
        root = Path(directory)
        if not root.is_dir():
            raise ConfigurationError(f"Scan root is not a directory: {directory}")
        root = root.resolve()

        self.files_skipped = 0
        self.walk_errors = []
        candidates = list(self.discover(root))
        if self._ctx.on_start:
            self._ctx.on_start(len(candidates))

        if self._ctx.workers > 1:
            records = self._scan_parallel(candidates)
        else:
            records = self._scan_sequential(candidates)

        records.extend(self.walk_errors)
        records.sort(key=lambda r: r.path)
        return records

    def scan_report(self, directory: str | Path) -> ScanReport:
        start = time.time()
        records = self.scan(directory)
        return aggregate(
            records,
            excluded=self.files_skipped,
            ruleset=self._ctx.ruleset.name,
            root=str(Path(directory).resolve()),
            duration=time.time() - start,
        )

    def discover(self, root: Path) -> Iterator[_Candidate]:
        """Yield scannable files in a stable order."""
        def _on_error(error: OSError) -> None:
            self._walk_error(root, error)

        for current, dirs, files in os.walk(root, onerror=_on_error):
            base = Path(current)
            rel_dir = base.relative_to(root)
            # Prune excluded directories in-place
            dirs[:] = sorted(
                d
                for d in dirs
                if not is_excluded((rel_dir / d).as_posix(), self._ctx.exclude_globs)
            )
            for name in sorted(files):
                path = base / name
                if path.suffix.lower() not in self._extensions:
                    continue
                relative = (rel_dir / name).as_posix()
                classification = classify(
                    relative, self._ctx.exclude_globs, self._ctx.test_suffixes
                )
                if classification == Classification.EXCLUDED:
                    logger.debug("Excluded %s", relative)
                    self.files_skipped += 1
                    continue
                if classification == Classification.TEST and self._ctx.exclude_tests:
                    logger.debug("Skipping test file %s", relative)
                    self.files_skipped += 1
                    continue
                yield _Candidate(path, relative, classification)

    def _walk_error(self, root: Path, error: OSError) -> None:
        relative = Path(error.filename).relative_to(root).as_posix() if error.filename else "."
        reason = error.strerror or str(error)
        logger.warning("Cannot list directory %s: %s", relative, reason)
        self.walk_errors.append(_unreadable(relative, reason, kind="Directory"))

    def scan_file(self, candidate: _Candidate) -> FileRecord:
        try:
            text, size = _read_source(candidate.path)
        except FileAccessError as e:
            logger.warning("Cannot read %s: %s", candidate.relative, e.reason)
            return _unreadable(candidate.relative, e.reason)

        findings = self._ctx.ruleset.evaluate(
            candidate.relative,
            candidate.classification,
            text,
            timeout=self._ctx.rule_timeout,
        )
        return FileRecord(
            path=candidate.relative,
            size_bytes=size,
            classification=candidate.classification,
            findings=tuple(findings),
        )

    def _scan_sequential(self, candidates: list[_Candidate]) -> list[FileRecord]:
        records: list[FileRecord] = []
        for candidate in candidates:
            if self._ctx.cancel_event.is_set():
                logger.info("Scan cancelled after %d files", len(records))
                break
            record = self.scan_file(candidate)
            records.append(record)
            self._notify(record)
        return records

    def _scan_parallel(self, candidates: list[_Candidate]) -> list[FileRecord]:
        records: list[FileRecord] = []
        with ThreadPoolExecutor(
            max_workers=self._ctx.workers, thread_name_prefix="psgate-scan"
        ) as pool:
            futures = [pool.submit(self._scan_if_active, c) for c in candidates]
            for future in as_completed(futures):
                record = future.result()
                if record is not None:
                    records.append(record)
                    # Callbacks run on the calling thread only
                    self._notify(record)
                if self._ctx.cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    logger.info("Scan cancelled after %d files", len(records))
                    break
        return records

    def _scan_if_active(self, candidate: _Candidate) -> FileRecord | None:
        if self._ctx.cancel_event.is_set():
            return None
        return self.scan_file(candidate)

    def _notify(self, record: FileRecord) -> None:
        if self._ctx.on_file:
            self._ctx.on_file(record)


def scan(directory: str | Path, context: ScanContext) -> list[FileRecord]:
    """Scan ``directory`` with ``context`` and return sorted file records."""
    return ScanEngine(context).scan(directory)
