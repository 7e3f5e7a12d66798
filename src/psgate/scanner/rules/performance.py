"""Performance-pattern rules — accumulation by re-assignment inside loops.

Loop bodies are found with a brace-depth heuristic: a loop keyword at the
start of a statement (or a ``| ForEach-Object {`` pipeline) marks the next
opening brace as a loop body. Comments are blanked before matching. This is
not a parser; strings containing braces can confuse it.
"""

from __future__ import annotations

from collections.abc import Iterator

from psgate.scanner.models import AppliesTo, Category, Severity
from psgate.scanner.patterns import ACCUMULATION, LOOP_START
from psgate.scanner.rules import RuleDefinition, RuleMatch

REMEDIATION = (
    "Assign the loop output directly ($result = foreach (...) { ... }) or use "
    "[System.Collections.Generic.List[object]] and .Add()"
)


def _blank_comments(line: str, in_block: bool) -> tuple[str, bool]:
    """Replace comment text with spaces, keeping column positions."""
    chars = list(line)
    i = 0
    while i < len(chars):
        if in_block:
            end = line.find("#>", i)
            stop = len(chars) if end == -1 else end + 2
            chars[i:stop] = " " * (stop - i)
            in_block = end == -1
            i = stop
        elif line.startswith("<#", i):
            end = line.find("#>", i + 2)
            stop = len(chars) if end == -1 else end + 2
            chars[i:stop] = " " * (stop - i)
            in_block = end == -1
            i = stop
        elif chars[i] == "#":
            chars[i:] = " " * (len(chars) - i)
            break
        else:
            i += 1
    return "".join(chars), in_block


def _accumulations(line: str) -> dict[int, str]:
    hits: dict[int, str] = {}
    for match in ACCUMULATION.finditer(line):
        if match.group(1):
            hits[match.start()] = match.group(1)
        elif match.group(2).lower() == match.group(3).lower():
            hits[match.start()] = match.group(2)
    return hits


def loop_accumulation(text: str, path: str) -> Iterator[RuleMatch]:
    depth = 0
    loop_depths: list[int] = []
    pending_from: int | None = None
    in_block = False

    for line_num, raw in enumerate(text.splitlines(), start=1):
        line, in_block = _blank_comments(raw, in_block)

        loop = LOOP_START.search(line)
        if loop:
            pending_from = loop.start()

        hits = _accumulations(line)
        for pos, ch in enumerate(line):
            if pos in hits and loop_depths:
                yield RuleMatch(
                    line=line_num,
                    column=pos + 1,
                    message=(
                        f"'${hits[pos]}' is re-assigned by appending to itself inside a "
                        f"loop; the collection is copied on every iteration. {REMEDIATION}"
                    ),
                )
            if ch == "{":
                depth += 1
                if pending_from is not None and pos >= pending_from:
                    loop_depths.append(depth)
                    pending_from = None
            elif ch == "}":
                if loop_depths and loop_depths[-1] == depth:
                    loop_depths.pop()
                depth = max(depth - 1, 0)

        # Loop header without a brace yet: the body opens on a later line
        if pending_from is not None:
            pending_from = 0


def performance_rules() -> list[RuleDefinition]:
    return [
        RuleDefinition(
            id="AvoidArrayAccumulationInLoop",
            category=Category.PERFORMANCE,
            severity=Severity.MEDIUM,
            applies_to=AppliesTo.BOTH,
            evaluate=loop_accumulation,
            description="Collections grown with += inside loops",
            remediation=REMEDIATION,
        ),
    ]
