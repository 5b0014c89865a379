"""Change summaries between two gate-result sets and two document revisions."""

from __future__ import annotations

import difflib
from collections import Counter
from dataclasses import dataclass, field
from typing import Literal, Mapping, Sequence, TypeAlias

from docgates.analysis.markdown import extract_headings, split_lines
from docgates.analysis.model import GATE_IDS, Violation
from docgates.json_types import JSONObject

ChangeKind: TypeAlias = Literal["add", "change", "remove"]


@dataclass(frozen=True)
class GateDelta:
    gate_id: str
    added: tuple[Violation, ...]
    removed: tuple[Violation, ...]

    def to_payload(self) -> JSONObject:
        return {
            "gateId": self.gate_id,
            "added": [violation.to_payload() for violation in self.added],
            "removed": [violation.to_payload() for violation in self.removed],
        }


@dataclass(frozen=True)
class GateDiff:
    per_gate: tuple[GateDelta, ...] = ()

    @property
    def total_added(self) -> int:
        return sum(len(delta.added) for delta in self.per_gate)

    @property
    def total_removed(self) -> int:
        return sum(len(delta.removed) for delta in self.per_gate)

    def for_gate(self, gate_id: str) -> GateDelta | None:
        return next((delta for delta in self.per_gate if delta.gate_id == gate_id), None)

    def to_payload(self) -> JSONObject:
        return {
            "totalAdded": self.total_added,
            "totalRemoved": self.total_removed,
            "perGate": [delta.to_payload() for delta in self.per_gate],
        }


def _ordered_gate_ids(*maps: Mapping[str, object]) -> list[str]:
    seen = [gate_id for gate_id in GATE_IDS if any(gate_id in item for item in maps)]
    extra = sorted({gate_id for item in maps for gate_id in item} - set(GATE_IDS))
    return seen + extra


def _unmatched(violations: Sequence[Violation], other: Counter[str]) -> tuple[Violation, ...]:
    """Violations left over once each key in ``other`` has cancelled one occurrence."""
    remaining = Counter(other)
    unmatched: list[Violation] = []
    for violation in violations:
        key = violation.key()
        if remaining[key] > 0:
            remaining[key] -= 1
        else:
            unmatched.append(violation)
    return tuple(unmatched)


def compute_gate_diff(
    previous: Mapping[str, Sequence[Violation]] | None,
    current: Mapping[str, Sequence[Violation]],
) -> GateDiff:
    """Violation-level diff keyed by :meth:`Violation.key`.

    Keys are compared as multisets, so a duplicated violation counts as added.
    Gates whose violations are unchanged are omitted.
    """
    before = previous or {}
    deltas: list[GateDelta] = []
    for gate_id in _ordered_gate_ids(before, current):
        old = list(before.get(gate_id, ()))
        new = list(current.get(gate_id, ()))
        added = _unmatched(new, Counter(violation.key() for violation in old))
        removed = _unmatched(old, Counter(violation.key() for violation in new))
        if added or removed:
            deltas.append(GateDelta(gate_id=gate_id, added=added, removed=removed))
    return GateDiff(per_gate=tuple(deltas))


@dataclass(frozen=True)
class DocumentChange:
    kind: ChangeKind
    path: str
    lines_added: int = 0
    lines_removed: int = 0
    headings_added: tuple[str, ...] = field(default_factory=tuple)
    headings_removed: tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> JSONObject:
        return {
            "type": self.kind,
            "path": self.path,
            "lines": {"added": self.lines_added, "removed": self.lines_removed},
            "headings": {
                "added": list(self.headings_added),
                "removed": list(self.headings_removed),
            },
        }


def _heading_keys(text: str) -> list[str]:
    if not text:
        return []
    return [f"{'#' * heading.level} {heading.text}" for heading in extract_headings(split_lines(text))]


def diff_document_revisions(
    path: str,
    previous: str | None,
    current: str | None,
) -> DocumentChange:
    before = previous or ""
    after = current or ""
    if not before and after:
        kind: ChangeKind = "add"
    elif before and not after:
        kind = "remove"
    else:
        kind = "change"
    old_lines = split_lines(before) if before else []
    new_lines = split_lines(after) if after else []
    added = 0
    removed = 0
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in {"replace", "delete"}:
            removed += i2 - i1
        if tag in {"replace", "insert"}:
            added += j2 - j1
    old_headings = Counter(_heading_keys(before))
    new_headings = Counter(_heading_keys(after))
    return DocumentChange(
        kind=kind,
        path=path,
        lines_added=added,
        lines_removed=removed,
        headings_added=tuple(sorted((new_headings - old_headings).elements())),
        headings_removed=tuple(sorted((old_headings - new_headings).elements())),
    )
