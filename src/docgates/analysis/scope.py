"""Detection of the in-scope / out-of-scope sections."""

from __future__ import annotations

import re
from dataclasses import dataclass

from docgates.analysis.markdown import extract_headings, list_items, section_bounds

_IN_SCOPE_RE = re.compile(r"^(?:\d+(?:\.\d+)*\.?\s*)?(扱う内容|in\s*scope)\b", re.IGNORECASE)
_OUT_SCOPE_RE = re.compile(
    r"^(?:\d+(?:\.\d+)*\.?\s*)?(扱わない内容|out\s*of\s*scope|非スコープ)\b", re.IGNORECASE
)
_SCOPE_RE = re.compile(r"^(?:\d+(?:\.\d+)*\.?\s*)?(scope|スコープ)\s*$", re.IGNORECASE)
_INCLUDE_KEYWORDS_RE = re.compile(r"含まれる|in\s*scope|対象", re.IGNORECASE)
_EXCLUDE_KEYWORDS_RE = re.compile(r"含まれない|out\s*of\s*scope|除外|非対象", re.IGNORECASE)

IN_SCOPE_TITLE = "In Scope"
OUT_OF_SCOPE_TITLE = "Out of Scope"


@dataclass(frozen=True)
class ScopeSection:
    heading_index: int
    end: int
    items: tuple[str, ...]

    @property
    def has_items(self) -> bool:
        return any(item.strip() for item in self.items)


@dataclass(frozen=True)
class ScopeReport:
    in_scope: ScopeSection | None
    out_of_scope: ScopeSection | None
    combined: bool = False

    @property
    def satisfied(self) -> bool:
        if self.combined:
            return True
        return bool(
            self.in_scope
            and self.in_scope.has_items
            and self.out_of_scope
            and self.out_of_scope.has_items
        )


def scope_report(lines: list[str]) -> ScopeReport:
    in_scope: ScopeSection | None = None
    out_scope: ScopeSection | None = None
    combined = False
    for heading in extract_headings(lines):
        if heading.level < 2:
            continue
        title = heading.text.strip()
        start, end = section_bounds(lines, heading)
        items = tuple(item for item in list_items(lines, start + 1, end) if item)
        section = ScopeSection(heading_index=start, end=end, items=items)
        if _OUT_SCOPE_RE.match(title):
            out_scope = out_scope or section
        elif _IN_SCOPE_RE.match(title):
            in_scope = in_scope or section
        elif _SCOPE_RE.match(title):
            text = "\n".join(items)
            if _INCLUDE_KEYWORDS_RE.search(text) and _EXCLUDE_KEYWORDS_RE.search(text):
                combined = True
    return ScopeReport(in_scope=in_scope, out_of_scope=out_scope, combined=combined)
