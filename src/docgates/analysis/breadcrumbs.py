"""The per-document metadata block.

    > Breadcrumbs
    > Layer: ARCH
    > Upstream: docs/PRD/PRD_CORE.mdc
    > Downstream: N/A

The block is the sentinel line plus the run of ``>`` lines that follows it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from docgates.analysis.markdown import iter_unfenced

SENTINEL = "> Breadcrumbs"
FIELDS: tuple[str, ...] = ("Layer", "Upstream", "Downstream")

_SENTINEL_RE = re.compile(r"^>\s*Breadcrumbs\s*$", re.IGNORECASE)
_FIELD_RE = re.compile(r"^>\s*(Layer|Upstream|Downstream)\s*:\s*(.*?)\s*$", re.IGNORECASE)
_SPLIT_RE = re.compile(r"[,、]")


@dataclass(frozen=True)
class BreadcrumbBlock:
    start: int
    end: int
    layer: str
    upstream: tuple[str, ...]
    downstream: tuple[str, ...]
    fields: frozenset[str]
    raw_upstream: str = ""
    raw_downstream: str = ""

    @property
    def complete(self) -> bool:
        return all(name in self.fields for name in FIELDS)

    @property
    def missing_fields(self) -> tuple[str, ...]:
        return tuple(name for name in FIELDS if name not in self.fields)

    @property
    def empty(self) -> bool:
        return not self.layer and not self.upstream and not self.downstream


def split_links(value: str) -> tuple[str, ...]:
    links: list[str] = []
    for token in _SPLIT_RE.split(value or ""):
        item = token.strip().replace("\\", "/")
        if not item or item.upper() == "N/A":
            continue
        if item not in links:
            links.append(item)
    return tuple(links)


def format_links(links: Iterable[str]) -> str:
    items = [item for item in links if item]
    return ", ".join(items) if items else "N/A"


def find_breadcrumbs(lines: list[str]) -> BreadcrumbBlock | None:
    for index, line in iter_unfenced(lines):
        if not _SENTINEL_RE.match(line.strip()):
            continue
        end = index + 1
        values: dict[str, str] = {}
        while end < len(lines) and lines[end].lstrip().startswith(">"):
            match = _FIELD_RE.match(lines[end].strip())
            if match:
                name = match.group(1).capitalize()
                values.setdefault(name, match.group(2))
            end += 1
        return BreadcrumbBlock(
            start=index,
            end=end,
            layer=values.get("Layer", "").strip(),
            upstream=split_links(values.get("Upstream", "")),
            downstream=split_links(values.get("Downstream", "")),
            fields=frozenset(values),
            raw_upstream=values.get("Upstream", ""),
            raw_downstream=values.get("Downstream", ""),
        )
    return None


def render_breadcrumbs(
    layer: str, upstream: Iterable[str], downstream: Iterable[str]
) -> list[str]:
    return [
        SENTINEL,
        f"> Layer: {layer}",
        f"> Upstream: {format_links(upstream)}",
        f"> Downstream: {format_links(downstream)}",
    ]
