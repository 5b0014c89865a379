"""Markdown primitives shared by the gates and the autofix engine.

Only ATX headings are recognised. Lines inside fenced code blocks (``` or
~~~) never count as headings, list items or metadata.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

import yaml

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
# "1." or a dotted multi-part number with an optional trailing dot.
_NUMBER_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)+\.?|\d+\.)\s+(?P<title>.*)$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(?P<text>.*)$")
_ANCHOR_LINK_RE = re.compile(r"\[(?P<text>[^\]]*)\]\((?P<target>#[^)\s]*)\)")
_QUOTES_RE = re.compile(r"[\"'`‘’“”]")

TOC_TITLES: frozenset[str] = frozenset({"目次", "table of contents", "contents"})
TOC_HEADING = "## 目次"


@dataclass(frozen=True)
class Heading:
    index: int
    level: int
    text: str
    number: tuple[int, ...] | None
    title: str

    @property
    def is_toc(self) -> bool:
        return is_toc_title(self.title)


def split_lines(text: str) -> list[str]:
    return text.replace("\r\n", "\n").split("\n")


def join_lines(lines: Iterable[str]) -> str:
    return "\n".join(lines)


def ensure_trailing_newline(text: str) -> str:
    return text.rstrip("\n") + "\n"


def iter_unfenced(lines: list[str], start: int = 0) -> Iterator[tuple[int, str]]:
    """Yield ``(index, line)`` for lines outside fenced code blocks."""
    fence: str | None = None
    for index in range(start, len(lines)):
        line = lines[index]
        match = _FENCE_RE.match(line)
        if match:
            marker = match.group(1)
            if fence is None:
                fence = marker
                continue
            if marker == fence:
                fence = None
                continue
        if fence is None:
            yield index, line


def split_number(text: str) -> tuple[tuple[int, ...] | None, str]:
    match = _NUMBER_RE.match(text.strip())
    if not match:
        return None, text.strip()
    parts = match.group("number").rstrip(".").split(".")
    return tuple(int(part) for part in parts), match.group("title").strip()


def format_number(number: Iterable[int]) -> str:
    return ".".join(str(part) for part in number) + "."


def parse_heading(index: int, line: str) -> Heading | None:
    match = _HEADING_RE.match(line.rstrip())
    if not match:
        return None
    text = match.group(2).strip()
    number, title = split_number(text)
    return Heading(
        index=index,
        level=len(match.group(1)),
        text=text,
        number=number,
        title=title,
    )


def body_start(lines: list[str]) -> int:
    """Index of the first line after a leading front matter block."""
    if not lines or lines[0].strip() != "---":
        return 0
    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            return idx + 1
    return 0


def extract_headings(lines: list[str]) -> list[Heading]:
    headings: list[Heading] = []
    for index, line in iter_unfenced(lines, body_start(lines)):
        heading = parse_heading(index, line)
        if heading is not None:
            headings.append(heading)
    return headings


def first_h1(lines: list[str]) -> Heading | None:
    for heading in extract_headings(lines):
        if heading.level == 1:
            return heading
    return None


def is_toc_title(title: str) -> bool:
    return title.strip().lower() in TOC_TITLES


def slugify_heading(value: str) -> str:
    lowered = value.strip().lower().replace("　", " ")
    lowered = _QUOTES_RE.sub("", lowered)
    kept = "".join(ch for ch in lowered if ch.isalnum() or ch.isspace() or ch == "-")
    slug = re.sub(r"\s+", "-", kept.strip())
    return re.sub(r"-+", "-", slug).strip("-")


def section_bounds(lines: list[str], heading: Heading) -> tuple[int, int]:
    """Return ``(start, end)`` covering the heading and its body.

    The body ends at the next heading of the same or a shallower level.
    """
    end = len(lines)
    for candidate in extract_headings(lines):
        if candidate.index <= heading.index:
            continue
        if candidate.level <= heading.level:
            end = candidate.index
            break
    return heading.index, end


def list_items(lines: list[str], start: int, end: int) -> list[str]:
    items: list[str] = []
    for index, line in iter_unfenced(lines[:end], start):
        match = _LIST_ITEM_RE.match(line)
        if match:
            items.append(match.group("text").strip())
    return items


def anchor_links(lines: list[str], start: int, end: int) -> list[tuple[str, str]]:
    links: list[tuple[str, str]] = []
    for _, line in iter_unfenced(lines[:end], start):
        for match in _ANCHOR_LINK_RE.finditer(line):
            links.append((match.group("text"), match.group("target")))
    return links


@dataclass(frozen=True)
class FrontMatter:
    data: dict[str, object]
    end: int
    error: str | None = None


def parse_front_matter(lines: list[str]) -> FrontMatter | None:
    """Parse a leading ``---`` YAML block; ``end`` is the first body line."""
    if not lines or lines[0].strip() != "---":
        return None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            block = "\n".join(lines[1:idx])
            try:
                loaded = yaml.safe_load(block) if block.strip() else {}
            except yaml.YAMLError as exc:
                return FrontMatter(data={}, end=idx + 1, error=str(exc).splitlines()[0])
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                return FrontMatter(data={}, end=idx + 1, error="front matter is not a mapping")
            return FrontMatter(data={str(key): value for key, value in loaded.items()}, end=idx + 1)
    return None


def find_toc(headings: list[Heading]) -> Heading | None:
    for heading in headings:
        if heading.level >= 2 and heading.is_toc:
            return heading
    return None


class HeadingCounter:
    """Hierarchical section numbers for headings at levels 2 and deeper.

    Missing parent levels count as 1; a shallower heading resets deeper
    counters.
    """

    def __init__(self) -> None:
        self.counters: list[int] = []

    def advance(self, level: int) -> tuple[int, ...]:
        depth = max(level - 2, 0)
        while len(self.counters) < depth:
            self.counters.append(1)
        if len(self.counters) == depth:
            self.counters.append(0)
        del self.counters[depth + 1:]
        self.counters[depth] += 1
        return tuple(self.counters)

    def resync(self, number: tuple[int, ...]) -> None:
        self.counters = list(number)


def toc_bounds(lines: list[str], toc: Heading) -> tuple[int, int]:
    """The TOC heading plus the list that follows it, without trailing blanks."""
    end = toc.index + 1
    while end < len(lines):
        line = lines[end]
        if line.strip() and not _LIST_ITEM_RE.match(line):
            break
        end += 1
    while end > toc.index + 1 and not lines[end - 1].strip():
        end -= 1
    return toc.index, end
