from __future__ import annotations

import re
from pathlib import Path

from docgates.analysis.model import ContextEntry
from docgates.exceptions import ContextNotFoundError, ContextReadError, EmptyContextMapError
from docgates.paths import PROJECT_PATHS, ProjectPathConfig, resolve_user_path

_SECTION_RE = re.compile(r"^##\s+Context Map\s*$", re.IGNORECASE)
_CATEGORY_RE = re.compile(r"^###\s+(.+?)\s*$")
# The separator is U+2026 HORIZONTAL ELLIPSIS, never a hyphen or colon.
_BULLET_RE = re.compile(r"^[-*]\s+(\S.*?)\s+…\s+(.*)$")


def normalize_doc_path(value: str) -> str:
    cleaned = value.strip().strip("`").strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned


def parse_context_map(text: str) -> list[ContextEntry]:
    entries: list[ContextEntry] = []
    in_section = False
    category: str | None = None
    for raw in text.replace("\r\n", "\n").split("\n"):
        line = raw.strip()
        if not in_section:
            in_section = bool(_SECTION_RE.match(line))
            continue
        if line.startswith("## "):
            break
        heading = _CATEGORY_RE.match(line)
        if heading:
            category = heading.group(1)
            continue
        if category is None:
            continue
        bullet = _BULLET_RE.match(line)
        if not bullet:
            continue
        path = normalize_doc_path(bullet.group(1))
        if not path:
            continue
        entries.append(
            ContextEntry(category=category, path=path, description=bullet.group(2).strip())
        )
    return entries


def resolve_context_path(
    root: Path,
    override: str | Path | None = None,
    *,
    paths: ProjectPathConfig = PROJECT_PATHS,
) -> Path:
    if override is not None:
        candidate = resolve_user_path(override, root=root)
        if not candidate.is_file():
            raise ContextNotFoundError([candidate])
        return candidate
    candidates = paths.context_candidate_paths(root=root)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ContextNotFoundError(candidates)


def load_context_entries(context_path: Path) -> list[ContextEntry]:
    try:
        text = context_path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ContextReadError(context_path, str(exc)) from exc
    entries = parse_context_map(text)
    if not entries:
        raise EmptyContextMapError(context_path)
    return entries
