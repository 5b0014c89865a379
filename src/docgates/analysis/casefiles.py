"""Discovery and heuristics for the test-case corpus (TC-xx gates)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from docgates.paths import PROJECT_PATHS, relative_posix, resolve_user_path

DEFAULT_CATEGORIES: tuple[str, ...] = ("docs-navigator", "tree-view", "tasks", "integration")
CASE_SUFFIXES: tuple[str, ...] = (".spec.ts", ".spec.js")
DOCUMENTATION_THRESHOLD = 80.0

_SKIP_DIRS = {"node_modules", ".git"}
_NAME_PART_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)+$")
_DEPENDENCY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\btest\s*\([^)]*\)\s*\.then[\s\S]*?\btest\s*\(", re.IGNORECASE),
    re.compile(r"\bit\s*\([^)]*\)\s*\.then[\s\S]*?\bit\s*\(", re.IGNORECASE),
    re.compile(r"afterEach[\s\S]*?(\btest\s*\(|\bit\s*\()", re.IGNORECASE),
    re.compile(r"beforeAll[\s\S]*?order[\s\S]*?(\btest\s*\(|\bit\s*\()", re.IGNORECASE),
)
_DECLARATION_RE = re.compile(r"\b(?:test|it)\s*\(\s*['\"`]")
_DOC_COMMENT_RE = re.compile(r"/\*\*([\s\S]*?)\*/")
_PURPOSE_RE = re.compile(r"目的|purpose", re.IGNORECASE)
_EXPECTED_RE = re.compile(r"期待結果|expected", re.IGNORECASE)
_FIXTURE_REF_RE = re.compile(r"fixtures[/\\]")
_SETUP_RE = re.compile(r"(setup|beforeAll|beforeEach)\s*\(", re.IGNORECASE)
_TEARDOWN_RE = re.compile(r"(teardown|afterAll|afterEach)\s*\(", re.IGNORECASE)


@dataclass(frozen=True)
class CaseFile:
    path: str
    content: str | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class CaseCorpus:
    roots: tuple[str, ...]
    requested_roots: tuple[str, ...]
    cases: tuple[CaseFile, ...]
    fixture_dirs: tuple[str, ...]
    fixture_files: tuple[str, ...]


def _walk(directory: Path) -> Iterable[Path]:
    try:
        children = sorted(directory.iterdir(), key=lambda item: item.name)
    except OSError:
        return
    for child in children:
        if child.is_dir():
            if child.name in _SKIP_DIRS:
                continue
            yield child
            yield from _walk(child)
        else:
            yield child


def discover_cases(
    root: Path,
    test_roots: Sequence[str] | None = None,
) -> CaseCorpus:
    requested = tuple(test_roots) if test_roots else PROJECT_PATHS.test_root_candidates
    detected: list[str] = []
    cases: list[CaseFile] = []
    fixture_dirs: list[str] = []
    fixture_files: list[str] = []
    fixture_name = PROJECT_PATHS.fixture_dir_name
    for rel_root in requested:
        base = resolve_user_path(rel_root, root=root)
        if not base.is_dir():
            continue
        detected.append(relative_posix(base, root=root))
        for entry in _walk(base):
            rel = relative_posix(entry, root=root)
            if entry.is_dir():
                if entry.name.lower() == fixture_name and rel not in fixture_dirs:
                    fixture_dirs.append(rel)
                continue
            if entry.name.endswith(CASE_SUFFIXES):
                cases.append(_load_case(entry, rel))
            elif f"/{fixture_name}/" in f"/{rel.lower()}":
                fixture_files.append(rel)
    return CaseCorpus(
        roots=tuple(detected),
        requested_roots=requested,
        cases=tuple(cases),
        fixture_dirs=tuple(fixture_dirs),
        fixture_files=tuple(fixture_files),
    )


def _load_case(path: Path, rel: str) -> CaseFile:
    try:
        return CaseFile(path=rel, content=path.read_text(encoding="utf-8"))
    except (OSError, UnicodeError) as exc:
        return CaseFile(path=rel, error=str(exc))


def case_name_error(name: str, categories: Sequence[str] = DEFAULT_CATEGORIES) -> str | None:
    """Check ``<category>-<feature>-<scenario>.spec.(ts|js)``."""
    stem = next((name[: -len(suffix)] for suffix in CASE_SUFFIXES if name.endswith(suffix)), None)
    if stem is None or stem != stem.lower():
        return "Filename does not follow <category>-<feature>-<scenario>.spec.ts"
    for category in sorted(categories, key=len, reverse=True):
        prefix = f"{category}-"
        if stem.startswith(prefix):
            if _NAME_PART_RE.match(stem[len(prefix):]):
                return None
            return "Filename must separate category, feature and scenario with hyphens"
    category = stem.split("-", 1)[0]
    return f"Unknown test category: {category} (valid: {', '.join(categories)})"


def has_dependency_pattern(source: str) -> bool:
    return any(pattern.search(source) for pattern in _DEPENDENCY_PATTERNS)


def documentation_coverage(source: str) -> tuple[int, int]:
    """Return ``(documented, total)`` test declarations.

    A declaration is documented when a ``/** ... */`` comment naming both a
    purpose and an expected result sits between it and the previous one.
    """
    declarations = [match.start() for match in _DECLARATION_RE.finditer(source)]
    documented = 0
    previous = 0
    for position in declarations:
        window = source[previous:position]
        if any(
            _PURPOSE_RE.search(comment) and _EXPECTED_RE.search(comment)
            for comment in _DOC_COMMENT_RE.findall(window)
        ):
            documented += 1
        previous = position + 1
    return documented, len(declarations)


def uses_fixtures(source: str) -> bool:
    return bool(_FIXTURE_REF_RE.search(source))


def has_setup_and_teardown(source: str) -> bool:
    return bool(_SETUP_RE.search(source)) and bool(_TEARDOWN_RE.search(source))
