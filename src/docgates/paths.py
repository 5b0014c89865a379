from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectPathConfig:
    """Centralized locations for the governed document set and its artifacts."""

    context_candidates: tuple[str, ...] = (
        ".cursor/context.mdc",
        "context.mdc",
        "docs/context.mdc",
    )
    docs_prefix: str = "docs/"
    rules_dir_rel: str = "docs/GATES"
    log_dir_rel: str = "logs/quality-gates"
    test_root_candidates: tuple[str, ...] = ("test", "tests")
    fixture_dir_name: str = "fixtures"

    def context_candidate_paths(self, *, root: Path) -> list[Path]:
        return [root / rel for rel in self.context_candidates]

    def log_dir(self, *, root: Path) -> Path:
        return root / self.log_dir_rel

    def layer_segment(self, path: str) -> str | None:
        """Return the directory segment directly below ``docs/``, if any."""
        normalized = path.replace("\\", "/")
        parts = [part for part in normalized.split("/") if part]
        for index, part in enumerate(parts[:-1]):
            if f"{part}/" == self.docs_prefix and index + 1 < len(parts) - 1:
                return parts[index + 1]
        return None


PROJECT_PATHS = ProjectPathConfig()


def resolve_user_path(value: str | Path, *, root: Path) -> Path:
    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    return root / candidate


def relative_posix(path: Path, *, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()
