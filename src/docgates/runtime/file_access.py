"""Project-root-confined file access used by the autofix engine."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from docgates.exceptions import PathOutsideRootError


@dataclass(frozen=True)
class ProjectFileAccess:
    root: Path

    def resolve(self, rel: str) -> Path:
        base = self.root.resolve()
        candidate = (base / rel.replace("\\", "/")).resolve()
        if candidate != base and base not in candidate.parents:
            raise PathOutsideRootError(rel, base)
        return candidate

    def exists(self, rel: str) -> bool:
        try:
            return self.resolve(rel).exists()
        except PathOutsideRootError:
            return False

    def read_text(self, rel: str) -> str:
        return self.resolve(rel).read_text(encoding="utf-8")

    def write_text(self, rel: str, content: str) -> None:
        target = self.resolve(rel)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def rename(self, source: str, target: str) -> None:
        src = self.resolve(source)
        dst = self.resolve(target)
        if dst.exists():
            raise FileExistsError(f"rename target already exists: {target}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        src.rename(dst)
