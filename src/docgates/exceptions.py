"""Exception taxonomy for docgates."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docgates.json_types import JSONObject


class DocgatesError(RuntimeError):
    """Base class for every error raised by docgates itself."""


class InfrastructureError(DocgatesError):
    """A failure that aborts the whole run (CLI exit code 2).

    Document-level problems never raise; they surface as violations.
    """

    exit_code = 2


class ContextNotFoundError(InfrastructureError):
    def __init__(self, candidates: list[Path]):
        joined = ", ".join(str(path) for path in candidates)
        super().__init__(f"Context map not found (looked for: {joined})")
        self.candidates = candidates


class ContextReadError(InfrastructureError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to read context map {path}: {reason}")
        self.path = path


class EmptyContextMapError(InfrastructureError):
    def __init__(self, path: Path):
        super().__init__(f"No entries found in context map: {path}")
        self.path = path


class PathOutsideRootError(DocgatesError):
    def __init__(self, path: str, root: Path):
        super().__init__(f"path escapes project root {root}: {path}")
        self.path = path
        self.root = root


class AutofixFailed(DocgatesError):
    """Raised by bulk runs when the autofix pass reports ``failed``."""

    def __init__(self, summary: JSONObject):
        errors = summary.get("errors") or []
        detail = "; ".join(str(item) for item in errors) if isinstance(errors, list) else ""
        super().__init__(f"autofix failed: {detail}" if detail else "autofix failed")
        self.summary = summary


class PipelineDisposedError(DocgatesError):
    def __init__(self) -> None:
        super().__init__("revalidation pipeline has been disposed")


class NeverThrown(DocgatesError):
    """Raised by ``never()`` when a branch assumed unreachable is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})
