from __future__ import annotations

import hashlib
import re
import unicodedata
from pathlib import PurePosixPath

from docgates.analysis.model import VALID_LAYERS
from docgates.paths import PROJECT_PATHS

GENERAL_LAYER = "GENERAL"
DEFAULT_AUTOFIX_LAYER = "QA"

_PRD_PATTERN = re.compile(r"^PRD_[A-Z0-9][A-Za-z0-9_-]*\.mdc$")
_ARCH_PATTERN = re.compile(r"^[A-Z0-9][A-Za-z0-9_-]*\.(mdc|md)$")
_DEFAULT_PATTERN = re.compile(r"^[A-Z0-9][A-Za-z0-9_-]*\.mdc$")

_PATTERN_HINTS = {
    "PRD": "PRD_<NAME>.mdc",
    "ARCH": "<NAME>.mdc or <NAME>.md",
}


def normalize_layer(value: str | None) -> str | None:
    if not value:
        return None
    candidate = value.strip().upper()
    return candidate if candidate in VALID_LAYERS else None


def path_layer(path: str) -> str | None:
    return normalize_layer(PROJECT_PATHS.layer_segment(path))


def naming_layer(path: str, layer: str | None = None) -> str:
    return normalize_layer(layer) or path_layer(path) or GENERAL_LAYER


def autofix_layer(path: str, layer: str | None = None) -> str:
    return normalize_layer(layer) or path_layer(path) or DEFAULT_AUTOFIX_LAYER


def is_naming_exempt(path: str) -> bool:
    return PurePosixPath(path).name.lower() in {"index.md", "index.mdc"}


def naming_pattern(layer: str) -> re.Pattern[str]:
    if layer == "PRD":
        return _PRD_PATTERN
    if layer == "ARCH":
        return _ARCH_PATTERN
    return _DEFAULT_PATTERN


def naming_violation(path: str, layer: str | None = None) -> str | None:
    """Return a message when ``path`` breaks the filename rules, else None."""
    if is_naming_exempt(path):
        return None
    name = PurePosixPath(path).name
    suffix = PurePosixPath(name).suffix.lower()
    if suffix not in {".md", ".mdc"}:
        return f"Invalid file extension {suffix or '(none)'!s}: expected .mdc or .md"
    if re.search(r"\s", name):
        return f"Filename contains whitespace: {name}"
    resolved = naming_layer(path, layer)
    if naming_pattern(resolved).match(name):
        return None
    hint = _PATTERN_HINTS.get(resolved, "<NAME>.mdc")
    return f"Filename {name} does not follow the {resolved} naming rule ({hint})"


def ascii_slug(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = re.sub(r"[^A-Za-z0-9]+", "_", stripped)
    slug = re.sub(r"_{2,}", "_", slug).strip("_")
    return slug.upper()


def hash_slug(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:10].upper()


def propose_name(path: str, layer: str | None, primary_heading: str | None) -> str | None:
    """Compliant path for ``path`` in the same directory, or None if compliant."""
    if naming_violation(path, layer) is None:
        return None
    current = PurePosixPath(path)
    resolved = naming_layer(path, layer)
    core = ascii_slug(primary_heading or "") or ascii_slug(current.stem) or hash_slug(current.name)
    suffix = ".md" if resolved == "ARCH" and current.suffix.lower() == ".md" else ".mdc"
    if resolved == "PRD":
        core = core[len("PRD_"):] if core.startswith("PRD_") and len(core) > 4 else core
        name = f"PRD_{core}{suffix}"
    else:
        name = f"{core}{suffix}"
    parent = current.parent.as_posix()
    return name if parent in {"", "."} else f"{parent}/{name}"


def with_numeric_suffix(path: str, attempt: int) -> str:
    current = PurePosixPath(path)
    name = f"{current.stem}_{attempt}{current.suffix}"
    parent = current.parent.as_posix()
    return name if parent in {"", "."} else f"{parent}/{name}"
