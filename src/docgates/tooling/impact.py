from __future__ import annotations

from collections import Counter
from datetime import datetime
from pathlib import Path

from docgates.analysis.context_map import parse_context_map, resolve_context_path
from docgates.exceptions import ContextNotFoundError
from docgates.json_types import JSONObject
from docgates.tooling.run_log import utc_timestamp


def scan_impacts(
    project_root: Path,
    context: str | Path | None = None,
    *,
    now: datetime | None = None,
) -> JSONObject:
    """Resolve the manifest and confirm that every referenced document exists.

    A missing manifest is reported as a warning; the scan itself never raises
    for document problems.
    """
    root = project_root.resolve()
    warnings: list[str] = []
    report: JSONObject = {
        "scannedAt": utc_timestamp(now),
        "projectRoot": str(root),
        "contextPath": None,
        "documents": [],
        "summary": {"total": 0, "missing": 0, "unreadable": 0, "categories": {}},
        "warnings": warnings,
    }
    try:
        context_file = resolve_context_path(root, context)
    except ContextNotFoundError as exc:
        warnings.append(str(exc))
        return report
    report["contextPath"] = str(context_file)
    try:
        text = context_file.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        warnings.append(f"Failed to read context map {context_file}: {exc}")
        return report
    entries = parse_context_map(text)
    if not entries:
        warnings.append(f"No entries found in context map: {context_file}")

    documents: list[JSONObject] = []
    categories: Counter[str] = Counter()
    seen: set[str] = set()
    for entry in entries:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        categories[entry.category] += 1
        absolute = root / entry.path
        if absolute.is_file():
            status, message = "ok", None
        elif absolute.exists():
            status, message = "unreadable", "Not a regular file"
        else:
            status, message = "missing", "File not found"
        document: JSONObject = {
            "path": entry.path,
            "absolutePath": str(absolute),
            "category": entry.category,
            "status": status,
            "exists": absolute.exists(),
        }
        if message:
            document["message"] = message
        documents.append(document)
    report["documents"] = documents
    report["summary"] = {
        "total": len(documents),
        "missing": sum(1 for item in documents if item["status"] == "missing"),
        "unreadable": sum(1 for item in documents if item["status"] == "unreadable"),
        "categories": dict(categories),
    }
    return report
