from __future__ import annotations

import os
from pathlib import Path

from docgates.tooling.impact import scan_impacts
from docgates.tooling.watcher import DirectoryWatcher
from tests.doc_helpers import DocProject


def test_scan_impacts_reports_missing_documents(project: DocProject) -> None:
    project.write_document("docs/ARCH/SYSTEM.mdc", "System")
    project.path("docs/ARCH/DIR.mdc").mkdir(parents=True)
    project.write_context(["docs/ARCH/SYSTEM.mdc", "docs/ARCH/GONE.mdc", "docs/ARCH/DIR.mdc"])
    report = scan_impacts(project.root)
    statuses = {item["path"]: item["status"] for item in report["documents"]}
    assert statuses == {
        "docs/ARCH/SYSTEM.mdc": "ok",
        "docs/ARCH/GONE.mdc": "missing",
        "docs/ARCH/DIR.mdc": "unreadable",
    }
    assert report["summary"] == {
        "total": 3,
        "missing": 1,
        "unreadable": 1,
        "categories": {"Architecture": 3},
    }
    assert report["warnings"] == []


def test_scan_impacts_without_context_map_only_warns(tmp_path: Path) -> None:
    report = scan_impacts(tmp_path)
    assert report["contextPath"] is None
    assert report["documents"] == []
    assert report["warnings"] and report["warnings"][0].startswith("Context map not found")


def _touch(path: Path, text: str, mtime_ns: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    os.utime(path, ns=(mtime_ns, mtime_ns))


def test_watcher_poll_reports_add_change_and_remove(tmp_path: Path) -> None:
    rules = tmp_path / "docs" / "GATES"
    _touch(rules / "A.mdc", "a", 1_000_000_000)
    _touch(rules / "notes.txt", "ignored", 1_000_000_000)
    seen: list[tuple[str, Path]] = []
    watcher = DirectoryWatcher(rules, lambda kind, path: seen.append((kind, path)))
    watcher.prime()
    assert watcher.poll() == []

    _touch(rules / "A.mdc", "a2", 2_000_000_000)
    _touch(rules / "nested" / "B.md", "b", 2_000_000_000)
    _touch(rules / "notes.txt", "still ignored", 3_000_000_000)
    events = watcher.poll()
    assert sorted(events) == sorted([("change", rules / "A.mdc"), ("add", rules / "nested" / "B.md")])

    (rules / "A.mdc").unlink()
    assert watcher.poll() == [("remove", rules / "A.mdc")]


def test_watcher_on_missing_directory_is_quiet(tmp_path: Path) -> None:
    watcher = DirectoryWatcher(tmp_path / "absent", lambda kind, path: None)
    watcher.prime()
    assert watcher.poll() == []
