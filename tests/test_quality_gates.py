from __future__ import annotations

import subprocess
from datetime import datetime, timezone
from pathlib import Path

from docgates.analysis.diff import compute_gate_diff, diff_document_revisions
from docgates.analysis.model import Violation, empty_results
from docgates.tooling.quality_gates import collect_repo_diff, default_log_store, run_quality_gates
from docgates.tooling.run_log import RunLogStore
from tests.doc_helpers import DocProject

MOMENT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _fake_git(outputs: dict[str, str]):
    calls: list[list[str]] = []

    def _git(args: list[str], cwd: Path) -> str:
        calls.append(list(args))
        return outputs[" ".join(args)]

    return _git, calls


def test_compute_gate_diff_matches_violation_keys() -> None:
    kept = Violation("DOC-01", "a.mdc", "Breadcrumbs block is missing")
    fixed = Violation("DOC-03", "a.mdc", "Upstream link not found: b.mdc", link="b.mdc")
    new = Violation("DOC-03", "a.mdc", "Upstream link not found: c.mdc", link="c.mdc")
    previous = empty_results()
    previous["DOC-01"] = [kept]
    previous["DOC-03"] = [fixed]
    current = empty_results()
    current["DOC-01"] = [Violation("DOC-01", "a.mdc", "Breadcrumbs block is missing")]
    current["DOC-03"] = [new]
    diff = compute_gate_diff(previous, current)
    assert diff.total_added == 1
    assert diff.total_removed == 1
    assert diff.for_gate("DOC-01") is None
    delta = diff.for_gate("DOC-03")
    assert delta is not None and delta.added == (new,) and delta.removed == (fixed,)
    assert compute_gate_diff(None, current).total_added == 2


def test_compute_gate_diff_counts_duplicate_violations() -> None:
    anchor = Violation("DOC-06", "a.mdc", "TOC link target not found: #gone", link="#gone")
    previous = empty_results()
    previous["DOC-06"] = [anchor]
    current = empty_results()
    current["DOC-06"] = [anchor, Violation("DOC-06", "a.mdc", "TOC link target not found: #gone", link="#gone")]
    diff = compute_gate_diff(previous, current)
    delta = diff.for_gate("DOC-06")
    assert delta is not None and len(delta.added) == 1 and delta.removed == ()
    assert compute_gate_diff(current, previous).total_removed == 1
    assert compute_gate_diff(current, current).per_gate == ()


def test_diff_document_revisions_counts_lines_and_headings() -> None:
    before = "# Doc\n\n## 1. A\n\ntext\n"
    after = "# Doc\n\n## 1. A\n\nchanged\n\n## 2. B\n"
    change = diff_document_revisions("docs/DOC.mdc", before, after)
    assert change.kind == "change"
    assert change.lines_removed == 1
    assert change.lines_added == 3
    assert change.headings_added == ("## 2. B",)
    assert change.headings_removed == ()
    assert diff_document_revisions("x", None, "# New\n").kind == "add"
    removed = diff_document_revisions("x", "# Old\n", None)
    assert removed.kind == "remove"
    assert removed.headings_removed == ("# Old",)


def test_manual_run_writes_log_and_diffs_against_previous(project: DocProject) -> None:
    project.passing_pair()
    store = RunLogStore(project.path("logs"))
    previous = empty_results()
    previous["DOC-01"] = [Violation("DOC-01", "gone.mdc", "Breadcrumbs block is missing")]
    run = run_quality_gates(project.root, previous=previous, log_store=store, now=MOMENT)
    assert run.exit_code == 0
    assert run.timestamp == "2024-01-01T12:00:00.000Z"
    assert run.autofix is None
    assert run.diff.total_removed == 1
    assert run.log_path == project.path("logs/2024-01-01T12-00-00.000Z-manual.json")
    _descriptor, record = store.load_latest_run_log()
    assert record["exitCode"] == 0
    assert record["diff"]["totalRemoved"] == 1
    assert record["documents"] == {"total": 2, "byStatus": {"ok": 2}, "withViolations": 0}
    assert "autofix" not in record


def test_bulk_run_autofixes_and_records_repo_diff(project: DocProject) -> None:
    project.write("docs/ARCH/SYSTEM.mdc", "# System\n\n## Overview\n")
    project.write_context(["docs/ARCH/SYSTEM.mdc"])
    project.write_passing_cases()
    git_fn, calls = _fake_git(
        {
            "diff --name-status": "M\tdocs/ARCH/SYSTEM.mdc\n",
            "diff": "--- a/docs/ARCH/SYSTEM.mdc\n+++ b/docs/ARCH/SYSTEM.mdc\n",
        }
    )
    store = RunLogStore(project.path("logs"))
    run = run_quality_gates(project.root, mode="bulk", log_store=store, now=MOMENT, git_fn=git_fn)
    assert run.autofix is not None and run.autofix.status == "ok"
    assert run.exit_code == 0
    assert run.repo_diff == {
        "nameStatus": "M\tdocs/ARCH/SYSTEM.mdc\n",
        "patch": "--- a/docs/ARCH/SYSTEM.mdc\n+++ b/docs/ARCH/SYSTEM.mdc\n",
        "files": ["docs/ARCH/SYSTEM.mdc"],
    }
    assert calls == [["diff", "--name-status"], ["diff"]]
    assert run.log_path is not None and run.log_path.name.endswith("-bulk.json")
    _descriptor, record = store.load_latest_run_log()
    assert record["autofix"]["status"] == "ok"
    assert record["repoDiff"]["files"] == ["docs/ARCH/SYSTEM.mdc"]


def test_dry_run_autofix_skips_repo_diff(project: DocProject) -> None:
    project.passing_pair()
    git_fn, calls = _fake_git({})
    run = run_quality_gates(project.root, autofix_dry_run=True, git_fn=git_fn)
    assert run.autofix is not None and run.autofix.dry_run
    assert run.repo_diff is None
    assert calls == []
    assert run.log_path is None


def test_collect_repo_diff_tolerates_missing_git(tmp_path: Path) -> None:
    def _failing_git(args: list[str], cwd: Path) -> str:
        raise subprocess.CalledProcessError(128, ["git", *args])

    assert collect_repo_diff(tmp_path, git_fn=_failing_git) is None


def test_default_log_store_locations(tmp_path: Path) -> None:
    assert default_log_store(tmp_path).log_dir == tmp_path / "logs" / "quality-gates"
    assert default_log_store(tmp_path, "out/runs").log_dir == tmp_path / "out" / "runs"
    assert default_log_store(tmp_path, str(tmp_path / "abs")).log_dir == tmp_path / "abs"
