"""One quality-gate run: optional autofix, validation, diff against the previous run, run log."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Sequence

from docgates.analysis.casefiles import DEFAULT_CATEGORIES, discover_cases
from docgates.analysis.context_map import load_context_entries, resolve_context_path
from docgates.analysis.diff import GateDiff, compute_gate_diff
from docgates.analysis.gates import (
    evaluate_gates,
    exit_code_for,
    summarize_documents,
    summarize_gate_results,
)
from docgates.analysis.graph import load_graph
from docgates.analysis.model import (
    QualityGateResults,
    RunMode,
    ValidationOutcome,
    Violation,
)
from docgates.exceptions import AutofixFailed
from docgates.json_types import JSONObject
from docgates.paths import PROJECT_PATHS
from docgates.tooling.autofix import AutofixSummary, run_autofix
from docgates.tooling.run_log import RunLogStore, utc_timestamp

logger = logging.getLogger(__name__)

GitRunner = Callable[[list[str], Path], str]


def validate_project(
    project_root: Path,
    context: str | Path | None = None,
    *,
    test_roots: Sequence[str] = (),
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> ValidationOutcome:
    """Parse the manifest, build the graph and run every gate.

    Raises :class:`~docgates.exceptions.InfrastructureError` when the manifest
    is missing, unreadable or empty.
    """
    root = project_root.resolve()
    context_file = resolve_context_path(root, context)
    entries = load_context_entries(context_file)
    graph = load_graph(root, entries)
    corpus = discover_cases(root, test_roots or None)
    results = evaluate_gates(graph, corpus, categories=categories)
    return ValidationOutcome(
        results=results,
        project_root=str(root),
        context_path=str(context_file),
        doc_status=dict(graph.doc_status),
    )


def _git(args: list[str], cwd: Path) -> str:
    return subprocess.check_output(["git", *args], cwd=cwd, text=True, stderr=subprocess.DEVNULL)


def collect_repo_diff(project_root: Path, *, git_fn: GitRunner = _git) -> JSONObject | None:
    try:
        name_status = git_fn(["diff", "--name-status"], project_root)
        patch = git_fn(["diff"], project_root)
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.info("git diff unavailable: %s", exc)
        return None
    files = [
        line.split("\t")[-1].strip()
        for line in name_status.splitlines()
        if line.strip()
    ]
    return {"nameStatus": name_status, "patch": patch, "files": files}


@dataclass(frozen=True)
class QualityGateRun:
    timestamp: str
    mode: RunMode
    outcome: ValidationOutcome
    exit_code: int
    diff: GateDiff
    autofix: AutofixSummary | None = None
    repo_diff: JSONObject | None = None
    log_path: Path | None = None

    @property
    def results(self) -> QualityGateResults:
        return self.outcome.results

    def to_record(self) -> JSONObject:
        record: JSONObject = {
            "timestamp": self.timestamp,
            "mode": self.mode,
            "exitCode": self.exit_code,
            "payload": self.outcome.to_payload(),
            "summary": summarize_gate_results(self.results),
            "documents": summarize_documents(self.results, self.outcome.doc_status),
            "diff": self.diff.to_payload(),
        }
        if self.autofix is not None:
            record["autofix"] = self.autofix.to_payload()
        if self.repo_diff is not None:
            record["repoDiff"] = self.repo_diff
        return record


def run_quality_gates(
    project_root: Path,
    *,
    mode: RunMode = "manual",
    context: str | Path | None = None,
    previous: Mapping[str, Sequence[Violation]] | None = None,
    test_roots: Sequence[str] = (),
    categories: Sequence[str] = DEFAULT_CATEGORIES,
    strict: bool = False,
    autofix_dry_run: bool | None = None,
    log_store: RunLogStore | None = None,
    now: datetime | None = None,
    git_fn: GitRunner = _git,
) -> QualityGateRun:
    """Bulk runs (or an explicit dry-run request) autofix before validating.

    Raises :class:`AutofixFailed` when the autofix pass fails; nothing is
    validated or logged in that case.
    """
    root = project_root.resolve()
    timestamp = utc_timestamp(now)
    autofix: AutofixSummary | None = None
    repo_diff: JSONObject | None = None
    if mode == "bulk" or autofix_dry_run is not None:
        dry_run = bool(autofix_dry_run)
        autofix = run_autofix(root, context, dry_run=dry_run)
        if autofix.status != "ok":
            logger.warning("autofix failed: %s", "; ".join(autofix.errors))
            raise AutofixFailed(autofix.to_payload())
        if not dry_run:
            repo_diff = collect_repo_diff(root, git_fn=git_fn)
    outcome = validate_project(root, context, test_roots=test_roots, categories=categories)
    exit_code = exit_code_for(outcome.results, strict=strict)
    run = QualityGateRun(
        timestamp=timestamp,
        mode=mode,
        outcome=outcome,
        exit_code=exit_code,
        diff=compute_gate_diff(previous, outcome.results),
        autofix=autofix,
        repo_diff=repo_diff,
    )
    if log_store is None:
        return run
    log_path = log_store.write_run_log(run.to_record())
    logger.info("quality gates (%s) finished with exit code %d", mode, exit_code)
    return replace(run, log_path=log_path)


def default_log_store(project_root: Path, log_dir: str | None = None) -> RunLogStore:
    if log_dir:
        candidate = Path(log_dir)
        return RunLogStore(candidate if candidate.is_absolute() else project_root / candidate)
    return RunLogStore(PROJECT_PATHS.log_dir(root=project_root))
