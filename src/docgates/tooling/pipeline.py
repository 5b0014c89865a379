"""Revalidation pipeline controller.

Watches the rule-document directory, debounces bursts of edits into a single
refresh, and runs validation (bulk requests autofix first) one run at a time.
Each trigger category owns one segment state machine: ``auto`` (watch),
``semiAuto`` (bulk) and ``manual``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Coroutine, Literal, Mapping, Sequence, TypeAlias

from docgates.analysis.casefiles import DEFAULT_CATEGORIES
from docgates.analysis.diff import DocumentChange, diff_document_revisions
from docgates.analysis.gates import summarize_documents, summarize_gate_results
from docgates.analysis.model import QualityGateResults, RunMode, Violation, results_from_payload
from docgates.config import TomlTable, as_number, normalize_name_list
from docgates.exceptions import AutofixFailed, PipelineDisposedError
from docgates.invariants import never
from docgates.json_types import JSONObject
from docgates.paths import PROJECT_PATHS, relative_posix, resolve_user_path
from docgates.schema import PipelineEventDTO, normalize
from docgates.tooling.impact import scan_impacts
from docgates.tooling.quality_gates import QualityGateRun, default_log_store, run_quality_gates
from docgates.tooling.run_log import RunLogDescriptor, RunLogStore, utc_timestamp
from docgates.tooling.watcher import DOCUMENT_SUFFIXES, DirectoryWatcher, WatchKind

logger = logging.getLogger(__name__)

EVENT_TYPE = "quality-gates:update"

SegmentName: TypeAlias = Literal["auto", "semiAuto", "manual"]
SegmentStatus: TypeAlias = Literal["idle", "running", "completed", "error"]
Runner = Callable[[RunMode, Mapping[str, Sequence[Violation]] | None], QualityGateRun]
Notifier = Callable[[JSONObject], None]

SEGMENT_FOR_MODE: dict[str, SegmentName] = {
    "auto": "auto",
    "bulk": "semiAuto",
    "manual": "manual",
}
MODE_FOR_TRIGGER: dict[str, RunMode] = {
    "watch": "auto",
    "auto": "auto",
    "bulk": "bulk",
    "manual": "manual",
    "init": "manual",
}


@dataclass(frozen=True)
class PipelineConfig:
    rules_dir: str = PROJECT_PATHS.rules_dir_rel
    debounce: float = 0.4
    poll_interval: float = 0.5
    # Seconds; 0 waits for a run indefinitely.
    run_timeout: float = 300.0
    log_dir: str | None = None
    test_roots: tuple[str, ...] = ()
    categories: tuple[str, ...] = DEFAULT_CATEGORIES

    @classmethod
    def from_section(cls, section: TomlTable) -> "PipelineConfig":
        defaults = cls()
        rules_dir = section.get("rules_dir")
        log_dir = section.get("log_dir")
        categories = normalize_name_list(section.get("test_categories"))
        return cls(
            rules_dir=rules_dir if isinstance(rules_dir, str) and rules_dir else defaults.rules_dir,
            debounce=as_number(section.get("debounce_ms"), defaults.debounce * 1000) / 1000,
            poll_interval=as_number(section.get("poll_interval_ms"), defaults.poll_interval * 1000) / 1000,
            run_timeout=as_number(section.get("run_timeout_s"), defaults.run_timeout),
            log_dir=log_dir if isinstance(log_dir, str) and log_dir else None,
            test_roots=tuple(normalize_name_list(section.get("tests"))),
            categories=tuple(categories) or defaults.categories,
        )


@dataclass
class SegmentState:
    mode: RunMode
    status: SegmentStatus = "idle"
    last_run_at: str | None = None
    log_path: str | None = None
    exit_code: int | None = None
    error: str | None = None
    run_id: int = 0

    def to_payload(self) -> JSONObject:
        return {
            "mode": self.mode,
            "status": self.status,
            "lastRunAt": self.last_run_at,
            "logPath": self.log_path,
            "exitCode": self.exit_code,
            "error": self.error,
        }


@dataclass
class _Segments:
    auto: SegmentState = field(default_factory=lambda: SegmentState("auto"))
    semiAuto: SegmentState = field(default_factory=lambda: SegmentState("bulk"))
    manual: SegmentState = field(default_factory=lambda: SegmentState("manual"))

    def for_mode(self, mode: RunMode) -> SegmentState:
        name = SEGMENT_FOR_MODE.get(mode)
        if name is None:
            never("unknown run mode", mode=mode)
        return getattr(self, name)

    def to_payload(self) -> JSONObject:
        return {
            "auto": self.auto.to_payload(),
            "semiAuto": self.semiAuto.to_payload(),
            "manual": self.manual.to_payload(),
        }


class RevalidationPipeline:
    def __init__(
        self,
        project_root: Path,
        notify: Notifier,
        *,
        context: str | Path | None = None,
        config: PipelineConfig | None = None,
        runner: Runner | None = None,
        log_store: RunLogStore | None = None,
    ):
        self.project_root = project_root.resolve()
        self.context = context
        self.config = config or PipelineConfig()
        self._notify = notify
        self._store = log_store or default_log_store(self.project_root, self.config.log_dir)
        self._runner: Runner = runner or self._run_quality_gates
        self._segments = _Segments()
        self._cache: dict[str, str] = {}
        self._pending: list[tuple[WatchKind, Path]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._refresh_lock = asyncio.Lock()
        self._run_lock = threading.Lock()
        self._tasks: set[asyncio.Task[JSONObject]] = set()
        self._late_runs: set[asyncio.Future[QualityGateRun]] = set()
        self._run_counter = 0
        self._watcher: DirectoryWatcher | None = None
        self._last_run: JSONObject | None = None
        self._previous_results: QualityGateResults | None = None
        self._last_run_loaded = False
        self._latest_event: JSONObject | None = None
        self._disposed = False

    @property
    def rules_dir(self) -> Path:
        return resolve_user_path(self.config.rules_dir, root=self.project_root)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def segment(self, name: SegmentName) -> SegmentState:
        return getattr(self._segments, name)

    # Watching

    async def start(self) -> JSONObject:
        """Prime the content cache, start the watcher and publish an initial scan."""
        if self._disposed:
            raise PipelineDisposedError()
        await asyncio.to_thread(self._prime_cache)
        if self._watcher is None:
            self._watcher = DirectoryWatcher(
                self.rules_dir,
                self.handle_change,
                poll_interval=self.config.poll_interval,
            )
            await self._watcher.start()
        return await self.refresh("init", run_validation=False)

    def _prime_cache(self) -> None:
        directory = self.rules_dir
        if not directory.is_dir():
            return
        for path in sorted(directory.rglob("*")):
            if path.is_file() and path.suffix.lower() in DOCUMENT_SUFFIXES:
                content = self._read(path)
                if content is not None:
                    self._cache[relative_posix(path, root=self.project_root)] = content

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeError):
            return None

    def handle_change(self, kind: WatchKind, path: Path | str) -> None:
        """Queue a watcher event; file contents are read when the burst is flushed."""
        if self._disposed:
            return
        self._pending.append((kind, resolve_user_path(path, root=self.project_root)))
        self._schedule("watch")

    def _collect_changes(self, pending: Sequence[tuple[WatchKind, Path]]) -> list[DocumentChange]:
        changes: list[DocumentChange] = []
        for kind, absolute in pending:
            rel = relative_posix(absolute, root=self.project_root)
            previous = self._cache.get(rel)
            current = None if kind == "remove" else self._read(absolute)
            if current is None:
                self._cache.pop(rel, None)
            else:
                self._cache[rel] = current
            changes.append(diff_document_revisions(rel, previous, current))
        return changes

    def _schedule(self, trigger: str) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.config.debounce, self._fire, trigger)

    def _fire(self, trigger: str) -> None:
        self._timer = None
        if self._disposed:
            return
        self._spawn(self.refresh(trigger))

    def _spawn(self, refresh: Coroutine[object, object, JSONObject]) -> None:
        task = asyncio.get_running_loop().create_task(refresh)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[JSONObject]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, PipelineDisposedError):
            logger.error("scheduled refresh failed: %s", exc)

    async def wait_idle(self) -> None:
        """Wait for scheduled, in-flight and timed-out refreshes to settle."""
        while self._timer is not None or self._tasks or self._late_runs:
            pending = [*self._tasks, *self._late_runs]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            else:
                await asyncio.sleep(self.config.debounce / 2 or 0.01)

    # Refresh

    def _ensure_last_run_loaded(self) -> None:
        if not self._last_run_loaded:
            self._seed_last_run(self._store.load_latest_run_log())

    def _seed_last_run(self, latest: tuple[RunLogDescriptor, JSONObject] | None) -> None:
        if self._last_run_loaded:
            return
        self._last_run_loaded = True
        if latest is None:
            return
        descriptor, record = latest
        mode = record.get("mode")
        if mode not in SEGMENT_FOR_MODE:
            return
        self._last_run = {
            "timestamp": record["timestamp"],
            "mode": mode,
            "exitCode": record["exitCode"],
            "logPath": str(descriptor.path),
            "summary": record.get("summary", []),
            "documents": record.get("documents"),
            "diff": record.get("diff"),
        }
        segment = self._segments.for_mode(mode)
        segment.status = "completed"
        segment.last_run_at = str(record["timestamp"])
        segment.log_path = str(descriptor.path)
        segment.exit_code = int(record["exitCode"])
        payload = record.get("payload")
        if isinstance(payload, dict):
            self._previous_results = results_from_payload(payload.get("results"))

    def _run_quality_gates(
        self,
        mode: RunMode,
        previous: Mapping[str, Sequence[Violation]] | None,
    ) -> QualityGateRun:
        return run_quality_gates(
            self.project_root,
            mode=mode,
            context=self.context,
            previous=previous,
            test_roots=self.config.test_roots,
            categories=self.config.categories,
            log_store=self._store,
        )

    def _run_serialized(
        self,
        mode: RunMode,
        previous: Mapping[str, Sequence[Violation]] | None,
    ) -> QualityGateRun:
        # Held by the worker thread itself, so a timed-out run still blocks the next one.
        with self._run_lock:
            return self._runner(mode, previous)

    async def _execute(self, mode: RunMode, run_id: int) -> QualityGateRun:
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._run_serialized, mode, self._previous_results)
        )
        if self.config.run_timeout <= 0:
            return await worker
        try:
            return await asyncio.wait_for(asyncio.shield(worker), self.config.run_timeout)
        except asyncio.TimeoutError:
            self._late_runs.add(worker)
            worker.add_done_callback(functools.partial(self._late_run_done, mode, run_id))
            raise

    def _late_run_done(self, mode: RunMode, run_id: int, worker: asyncio.Future[QualityGateRun]) -> None:
        """A timed-out worker finished: its run is the segment's result unless a newer run started."""
        self._late_runs.discard(worker)
        if worker.cancelled() or self._disposed:
            return
        exc = worker.exception()
        if exc is not None:
            logger.warning("timed-out %s run failed: %s", mode, exc)
            return
        segment = self._segments.for_mode(mode)
        if segment.run_id != run_id:
            return
        run = worker.result()
        self._record_run(segment, run)
        logger.info("timed-out %s run finished with exit code %d", mode, run.exit_code)
        self._spawn(
            self.refresh(
                "late",
                run_validation=False,
                message=f"{mode} run finished late with exit code {run.exit_code}",
            )
        )

    async def refresh(
        self,
        trigger: str,
        *,
        run_validation: bool = True,
        mode: RunMode | None = None,
        message: str | None = None,
    ) -> JSONObject:
        if self._disposed:
            raise PipelineDisposedError()
        async with self._refresh_lock:
            if self._disposed:
                raise PipelineDisposedError()
            if not self._last_run_loaded:
                self._seed_last_run(await asyncio.to_thread(self._store.load_latest_run_log))
            pending, self._pending = self._pending, []
            changes = await asyncio.to_thread(self._collect_changes, pending)
            impact = await asyncio.to_thread(scan_impacts, self.project_root, self.context)
            error: str | None = None
            if run_validation:
                run_mode = mode or MODE_FOR_TRIGGER.get(trigger, "manual")
                message, error = await self._run_segment(run_mode)
            event: JSONObject = {
                "type": EVENT_TYPE,
                "trigger": trigger,
                "timestamp": utc_timestamp(),
                "impact": impact,
                "pipeline": self.snapshot(),
                "logs": await asyncio.to_thread(self.list_logs),
                "changes": [change.to_payload() for change in changes],
            }
            if message:
                event["message"] = message
            if error:
                event["error"] = error
            event = normalize(PipelineEventDTO, event)
            self._latest_event = event
            if not self._disposed:
                self._notify(event)
            return event

    async def _run_segment(self, mode: RunMode) -> tuple[str | None, str | None]:
        segment = self._segments.for_mode(mode)
        self._run_counter += 1
        run_id = segment.run_id = self._run_counter
        segment.status = "running"
        segment.error = None
        logger.info("starting %s quality-gate run", mode)
        try:
            run = await self._execute(mode, run_id)
        except asyncio.TimeoutError:
            reason = f"run timed out after {self.config.run_timeout:g}s"
            segment.status = "error"
            segment.error = reason
            logger.warning("%s run %s", mode, reason)
            return None, reason
        except AutofixFailed as exc:
            segment.status = "error"
            segment.error = str(exc)
            return None, str(exc)
        except Exception as exc:
            segment.status = "error"
            segment.error = str(exc)
            logger.exception("%s quality-gate run failed", mode)
            return None, str(exc)
        self._record_run(segment, run)
        return f"{mode} run finished with exit code {run.exit_code}", None

    def _record_run(self, segment: SegmentState, run: QualityGateRun) -> None:
        segment.status = "completed"
        segment.error = None
        segment.last_run_at = run.timestamp
        segment.log_path = str(run.log_path) if run.log_path else None
        segment.exit_code = run.exit_code
        self._previous_results = run.results
        self._last_run = {
            "timestamp": run.timestamp,
            "mode": run.mode,
            "exitCode": run.exit_code,
            "logPath": segment.log_path,
            "summary": summarize_gate_results(run.results),
            "documents": summarize_documents(run.results, run.outcome.doc_status),
            "diff": run.diff.to_payload(),
        }

    # Queries

    def snapshot(self) -> JSONObject:
        return {"state": self._segments.to_payload(), "lastRun": self._last_run}

    def get_latest(self) -> JSONObject:
        if self._latest_event is not None:
            return self._latest_event
        self._ensure_last_run_loaded()
        return {"type": EVENT_TYPE, "pipeline": self.snapshot()}

    async def revalidate(self, mode: RunMode = "manual") -> JSONObject:
        trigger = "bulk" if mode == "bulk" else "manual"
        return await self.refresh(trigger, mode=mode)

    async def scan_only(self) -> JSONObject:
        return await self.refresh("scan", run_validation=False)

    def list_logs(self) -> list[JSONObject]:
        return [descriptor.to_payload() for descriptor in self._store.list_run_logs()]

    def dispose(self) -> None:
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        self._pending.clear()
