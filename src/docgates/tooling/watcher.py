"""Polling watcher for the rule-document directory."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Literal, TypeAlias

logger = logging.getLogger(__name__)

WatchKind: TypeAlias = Literal["add", "change", "remove"]
Stamp: TypeAlias = tuple[int, int]

DOCUMENT_SUFFIXES: tuple[str, ...] = (".md", ".mdc")


class DirectoryWatcher:
    """Reports add/change/remove events by comparing ``(st_mtime_ns, st_size)`` snapshots."""

    def __init__(
        self,
        directory: Path,
        callback: Callable[[WatchKind, Path], None],
        *,
        poll_interval: float = 0.5,
        suffixes: tuple[str, ...] = DOCUMENT_SUFFIXES,
    ):
        self.directory = directory
        self.callback = callback
        self.poll_interval = poll_interval
        self.suffixes = suffixes
        self._stamps: dict[Path, Stamp] = {}
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    def snapshot(self) -> dict[Path, Stamp]:
        stamps: dict[Path, Stamp] = {}
        if not self.directory.is_dir():
            return stamps
        for path in sorted(self.directory.rglob("*")):
            if path.suffix.lower() not in self.suffixes:
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            if path.is_file():
                stamps[path] = (int(stat.st_mtime_ns), int(stat.st_size))
        return stamps

    def prime(self) -> None:
        self._stamps = self.snapshot()

    def poll(self) -> list[tuple[WatchKind, Path]]:
        current = self.snapshot()
        events: list[tuple[WatchKind, Path]] = []
        for path, stamp in current.items():
            previous = self._stamps.get(path)
            if previous is None:
                events.append(("add", path))
            elif previous != stamp:
                events.append(("change", path))
        for path in self._stamps:
            if path not in current:
                events.append(("remove", path))
        self._stamps = current
        return events

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.poll_interval)
            if self._closed:
                break
            events = await asyncio.to_thread(self.poll)
            if self._closed:
                break
            for kind, path in events:
                self.callback(kind, path)

    async def start(self) -> asyncio.Task[None]:
        """Snapshot the directory off the event loop, then poll in a background task."""
        if self._task is None:
            await asyncio.to_thread(self.prime)
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info("watching %s", self.directory)
        return self._task

    def close(self) -> None:
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        logger.info("stopped watching %s", self.directory)
