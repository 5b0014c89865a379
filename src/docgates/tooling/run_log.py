"""Append-only run log store: one JSON record per run under the logs directory."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from docgates.json_types import JSONObject
from docgates.runtime import json_io
from docgates.schema import RunLogDTO, normalize

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r"^(?P<stamp>.+)-(?P<mode>auto|manual|bulk)\.json$")


def utc_timestamp(now: datetime | None = None) -> str:
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def log_filename(timestamp: str, mode: str) -> str:
    return f"{timestamp.replace(':', '-')}-{mode}.json"


@dataclass(frozen=True)
class RunLogDescriptor:
    path: Path
    timestamp: str
    mode: str
    exit_code: int | None

    def to_payload(self) -> JSONObject:
        return {
            "path": str(self.path),
            "name": self.path.name,
            "timestamp": self.timestamp,
            "mode": self.mode,
            "exitCode": self.exit_code,
        }


class RunLogStore:
    def __init__(self, log_dir: Path):
        self.log_dir = log_dir

    def write_run_log(self, record: JSONObject) -> Path:
        normalized = normalize(RunLogDTO, record)
        path = self.log_dir / log_filename(str(normalized["timestamp"]), str(normalized["mode"]))
        json_io.write_json_atomic(path, normalized)
        logger.info("wrote run log %s", path)
        return path

    def load_run_log(self, path: Path) -> JSONObject | None:
        payload = json_io.load_json_object_path(path)
        if not payload:
            return None
        try:
            return normalize(RunLogDTO, payload)
        except ValidationError as exc:
            logger.warning("ignoring malformed run log %s: %s", path, exc.errors()[0]["msg"])
            return None

    def list_run_logs(self) -> list[RunLogDescriptor]:
        """Descriptors for every readable log, newest first."""
        if not self.log_dir.is_dir():
            return []
        descriptors: list[RunLogDescriptor] = []
        for path in self.log_dir.glob("*.json"):
            if not _FILENAME_RE.match(path.name):
                continue
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeError, json.JSONDecodeError) as exc:
                logger.warning("skipping unreadable run log %s: %s", path, exc)
                continue
            if not isinstance(payload, dict) or not isinstance(payload.get("timestamp"), str):
                logger.warning("skipping run log without timestamp: %s", path)
                continue
            exit_code = payload.get("exitCode")
            descriptors.append(
                RunLogDescriptor(
                    path=path,
                    timestamp=payload["timestamp"],
                    mode=str(payload.get("mode", "")),
                    exit_code=exit_code if isinstance(exit_code, int) else None,
                )
            )
        descriptors.sort(key=lambda item: (item.timestamp, item.path.name), reverse=True)
        return descriptors

    def load_latest_run_log(self) -> tuple[RunLogDescriptor, JSONObject] | None:
        for descriptor in self.list_run_logs():
            record = self.load_run_log(descriptor.path)
            if record is not None:
                return descriptor, record
        return None
