from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping


def canonicalize_json(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize_json(value[key])
            for key in sorted(value, key=str)
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize_json(item) for item in value]
    return value


def load_json_object_path(
    path: Path,
    *,
    encoding: str = "utf-8",
) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding=encoding))
    except (OSError, UnicodeError, json.JSONDecodeError):
        return {}
    if not isinstance(payload, Mapping):
        return {}
    canonical = canonicalize_json(payload)
    return canonical if isinstance(canonical, dict) else {}


def dump_json_pretty(payload: object) -> str:
    return json.dumps(canonicalize_json(payload), indent=2, ensure_ascii=False)


def dump_json_line(payload: object) -> str:
    return json.dumps(canonicalize_json(payload), ensure_ascii=False, separators=(",", ":"))


def write_json_atomic(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.tmp")
    staging.write_text(dump_json_pretty(payload) + "\n", encoding="utf-8")
    staging.replace(path)
