"""Invariant markers."""

from __future__ import annotations

from typing import NoReturn

from docgates.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    message = reason or "never() marker reached"
    if env:
        details = ", ".join(f"{key}={value!r}" for key, value in sorted(env.items()))
        message = f"{message} ({details})"
    raise NeverThrown(message, env=env)
