"""Minimal .env loader for the proxy CLI."""

from __future__ import annotations

import os
from pathlib import Path


def load_dotenv(path: str = ".env") -> list[str]:
    """Apply ``KEY=value`` lines to ``os.environ`` without overriding set keys.

    Returns the keys that were applied.
    """
    env_path = Path(path)
    try:
        text = env_path.read_text(encoding="utf-8")
    except OSError:
        return []

    applied: list[str] = []
    for line in text.splitlines():
        parsed = _parse_line(line)
        if parsed is None:
            continue
        key, value = parsed
        if key in os.environ:
            continue
        os.environ[key] = value
        applied.append(key)
    return applied


def _parse_line(line: str) -> tuple[str, str] | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    if stripped.startswith("export "):
        stripped = stripped[len("export "):].lstrip()
    key, value = stripped.split("=", 1)
    key = key.strip()
    value = value.strip()
    if not key:
        return None
    if value and value[0] in {"'", '"'} and value[-1] == value[0] and len(value) > 1:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    if value == "":
        return None
    return key, value
