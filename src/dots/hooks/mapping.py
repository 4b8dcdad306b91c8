"""Todo-content -> issue-ID mapping kept in .dots/todo-mapping.json."""

from __future__ import annotations

import json
from pathlib import Path

from dots.errors import MalformedDocument
from dots.fs import atomic_write_file


def load_mapping(path: str | Path) -> dict[str, str]:
    """Whole mapping in memory. A missing file is an empty mapping."""
    path = Path(path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise MalformedDocument(path, f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise MalformedDocument(path, "mapping must be an object of strings")
    return data


def save_mapping(path: str | Path, mapping: dict[str, str]) -> None:
    """Replace the file atomically so readers never see a partial write."""
    atomic_write_file(path, json.dumps(mapping, indent=2, sort_keys=True, ensure_ascii=False) + "\n")
