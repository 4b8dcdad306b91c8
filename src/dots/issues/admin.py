"""Store setup, migrations and agent hooks, shaped as dict results."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any

from dots.defaults import EXECPLANS_DIR, resolve_mapping_path
from dots.hooks import ToolEvent, session_summary, sync_todos
from dots.migrate import import_jsonl, migrate_execplans
from dots.migrate import restructure as _restructure

from ._helpers import handles_errors, open_store

log = logging.getLogger(__name__)


def _git_add(path: Path) -> None:
    """Stage the store when it sits in a git work tree. Failures are logged only."""
    project = path.parent
    if not (project / ".git").exists():
        return
    try:
        result = subprocess.run(
            ["git", "add", path.name],
            cwd=project,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        log.warning("git add %s failed: %s", path, exc)
        return
    if result.returncode != 0:
        log.warning("git add %s failed: %s", path, result.stderr.strip())


@handles_errors
def init_store(from_jsonl: str | Path | None = None, root: str | Path | None = None) -> dict[str, Any]:
    """Create the store directory, optionally importing a JSONL export."""
    store = open_store(root)
    data: dict[str, Any] = {"initialized": str(store.root)}
    if from_jsonl is not None:
        data["import"] = import_jsonl(from_jsonl, store).to_dict()
    _git_add(store.root)
    return data


@handles_errors
def migrate(source: str | Path | None = None, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    src = Path(source) if source is not None else store.root.parent / EXECPLANS_DIR
    return {"migrated": migrate_execplans(src, store)}


@handles_errors
def restructure(dry_run: bool = False, root: str | Path | None = None) -> dict[str, Any]:
    return _restructure(open_store(root), dry_run=dry_run)


@handles_errors
def hook_session(root: str | Path | None = None) -> dict[str, Any]:
    return session_summary(open_store(root))


@handles_errors
def hook_sync(payload: str, root: str | Path | None = None) -> dict[str, Any]:
    """Apply one TodoWrite event (raw JSON text) to the store."""
    store = open_store(root)
    return sync_todos(ToolEvent.from_json(payload), store, resolve_mapping_path(store.root))
