"""Blocking edges between issues."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ._helpers import handles_errors, open_store


@handles_errors
def block(issue: str, blocker: str, root: str | Path | None = None) -> dict[str, Any]:
    """Make `issue` wait until `blocker` closes. Cycles are refused."""
    store = open_store(root)
    issue_id = store.resolve(issue)
    blocker_id = store.resolve(blocker)
    added = store.add_dependency(issue_id, blocker_id)
    return {"issue": issue_id, "blocked_by": blocker_id, "added": added}


@handles_errors
def unblock(issue: str, blocker: str, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    issue_id = store.resolve(issue)
    blocker_id = store.resolve(blocker)
    removed = store.remove_dependency(issue_id, blocker_id)
    return {"issue": issue_id, "unblocked_from": blocker_id, "removed": removed}
