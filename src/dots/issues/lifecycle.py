"""Status transitions, edits, delete, backlog moves and archive upkeep."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dots.defaults import MAX_PRIORITY, MIN_PRIORITY
from dots.errors import DotsError, InvalidOperation
from dots.store import Status

from ._helpers import handles_errors, issue_detail, open_store

log = logging.getLogger(__name__)

# Accepted spellings for `update --status`
_STATUS_ALIASES = {
    "open": Status.OPEN,
    "active": Status.ACTIVE,
    "in_progress": Status.ACTIVE,
    "closed": Status.CLOSED,
    "done": Status.CLOSED,
}


def parse_status(value: str) -> Status:
    try:
        return _STATUS_ALIASES[value.strip().lower()]
    except KeyError:
        raise InvalidOperation(
            f"Invalid status '{value}'. Expected one of: open, active, closed."
        ) from None


@handles_errors
def start(ids: Sequence[str], root: str | Path | None = None) -> dict[str, Any]:
    """Mark issues active (`dot on`)."""
    store = open_store(root)
    resolved = [store.resolve(i) for i in ids]
    for issue_id in resolved:
        store.activate(issue_id)
    return {"started": resolved}


@handles_errors
def close(
    ids: Sequence[str],
    reason: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Close issues (`dot off`). Stops at the first one that cannot close.

    An error dict still lists the issues closed before the failure.
    """
    store = open_store(root)
    resolved = [store.resolve(i) for i in ids]
    closed: list[str] = []
    for issue_id in resolved:
        try:
            store.close(issue_id, reason)
        except DotsError as exc:
            return {**exc.to_dict(), "closed": closed}
        closed.append(issue_id)
    return {"closed": closed}


@handles_errors
def update(
    issue: str,
    status: str | None = None,
    title: str | None = None,
    priority: int | None = None,
    assignee: str | None = None,
    description: str | None = None,
    reason: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Edit fields in place.

    A status change runs first so that a refused transition leaves the
    document untouched.
    """
    store = open_store(root)
    issue_id = store.resolve(issue)
    new_status = parse_status(status) if status else None
    if title is not None and not title.strip():
        raise InvalidOperation("Title is required")
    if priority is not None and not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise InvalidOperation(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")

    if new_status is not None and new_status is not store.get(issue_id).status:
        store.update_status(issue_id, new_status, reason)

    current = store.get(issue_id)
    changed = False
    if title is not None:
        current.title = title.strip()
        changed = True
    if priority is not None:
        current.priority = priority
        changed = True
    if assignee is not None:
        current.assignee = assignee or None
        changed = True
    if description is not None:
        current.description = description
        changed = True
    if changed:
        store.save(current)
    return {"updated": issue_id, "issue": issue_detail(current)}


@handles_errors
def delete(issue: str, root: str | Path | None = None) -> dict[str, Any]:
    """Remove an issue and everything under it, whatever its status."""
    store = open_store(root)
    removed = store.delete(store.resolve(issue))
    return {"deleted": removed}


@handles_errors
def archive(issue: str, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    issue_id = store.resolve(issue)
    store.archive(issue_id)
    return {"archived": issue_id}


@handles_errors
def move_to_backlog(plan: str, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    plan_id = store.resolve(plan)
    store.backlog(plan_id)
    return {"backlogged": plan_id}


@handles_errors
def activate_plan(plan: str, root: str | Path | None = None) -> dict[str, Any]:
    """Bring a plan back from backlog/."""
    store = open_store(root)
    plan_id = store.resolve(plan)
    store.unbacklog(plan_id)
    return {"activated": plan_id}


@handles_errors
def purge(root: str | Path | None = None) -> dict[str, Any]:
    """Delete everything under archive/."""
    store = open_store(root)
    return {"purged": store.purge_archive()}


@handles_errors
def fix(root: str | Path | None = None) -> dict[str, Any]:
    """Flatten orphan directories left behind by hand edits."""
    store = open_store(root)
    dirs, files = store.fix_orphans()
    if dirs:
        log.info("fixed %d orphan parent(s), moved %d file(s)", dirs, files)
    return {"fixed_dirs": dirs, "moved_files": files}
