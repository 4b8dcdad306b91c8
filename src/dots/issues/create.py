"""Create issues: standalone dots, plans, milestones, plan tasks."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dots.errors import InvalidOperation
from dots.store import Issue, Kind, Status, Storage

from ._helpers import (
    MILESTONE_TEMPLATE,
    PLAN_TEMPLATE,
    TASK_TEMPLATE,
    handles_errors,
    issue_detail,
    open_store,
    with_description,
)


def _new(
    store: Storage,
    kind: Kind,
    title: str,
    *,
    description: str = "",
    priority: int | None = None,
    parent: str | None = None,
    blocks: Sequence[str] = (),
    assignee: str | None = None,
    status: Status = Status.OPEN,
    scope: str | None = None,
    acceptance: str | None = None,
) -> Issue:
    if not title or not title.strip():
        raise InvalidOperation("Title is required")
    parent_id = store.resolve(parent) if parent else None
    if parent_id and store.get(parent_id).status is Status.CLOSED:
        raise InvalidOperation(f"Parent {parent_id} is closed")
    blocker_ids = [store.resolve(b) for b in blocks]
    issue = Issue(
        id=store.allocate_id(kind, title, parent_id),
        title=title.strip(),
        description=description,
        status=status,
        priority=store.config.default_priority if priority is None else priority,
        kind=kind,
        assignee=assignee or None,
        blocks=blocker_ids,
        scope=scope or None,
        acceptance=acceptance or None,
        parent=parent_id,
    )
    return store.create(issue)


@handles_errors
def add(
    title: str,
    description: str = "",
    priority: int | None = None,
    parent: str | None = None,
    blocks: Sequence[str] = (),
    assignee: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Create a standalone issue, optionally under a parent and blocked by others."""
    store = open_store(root)
    issue = _new(
        store, Kind.TASK, title,
        description=description, priority=priority, parent=parent,
        blocks=blocks, assignee=assignee,
    )
    return {"created": issue.id, "issue": issue_detail(issue)}


@handles_errors
def create_plan(
    title: str,
    scope: str | None = None,
    acceptance: str | None = None,
    priority: int | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Create a plan directory with artifacts/ and done/."""
    store = open_store(root)
    issue = _new(
        store, Kind.PLAN, title,
        description=PLAN_TEMPLATE, priority=priority, scope=scope, acceptance=acceptance,
    )
    return {"created": issue.id, "issue": issue_detail(issue)}


@handles_errors
def add_milestone(
    plan: str,
    title: str,
    description: str | None = None,
    priority: int | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    store = open_store(root)
    plan_id = store.resolve(plan)
    if store.get(plan_id).kind is not Kind.PLAN:
        raise InvalidOperation(f"{plan_id} is not a plan")
    issue = _new(
        store, Kind.MILESTONE, title,
        description=with_description(MILESTONE_TEMPLATE, description),
        priority=priority, parent=plan_id,
    )
    return {"created": issue.id, "issue": issue_detail(issue)}


@handles_errors
def add_task(
    milestone: str,
    title: str,
    description: str | None = None,
    priority: int | None = None,
    blocks: Sequence[str] = (),
    root: str | Path | None = None,
) -> dict[str, Any]:
    store = open_store(root)
    milestone_id = store.resolve(milestone)
    if store.get(milestone_id).kind is not Kind.MILESTONE:
        raise InvalidOperation(f"{milestone_id} is not a milestone")
    issue = _new(
        store, Kind.TASK, title,
        description=with_description(TASK_TEMPLATE, description),
        priority=priority, parent=milestone_id, blocks=blocks,
    )
    return {"created": issue.id, "issue": issue_detail(issue)}
