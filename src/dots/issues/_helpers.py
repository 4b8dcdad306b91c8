"""Shared helpers for issue operations — store access, result shaping, templates."""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from dots.defaults import resolve_dots_dir
from dots.errors import DotsError
from dots.store import Issue, Storage
from dots.store.deps import open_blockers
from dots.store.models import Status

F = TypeVar("F", bound=Callable[..., dict[str, Any]])

# ---------------------------------------------------------------------------
# Section headings that journal entries are appended under
# ---------------------------------------------------------------------------

PROGRESS_HEADING = "## Progress"
DISCOVERIES_HEADING = "## Surprises & Discoveries"
DECISIONS_HEADING = "## Decision Log"

# ---------------------------------------------------------------------------
# Body templates
# ---------------------------------------------------------------------------

PLAN_TEMPLATE = """\
## Purpose / Big Picture

## Milestones

## Progress

## Surprises & Discoveries

## Decision Log

## Context and Orientation

## Plan of Work

## Validation and Acceptance

## Idempotence and Recovery

## Outcomes & Retrospective
"""

MILESTONE_TEMPLATE = """\
## Goal

## Tasks

## Notes

## Outcomes & Retrospective
"""

TASK_TEMPLATE = """\
## Description

## Acceptance Criteria

## Outcomes & Retrospective
"""


def with_description(template: str, description: str | None) -> str:
    """Template body with the description placed under its first heading."""
    if not description:
        return template
    first, _, rest = template.partition("\n\n")
    return f"{first}\n\n{description.rstrip()}\n\n{rest}"


# ---------------------------------------------------------------------------
# Store access and results
# ---------------------------------------------------------------------------


def open_store(root: str | Path | None = None) -> Storage:
    return Storage.open(root if root is not None else resolve_dots_dir())


def handles_errors(fn: F) -> F:
    """Turn DotsError into an {"error", "code"} dict. OSError propagates."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            return fn(*args, **kwargs)
        except DotsError as exc:
            return exc.to_dict()

    return wrapper  # type: ignore[return-value]


def issue_summary(issue: Issue, statuses: dict[str, Status] | None = None) -> dict[str, Any]:
    """Compact view used in lists."""
    data: dict[str, Any] = {
        "id": issue.id,
        "title": issue.title,
        "status": issue.status.value,
        "priority": issue.priority,
        "kind": issue.kind.value,
    }
    if issue.parent:
        data["parent"] = issue.parent
    if issue.assignee:
        data["assignee"] = issue.assignee
    if statuses is not None:
        data["blocked"] = bool(open_blockers(issue, statuses))
    return data


def issue_detail(issue: Issue) -> dict[str, Any]:
    """Full view used by show/create results."""
    data = issue.to_dict()
    return {k: v for k, v in data.items() if v not in (None, "", [])}
