"""Blocking graph over the `blocks` lists.

An issue's `blocks` field lists the issues that must close before it is
unblocked. The name is historical: it reads as "blocked by".
Readiness is always computed from live statuses, never cached.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping

from dots.store.models import Issue, Status

EdgeLookup = Callable[[str], Iterable[str]]

_UNRESOLVED = (Status.OPEN, Status.ACTIVE)


def would_create_cycle(blockee: str, blocker: str, edges: EdgeLookup) -> bool:
    """True if `blockee` is reachable from `blocker` (self edges included).

    Depth-first walk through existing edges starting at `blocker`.
    """
    if blockee == blocker:
        return True
    seen: set[str] = set()
    stack = [blocker]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        for nxt in edges(current):
            if nxt == blockee:
                return True
            if nxt not in seen:
                stack.append(nxt)
    return False


def open_blockers(issue: Issue, statuses: Mapping[str, Status]) -> list[str]:
    """Direct blockers that are still open or active.

    A blocker missing from `statuses` (deleted or purged) does not block.
    """
    return [b for b in issue.blocks if statuses.get(b) in _UNRESOLVED]


def is_blocked(issue: Issue, statuses: Mapping[str, Status]) -> bool:
    return bool(open_blockers(issue, statuses))


def is_ready(issue: Issue, statuses: Mapping[str, Status]) -> bool:
    """Open, and every known blocker closed."""
    return issue.status is Status.OPEN and not is_blocked(issue, statuses)


def ready_sort_key(issue: Issue) -> tuple[int, str, str]:
    return (issue.priority, issue.created_at, issue.id)
