"""Read-only queries: show, list, find, ready, tree, resolve."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dots.errors import InvalidOperation
from dots.store import Issue, Kind, Location, Status, Storage
from dots.store.deps import open_blockers

from ._helpers import handles_errors, issue_detail, issue_summary, open_store

_SEARCH_FIELDS = ("title", "description", "close_reason", "created_at", "closed_at")


def _list_key(issue: Issue) -> tuple[int, str, str]:
    return (issue.priority, issue.created_at, issue.id)


@handles_errors
def resolve_id(prefix: str, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    return {"id": store.resolve(prefix)}


@handles_errors
def show(issue: str, root: str | Path | None = None) -> dict[str, Any]:
    """Full record plus children, open blockers and on-disk location."""
    store = open_store(root)
    entry = store.entry(store.resolve(issue))
    found = store.read(entry)
    statuses = store.statuses()
    return {
        "issue": issue_detail(found),
        "children": [issue_summary(c) for c in store.children(found.id)],
        "blocked_by": open_blockers(found, statuses),
        "location": entry.location.value,
        "path": str(entry.doc),
    }


@handles_errors
def list_issues(
    status: str | None = None,
    kind: str | None = None,
    include_done: bool = False,
    include_backlog: bool = False,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Issues in the active tree (closed ones hidden unless asked for)."""
    store = open_store(root)
    locations = {Location.ACTIVE}
    if include_done:
        locations |= {Location.DONE, Location.ARCHIVE}
    if include_backlog:
        locations.add(Location.BACKLOG)

    wanted_status = _parse_enum(Status, status, "status") if status else None
    wanted_kind = _parse_enum(Kind, kind, "kind") if kind else None

    pairs = list(store.iter_issues())
    statuses = {issue.id: issue.status for _, issue in pairs}
    selected = []
    for entry, issue in pairs:
        if entry.location not in locations:
            continue
        if wanted_status is not None:
            if issue.status is not wanted_status:
                continue
        elif issue.status is Status.CLOSED and not include_done:
            continue
        if wanted_kind is not None and issue.kind is not wanted_kind:
            continue
        selected.append(issue)
    selected.sort(key=_list_key)
    return {"issues": [issue_summary(i, statuses) for i in selected]}


def _parse_enum(enum_type: type, value: str, label: str) -> Any:
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_type)
        raise InvalidOperation(f"Invalid {label} '{value}'. Expected one of: {choices}.") from None


@handles_errors
def ready(root: str | Path | None = None) -> dict[str, Any]:
    """Open issues whose blockers are all closed."""
    store = open_store(root)
    return {"issues": [issue_summary(i) for i in store.ready()]}


@handles_errors
def find(query: str, root: str | Path | None = None) -> dict[str, Any]:
    """Case-insensitive search over text and timestamps; unresolved issues first."""
    needle = query.strip().lower()
    if not needle:
        raise InvalidOperation("Search query is empty")
    store = open_store(root)
    hits: list[Issue] = []
    for _, issue in store.iter_issues():
        haystack = (getattr(issue, name) or "" for name in _SEARCH_FIELDS)
        if any(needle in text.lower() for text in haystack):
            hits.append(issue)
    hits.sort(key=lambda i: i.status is Status.CLOSED)
    return {"issues": [issue_summary(i) for i in hits]}


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


def _node(
    issue: Issue,
    by_parent: dict[str, list[Issue]],
    statuses: dict[str, Status],
    include_closed: bool,
) -> dict[str, Any]:
    children = [
        _node(c, by_parent, statuses, include_closed)
        for c in sorted(by_parent.get(issue.id, []), key=_list_key)
        if include_closed or c.status is not Status.CLOSED
    ]
    node = issue_summary(issue, statuses)
    node["children"] = children
    return node


def build_tree(store: Storage, issue_id: str | None = None) -> list[dict[str, Any]]:
    """Nested nodes for one issue (closed children included) or all open roots."""
    pairs = list(store.iter_issues())
    statuses = {issue.id: issue.status for _, issue in pairs}
    by_parent: dict[str, list[Issue]] = {}
    for _, issue in pairs:
        if issue.parent:
            by_parent.setdefault(issue.parent, []).append(issue)

    if issue_id is not None:
        root_issue = next(issue for _, issue in pairs if issue.id == issue_id)
        return [_node(root_issue, by_parent, statuses, include_closed=True)]

    roots = [
        issue
        for entry, issue in pairs
        if entry.location is Location.ACTIVE
        and issue.status is not Status.CLOSED
        and (issue.parent is None or issue.parent not in statuses)
    ]
    roots.sort(key=_list_key)
    return [_node(r, by_parent, statuses, include_closed=False) for r in roots]


@handles_errors
def tree(issue: str | None = None, root: str | Path | None = None) -> dict[str, Any]:
    store = open_store(root)
    issue_id = store.resolve(issue) if issue else None
    if issue_id is not None:
        store.get(issue_id)
    return {"tree": build_tree(store, issue_id)}
