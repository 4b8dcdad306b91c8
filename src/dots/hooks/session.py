"""Session-start summary: open plans, active work, what is ready next."""

from __future__ import annotations

from typing import Any

from dots.store import Kind, Location, Status, Storage
from dots.store.deps import is_ready, ready_sort_key

HEADER = "--- DOTS ---"


def session_summary(store: Storage) -> dict[str, Any]:
    pairs = [(e, i) for e, i in store.iter_issues() if e.location is Location.ACTIVE]
    statuses = {issue.id: issue.status for issue in store.issues()}

    plans = [i for _, i in pairs if i.kind is Kind.PLAN and i.status is not Status.CLOSED]
    active = [i for _, i in pairs if i.status is Status.ACTIVE and i.kind is not Kind.PLAN]
    ready = [i for _, i in pairs if is_ready(i, statuses) and i.kind is not Kind.PLAN]
    for group in (plans, active, ready):
        group.sort(key=ready_sort_key)

    def rows(items: list) -> list[dict[str, Any]]:
        return [{"id": i.id, "title": i.title, "priority": i.priority} for i in items]

    return {"plans": rows(plans), "active": rows(active), "ready": rows(ready)}


def format_session(summary: dict[str, Any]) -> str:
    """Plain text for injection into an agent's context. Empty when nothing is open."""
    sections = (("PLANS", summary["plans"]), ("ACTIVE", summary["active"]), ("READY", summary["ready"]))
    if not any(items for _, items in sections):
        return ""
    lines = [HEADER]
    for label, items in sections:
        if not items:
            continue
        lines.append(f"{label}:")
        lines.extend(f"  [{i['id']}] {i['title']}" for i in items)
    return "\n".join(lines)
