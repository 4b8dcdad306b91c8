"""Mirror an agent's TodoWrite list into the store.

The hook receives a tool event on stdin:

    {"tool_name": "TodoWrite",
     "tool_input": {"todos": [{"content": "...", "status": "in_progress",
                               "activeForm": "..."}]}}

Each todo's content is mapped to an issue ID. New todos become
standalone issues, status changes are synced, and completed todos close
their issue and leave the mapping.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dots.errors import InvalidOperation, MalformedDocument
from dots.store import Issue, Kind, Status, Storage

from .mapping import load_mapping, save_mapping

log = logging.getLogger(__name__)

TODO_TOOL = "TodoWrite"
CLOSED_VIA_TODO = "Completed via TodoWrite"
TODO_STATUSES = ("pending", "in_progress", "completed")
IN_PROGRESS_PRIORITY = 1


@dataclass(frozen=True)
class Todo:
    content: str
    status: str
    active_form: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Todo:
        if not isinstance(data, dict):
            raise MalformedDocument("<stdin>", "todo must be an object")
        content = data.get("content")
        status = data.get("status")
        active_form = data.get("activeForm")
        if not isinstance(content, str) or not isinstance(status, str):
            raise MalformedDocument("<stdin>", "todo needs string 'content' and 'status'")
        if active_form is not None and not isinstance(active_form, str):
            raise MalformedDocument("<stdin>", "'activeForm' must be a string")
        return cls(content=content, status=status, active_form=active_form or None)


@dataclass(frozen=True)
class ToolEvent:
    tool_name: str
    todos: tuple[Todo, ...] = ()

    @classmethod
    def from_json(cls, text: str) -> ToolEvent:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedDocument("<stdin>", f"invalid JSON: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise MalformedDocument("<stdin>", "event must be an object")
        tool_name = data.get("tool_name")
        if not isinstance(tool_name, str):
            raise MalformedDocument("<stdin>", "missing 'tool_name'")
        tool_input = data.get("tool_input") or {}
        if not isinstance(tool_input, dict):
            raise MalformedDocument("<stdin>", "'tool_input' must be an object")
        todos_raw = tool_input.get("todos") or []
        if not isinstance(todos_raw, list):
            raise MalformedDocument("<stdin>", "'todos' must be a list")
        return cls(tool_name=tool_name, todos=tuple(Todo.from_dict(t) for t in todos_raw))


def validate_todos(todos: tuple[Todo, ...]) -> None:
    """Reject the whole batch before anything is changed."""
    for todo in todos:
        if not todo.content.strip():
            raise InvalidOperation("Todo content is empty")
        if todo.status not in TODO_STATUSES:
            raise InvalidOperation(
                f"Invalid todo status '{todo.status}'. Expected one of: {', '.join(TODO_STATUSES)}."
            )


def _live_issue(store: Storage, issue_id: str | None) -> Issue | None:
    """The mapped issue if it still exists and is not closed."""
    if issue_id is None:
        return None
    entry = store.find_entry(issue_id)
    if entry is None:
        return None
    issue = store.read(entry)
    return None if issue.status is Status.CLOSED else issue


def sync_todos(event: ToolEvent, store: Storage, mapping_path: str | Path) -> dict[str, Any]:
    if event.tool_name != TODO_TOOL:
        return {"synced": False, "reason": f"ignored tool {event.tool_name}"}
    validate_todos(event.todos)

    mapping = load_mapping(mapping_path)
    created: list[str] = []
    updated: list[str] = []
    closed: list[str] = []
    try:
        for todo in event.todos:
            issue_id = mapping.get(todo.content)
            if todo.status == "completed":
                if issue_id is None:
                    continue
                if store.exists(issue_id):
                    store.close(issue_id, CLOSED_VIA_TODO)
                    closed.append(issue_id)
                del mapping[todo.content]
                continue

            wanted = Status.ACTIVE if todo.status == "in_progress" else Status.OPEN
            current = _live_issue(store, issue_id)
            if current is not None:
                if current.status is not wanted:
                    store.update_status(current.id, wanted)
                    updated.append(current.id)
                continue

            issue = Issue(
                id=store.allocate_id(Kind.TASK, todo.content),
                title=todo.content.strip(),
                description=todo.active_form or "",
                status=wanted,
                priority=IN_PROGRESS_PRIORITY if wanted is Status.ACTIVE else store.config.default_priority,
            )
            store.create(issue)
            mapping[todo.content] = issue.id
            created.append(issue.id)
    finally:
        save_mapping(mapping_path, mapping)

    log.debug("todo sync: %d created, %d updated, %d closed", len(created), len(updated), len(closed))
    return {"synced": True, "created": created, "updated": updated, "closed": closed}
