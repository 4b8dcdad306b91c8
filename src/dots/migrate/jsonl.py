"""Bulk import from a JSONL export (one issue object per line).

    {"id": "bd-1", "title": "Fix login", "status": "in_progress", "priority": 1,
     "issue_type": "task", "created_at": "...",
     "dependencies": [{"depends_on_id": "bd-0", "type": "parent-child"}]}

Lines are parsed into frozen dataclasses first, so a malformed record is
rejected with its line number before anything is written. Per-record
failures (duplicate ID, missing parent) and per-edge failures are
counted and skipped. Closed issues are archived in a second pass, once
the whole tree exists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dots.errors import (
    AlreadyExists,
    ChildrenNotClosed,
    DependencyCycle,
    DependencyNotFound,
    InvalidOperation,
    MalformedRecord,
    NotFound,
)
from dots.store import Issue, Kind, Status, Storage

log = logging.getLogger(__name__)

PARENT_CHILD = "parent-child"
BLOCKS = "blocks"

_STATUS_MAP = {
    "open": Status.OPEN,
    "active": Status.ACTIVE,
    "in_progress": Status.ACTIVE,
    "closed": Status.CLOSED,
    "done": Status.CLOSED,
}


def map_status(value: str) -> Status:
    """External status vocabulary -> open/active/closed. Unknown means open."""
    return _STATUS_MAP.get(value.strip().lower(), Status.OPEN)


# ---------------------------------------------------------------------------
# Record schema
# ---------------------------------------------------------------------------


def _req_str(data: dict[str, Any], key: str, line_no: int) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedRecord(line_no, f"'{key}' must be a non-empty string")
    return value


def _opt_str(data: dict[str, Any], key: str, line_no: int) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedRecord(line_no, f"'{key}' must be a string")
    return value or None


@dataclass(frozen=True)
class JsonlDependency:
    depends_on_id: str
    type: str = BLOCKS

    @classmethod
    def from_dict(cls, data: Any, line_no: int) -> JsonlDependency:
        if not isinstance(data, dict):
            raise MalformedRecord(line_no, "dependency must be an object")
        kind = data.get("type", BLOCKS)
        if not isinstance(kind, str):
            raise MalformedRecord(line_no, "dependency 'type' must be a string")
        return cls(depends_on_id=_req_str(data, "depends_on_id", line_no), type=kind)


@dataclass(frozen=True)
class JsonlRecord:
    id: str
    title: str
    status: str
    priority: int
    issue_type: str
    created_at: str
    description: str | None = None
    assignee: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    close_reason: str | None = None
    dependencies: tuple[JsonlDependency, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, line_no: int) -> JsonlRecord:
        if not isinstance(data, dict):
            raise MalformedRecord(line_no, "record must be a JSON object")
        priority = data.get("priority")
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise MalformedRecord(line_no, "'priority' must be an integer")
        deps_raw = data.get("dependencies") or []
        if not isinstance(deps_raw, list):
            raise MalformedRecord(line_no, "'dependencies' must be a list")
        return cls(
            id=_req_str(data, "id", line_no),
            title=_req_str(data, "title", line_no),
            status=_req_str(data, "status", line_no),
            priority=priority,
            issue_type=_req_str(data, "issue_type", line_no),
            created_at=_req_str(data, "created_at", line_no),
            description=_opt_str(data, "description", line_no),
            assignee=_opt_str(data, "assignee", line_no),
            updated_at=_opt_str(data, "updated_at", line_no),
            closed_at=_opt_str(data, "closed_at", line_no),
            close_reason=_opt_str(data, "close_reason", line_no),
            dependencies=tuple(JsonlDependency.from_dict(d, line_no) for d in deps_raw),
        )

    @property
    def parent(self) -> str | None:
        return next((d.depends_on_id for d in self.dependencies if d.type == PARENT_CHILD), None)

    @property
    def blockers(self) -> list[str]:
        return [d.depends_on_id for d in self.dependencies if d.type == BLOCKS]


def read_records(path: str | Path) -> list[JsonlRecord]:
    """Parse every non-blank line. A missing file has no records."""
    path = Path(path)
    if not path.exists():
        log.warning("import file not found: %s", path)
        return []
    records = []
    with path.open(encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as exc:
                raise MalformedRecord(line_no, f"invalid JSON: {exc.msg}") from exc
            records.append(JsonlRecord.from_dict(data, line_no))
    return records


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


@dataclass
class ImportSummary:
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    skipped_edges: int = 0
    archived: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": len(self.imported),
            "skipped": len(self.skipped),
            "skipped_ids": self.skipped,
            "skipped_edges": self.skipped_edges,
            "archived": self.archived,
        }


def _kind_for(record: JsonlRecord, store: Storage) -> Kind:
    """Plans and milestones keep their kind only where the tree allows it."""
    if record.issue_type == Kind.PLAN.value and record.parent is None:
        return Kind.PLAN
    if record.issue_type == Kind.MILESTONE.value and record.parent:
        parent = store.find_entry(record.parent)
        if parent is not None and parent.owner_kind is Kind.PLAN:
            return Kind.MILESTONE
    return Kind.TASK


def import_jsonl(path: str | Path, store: Storage) -> ImportSummary:
    records = read_records(path)
    summary = ImportSummary()

    for record in records:
        status = map_status(record.status)
        issue = Issue(
            id=record.id,
            title=record.title,
            description=record.description or "",
            status=status,
            priority=record.priority,
            kind=_kind_for(record, store),
            assignee=record.assignee,
            created_at=record.created_at,
            closed_at=record.closed_at if status is Status.CLOSED else None,
            close_reason=record.close_reason if status is Status.CLOSED else None,
            parent=record.parent,
        )
        try:
            store.create(issue)
        except (AlreadyExists, NotFound, InvalidOperation) as exc:
            log.warning("skipping record %s: %s", record.id, exc)
            summary.skipped.append(record.id)
            continue
        summary.imported.append(record.id)

    imported = set(summary.imported)
    for record in records:
        if record.id not in imported:
            continue
        for blocker in record.blockers:
            try:
                store.add_dependency(record.id, blocker)
            except (DependencyNotFound, DependencyCycle) as exc:
                log.warning("skipping edge %s -> %s: %s", record.id, blocker, exc)
                summary.skipped_edges += 1

    for record in records:
        if record.id not in imported or map_status(record.status) is not Status.CLOSED:
            continue
        try:
            store.archive(record.id)
        except (ChildrenNotClosed, NotFound) as exc:
            log.debug("not archiving %s: %s", record.id, exc)
            continue
        summary.archived += 1
    return summary
