"""Issue record and its vocabularies."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from dots.defaults import DEFAULT_PRIORITY


class Status(str, Enum):
    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"

    @property
    def char(self) -> str:
        return _STATUS_CHARS[self]

    @property
    def symbol(self) -> str:
        return _STATUS_SYMBOLS[self]


_STATUS_CHARS = {Status.OPEN: "o", Status.ACTIVE: ">", Status.CLOSED: "x"}
_STATUS_SYMBOLS = {Status.OPEN: "○", Status.ACTIVE: "◐", Status.CLOSED: "✓"}


class Kind(str, Enum):
    TASK = "task"
    PLAN = "plan"
    MILESTONE = "milestone"


def now_iso() -> str:
    """Local time with microseconds and UTC offset: 2026-01-02T03:04:05.000006+01:00."""
    return datetime.now().astimezone().isoformat(timespec="microseconds")


@dataclass
class Issue:
    id: str
    title: str
    description: str = ""
    status: Status = Status.OPEN
    priority: int = DEFAULT_PRIORITY
    kind: Kind = Kind.TASK
    assignee: str | None = None
    created_at: str = ""
    closed_at: str | None = None
    close_reason: str | None = None
    # Issues that must be closed before this one is unblocked
    blocks: list[str] = field(default_factory=list)
    scope: str | None = None
    acceptance: str | None = None
    # Derived from the file's position, never written to the header
    parent: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["kind"] = self.kind.value
        return data
