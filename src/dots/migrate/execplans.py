"""Turn a directory of ExecPlan markdown files into plans."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from dots.errors import InvalidOperation
from dots.store import Issue, Kind, Storage

log = logging.getLogger(__name__)

_H1 = re.compile(r"^#[ \t]+(.+?)\s*$", re.MULTILINE)


def plan_title(path: Path, content: str) -> str:
    """First level-one heading, else the file name."""
    m = _H1.search(content)
    if m:
        return m.group(1)
    return path.stem.replace("-", " ").replace("_", " ").strip() or path.stem


def migrate_execplans(source: str | Path, store: Storage) -> list[dict[str, str]]:
    """Create one plan per *.md file; the file content becomes the body.

    Source files are left in place. Returns [{"source", "id"}, ...].
    """
    source = Path(source)
    if not source.is_dir():
        raise InvalidOperation(f"ExecPlans directory not found: {source}")

    migrated = []
    for path in sorted(source.glob("*.md")):
        with path.open(encoding="utf-8", newline="") as fh:
            content = fh.read()
        title = plan_title(path, content)
        issue = Issue(
            id=store.allocate_id(Kind.PLAN, title),
            title=title,
            description=content,
            kind=Kind.PLAN,
            priority=store.config.default_priority,
        )
        store.create(issue)
        log.debug("migrated %s -> %s", path, issue.id)
        migrated.append({"source": str(path), "id": issue.id})
    return migrated
