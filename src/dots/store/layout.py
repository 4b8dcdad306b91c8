"""Path rules for the store tree.

    .dots/
      p1-user-auth/                 plan      (_plan.md, artifacts/, done/)
        m1-backend-setup/           milestone (_milestone.md, done/)
          t1-create-model.md        task
          done/t2-add-index.md      closed task
        done/m2-frontend/           closed milestone
      t3-fix-typo.md                standalone issue
      t4-refactor/                  standalone issue with children
        t4-refactor.md
        t5-split-module.md
      done/p0-bootstrap/            closed plan
      backlog/p7-someday/           parked plan
      archive/t6-old-bug.md         closed standalone issue
      archive/t4-refactor/t8-x.md   closed child of an open standalone

An issue's ID is its file stem or its directory name. Its parent is
never stored: it is the owner of the directory the issue sits in, one
`done/` level skipped.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dots.defaults import (
    ARCHIVE_DIR,
    ARTIFACTS_DIR,
    BACKLOG_DIR,
    DONE_DIR,
    MILESTONE_FILE,
    PLAN_FILE,
    RALPH_DIR,
)
from dots.store.models import Kind


class Location(str, Enum):
    ACTIVE = "active"
    DONE = "done"
    BACKLOG = "backlog"
    ARCHIVE = "archive"


# Lookup checks locations in this order
LOCATION_ORDER = (Location.ACTIVE, Location.DONE, Location.BACKLOG, Location.ARCHIVE)
_RANK = {loc: i for i, loc in enumerate(LOCATION_ORDER)}

_SKIPPED_DIRS = frozenset({ARTIFACTS_DIR, RALPH_DIR})


@dataclass(frozen=True)
class Entry:
    """Where one issue lives on disk."""

    id: str
    doc: Path
    # The file itself for leaves; the owning directory otherwise
    unit: Path
    location: Location
    parent: str | None
    # PLAN/MILESTONE when the doc is _plan.md/_milestone.md
    owner_kind: Kind | None = None

    @property
    def is_dir_unit(self) -> bool:
        return self.unit != self.doc


def owner_doc(d: Path) -> Path | None:
    """The document that makes directory d an issue, if any."""
    for name in (PLAN_FILE, MILESTONE_FILE, f"{d.name}.md"):
        candidate = d / name
        if candidate.is_file():
            return candidate
    return None


def _owner_kind(doc: Path) -> Kind | None:
    if doc.name == PLAN_FILE:
        return Kind.PLAN
    if doc.name == MILESTONE_FILE:
        return Kind.MILESTONE
    return None


def location_of(root: Path, path: Path) -> Location:
    parts = path.relative_to(root).parts
    if not parts:
        return Location.ACTIVE
    if parts[0] == ARCHIVE_DIR:
        return Location.ARCHIVE
    if parts[0] == BACKLOG_DIR:
        return Location.BACKLOG
    if DONE_DIR in parts:
        return Location.DONE
    return Location.ACTIVE


def parent_of(root: Path, unit: Path) -> str | None:
    d = unit.parent
    if d.name == DONE_DIR and d != root:
        d = d.parent
    if d == root:
        return None
    if d.parent == root and d.name in (ARCHIVE_DIR, BACKLOG_DIR, DONE_DIR):
        return None
    if location_of(root, d) is Location.ARCHIVE:
        # archive/ mirrors the active tree, so the directory name is the parent
        return d.name
    if owner_doc(d) is not None:
        return d.name
    # Orphan container: no owner document
    return None


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------


def _entry(root: Path, issue_id: str, doc: Path, unit: Path) -> Entry:
    return Entry(
        id=issue_id,
        doc=doc,
        unit=unit,
        location=location_of(root, unit),
        parent=parent_of(root, unit),
        owner_kind=_owner_kind(doc),
    )


def _scan(root: Path, d: Path) -> Iterator[Entry]:
    with os.scandir(d) as it:
        items = sorted(it, key=lambda e: e.name)
    dir_names = {e.name for e in items if e.is_dir()}

    for item in items:
        name = item.name
        path = Path(item.path)
        if name.startswith("."):
            # Hidden entries include promotion staging directories
            continue
        if item.is_dir():
            if name in _SKIPPED_DIRS:
                continue
            if name not in (DONE_DIR, BACKLOG_DIR, ARCHIVE_DIR):
                doc = owner_doc(path)
                if doc is not None:
                    yield _entry(root, name, doc, path)
            yield from _scan(root, path)
        elif name.endswith(".md"):
            stem = name[:-3]
            if name in (PLAN_FILE, MILESTONE_FILE):
                continue
            if d != root and stem == d.name:
                continue
            if stem in dir_names and owner_doc(d / stem) is not None:
                # Leftover of an interrupted promotion; the directory wins
                continue
            yield _entry(root, stem, path, path)


def scan(root: Path) -> list[Entry]:
    """Every issue in the store: active first, then done, backlog, archive."""
    if not root.is_dir():
        return []
    entries = list(_scan(root, root))
    entries.sort(key=lambda e: _RANK[e.location])
    return entries


def find(root: Path, issue_id: str) -> Entry | None:
    for entry in scan(root):
        if entry.id == issue_id:
            return entry
    return None


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


def in_plan_tree(root: Path, unit: Path) -> bool:
    """True when some directory above unit is a plan."""
    d = unit.parent
    while d != root and root in d.parents:
        if (d / PLAN_FILE).is_file():
            return True
        d = d.parent
    return False


def is_relocated(entry: Entry) -> bool:
    """True when the unit already sits in a closed location."""
    return entry.location is Location.ARCHIVE or entry.unit.parent.name == DONE_DIR


def closed_destination(root: Path, entry: Entry) -> Path | None:
    """Where a closed issue's unit belongs; None if it is already there.

    Plans close into {root}/done/, anything inside a plan tree into its
    container's done/, and everything else into archive/ at the same
    relative path.
    """
    if is_relocated(entry):
        return None
    if entry.owner_kind is Kind.PLAN:
        return root / DONE_DIR / entry.unit.name
    if in_plan_tree(root, entry.unit):
        return entry.unit.parent / DONE_DIR / entry.unit.name
    return root / ARCHIVE_DIR / entry.unit.relative_to(root)


def backlog_path(root: Path, plan_id: str) -> Path:
    return root / BACKLOG_DIR / plan_id


def active_plan_path(root: Path, plan_id: str) -> Path:
    return root / plan_id
