"""Storage — the filesystem-backed issue store.

All state lives in the directory tree under `root`; a Storage object
holds nothing but the root path and the store config, so every call
sees the current disk state. Methods raise DotsError subclasses for
rule violations (before touching any file) and let OSError through.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path

from dots.config import DotsConfig, load_config
from dots.defaults import (
    ARCHIVE_DIR,
    ARTIFACTS_DIR,
    BACKLOG_DIR,
    DONE_DIR,
    MAX_PRIORITY,
    MILESTONE_FILE,
    MIN_PRIORITY,
    PLAN_FILE,
    RESERVED_NAMES,
)
from dots.errors import (
    AlreadyExists,
    ChildrenNotClosed,
    DependencyCycle,
    DependencyNotFound,
    InvalidOperation,
    MalformedDocument,
    NotFound,
)
from dots.fs import atomic_write_file, move_unit, promote_leaf, prune_empty_dirs, remove_unit
from dots.store import deps, layout
from dots.store.document import append_to_section, read_issue, render
from dots.store.ids import allocate_flat, allocate_scoped, is_valid_id
from dots.store.layout import Entry, Location
from dots.store.models import Issue, Kind, Status, now_iso
from dots.store.resolve import resolve

log = logging.getLogger(__name__)


class Storage:
    def __init__(self, root: str | Path, config: DotsConfig | None = None) -> None:
        self.root = Path(root)
        self.config = config if config is not None else load_config(self.root)

    @classmethod
    def open(cls, root: str | Path) -> Storage:
        """Open the store at root, creating the directory if needed."""
        path = Path(root)
        path.mkdir(parents=True, exist_ok=True)
        return cls(path)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def entries(self) -> list[Entry]:
        return layout.scan(self.root)

    def _entry_map(self) -> dict[str, Entry]:
        result: dict[str, Entry] = {}
        for entry in self.entries():
            if entry.id in result:
                log.warning("duplicate id %s at %s (using %s)", entry.id, entry.doc, result[entry.id].doc)
                continue
            result[entry.id] = entry
        return result

    def all_ids(self) -> set[str]:
        return {e.id for e in self.entries()}

    def find_entry(self, issue_id: str) -> Entry | None:
        return layout.find(self.root, issue_id)

    def entry(self, issue_id: str) -> Entry:
        found = self.find_entry(issue_id)
        if found is None:
            raise NotFound(issue_id)
        return found

    def exists(self, issue_id: str) -> bool:
        return self.find_entry(issue_id) is not None

    def read(self, entry: Entry) -> Issue:
        return read_issue(entry.doc, entry.id, entry.parent)

    def get(self, issue_id: str) -> Issue:
        """Read one issue from whichever location holds it."""
        return self.read(self.entry(issue_id))

    def resolve(self, prefix: str) -> str:
        return resolve(prefix, self.all_ids())

    def iter_issues(self, locations: Iterable[Location] | None = None) -> Iterator[tuple[Entry, Issue]]:
        """(entry, issue) pairs in lookup order. Unreadable documents are skipped."""
        wanted = set(locations) if locations is not None else None
        for entry in self.entries():
            if wanted is not None and entry.location not in wanted:
                continue
            try:
                yield entry, self.read(entry)
            except MalformedDocument as exc:
                log.warning("skipping %s", exc)

    def issues(self, locations: Iterable[Location] | None = None) -> list[Issue]:
        return [issue for _, issue in self.iter_issues(locations)]

    def statuses(self) -> dict[str, Status]:
        return {issue.id: issue.status for issue in self.issues()}

    def children(self, issue_id: str) -> list[Issue]:
        """Direct children in every location. Unreadable children raise."""
        return [self.read(e) for e in self.entries() if e.parent == issue_id]

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def allocate_id(self, kind: Kind, title: str, parent: str | None = None) -> str:
        """Pick a fresh ID for an issue of `kind` created under `parent`."""
        entries = self._entry_map()
        taken = set(entries)
        parent_entry = entries.get(parent) if parent else None

        if kind is Kind.PLAN:
            scopes = [self.root, self.root / DONE_DIR, self.root / BACKLOG_DIR]
        elif parent_entry is not None and parent_entry.owner_kind in (Kind.PLAN, Kind.MILESTONE):
            scopes = [parent_entry.unit, parent_entry.unit / DONE_DIR]
        elif self.config.id_scheme == "flat":
            return allocate_flat(title, taken, self.config.prefix or kind.value)
        else:
            scopes = [self.root, self.root / ARCHIVE_DIR]
        return allocate_scoped(scopes, kind, title, taken)

    # ------------------------------------------------------------------
    # Create / write
    # ------------------------------------------------------------------

    def _write(self, path: Path, issue: Issue) -> None:
        atomic_write_file(path, render(issue))

    def _validate_fields(self, issue: Issue) -> None:
        if not issue.title or not issue.title.strip():
            raise InvalidOperation("Title is required")
        if isinstance(issue.priority, bool) or not isinstance(issue.priority, int):
            raise InvalidOperation(f"Priority must be an integer, got {issue.priority!r}")
        if not MIN_PRIORITY <= issue.priority <= MAX_PRIORITY:
            raise InvalidOperation(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")

    def _container(self, parent: Entry) -> Path:
        """Directory that holds parent's children, promoting a leaf first."""
        if parent.is_dir_unit:
            return parent.unit
        return promote_leaf(parent.doc).parent

    def create(self, issue: Issue) -> Issue:
        """Write a new issue. `issue.parent` decides where it lands.

        Plans go to the root, milestones into a plan, everything else
        into its parent's directory (or the root without a parent).
        """
        self._validate_fields(issue)
        if not is_valid_id(issue.id):
            raise InvalidOperation(f"Invalid issue ID: '{issue.id}'")

        entries = self._entry_map()
        if issue.id in entries:
            raise AlreadyExists(f"Issue already exists: {issue.id}")

        blocks: list[str] = []
        for blocker in issue.blocks:
            if blocker not in entries:
                raise DependencyNotFound(blocker)
            if blocker not in blocks:
                blocks.append(blocker)
        issue.blocks = blocks

        parent_entry: Entry | None = None
        if issue.parent:
            parent_entry = entries.get(issue.parent)
            if parent_entry is None:
                raise NotFound(issue.parent, f"Parent not found: {issue.parent}")

        if issue.kind is Kind.PLAN and parent_entry is not None:
            raise InvalidOperation("A plan cannot have a parent")
        if issue.kind is Kind.MILESTONE and (parent_entry is None or parent_entry.owner_kind is not Kind.PLAN):
            raise InvalidOperation(f"Milestone parent must be a plan: {issue.parent}")

        if not issue.created_at:
            issue.created_at = now_iso()

        if issue.kind is Kind.PLAN:
            unit = self.root / issue.id
            path = unit / PLAN_FILE
            (unit / ARTIFACTS_DIR).mkdir(parents=True, exist_ok=True)
            (unit / DONE_DIR).mkdir(exist_ok=True)
        elif issue.kind is Kind.MILESTONE:
            assert parent_entry is not None
            unit = parent_entry.unit / issue.id
            path = unit / MILESTONE_FILE
            (unit / DONE_DIR).mkdir(parents=True, exist_ok=True)
        elif parent_entry is not None:
            path = self._container(parent_entry) / f"{issue.id}.md"
        else:
            path = self.root / f"{issue.id}.md"

        self._write(path, issue)
        log.debug("created %s at %s", issue.id, path)
        return issue

    def save(self, issue: Issue) -> Issue:
        """Rewrite an existing issue in place. Its location is unchanged."""
        self._validate_fields(issue)
        entry = self.entry(issue.id)
        self._write(entry.doc, issue)
        return issue

    def append_section(self, issue_id: str, heading: str, text: str) -> Issue:
        issue = self.get(issue_id)
        issue.description = append_to_section(issue.description, heading, text)
        return self.save(issue)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def update_status(self, issue_id: str, status: Status, reason: str | None = None) -> Issue:
        if status is Status.CLOSED:
            return self.close(issue_id, reason)
        if status is Status.ACTIVE:
            return self.activate(issue_id)
        issue = self.get(issue_id)
        if issue.status is Status.CLOSED:
            raise InvalidOperation(f"{issue_id} is closed; closed issues cannot be reopened")
        issue.status = Status.OPEN
        return self.save(issue)

    def activate(self, issue_id: str) -> Issue:
        """open -> active, in place."""
        issue = self.get(issue_id)
        if issue.status is Status.CLOSED:
            raise InvalidOperation(f"{issue_id} is closed; closed issues cannot be reopened")
        if issue.status is not Status.ACTIVE:
            issue.status = Status.ACTIVE
            self.save(issue)
        return issue

    def close(self, issue_id: str, reason: str | None = None) -> Issue:
        """Close an issue and move it (with its subtree) to its closed location.

        Refuses while any direct child is not closed. The unit moves
        first and the document is rewritten at its new path, so a failed
        move leaves the issue open where it was.
        """
        entry = self.entry(issue_id)
        issue = self.read(entry)
        pending = [c.id for c in self.children(issue_id) if c.status is not Status.CLOSED]
        if pending:
            raise ChildrenNotClosed(issue_id, sorted(pending))

        doc = self._relocate_closed(entry)
        if issue.status is not Status.CLOSED:
            issue.status = Status.CLOSED
            issue.closed_at = now_iso()
            if reason:
                issue.close_reason = reason
            self._write(doc, issue)
        return issue

    def archive(self, issue_id: str) -> Issue:
        """Move an already-closed issue to its closed location."""
        entry = self.entry(issue_id)
        issue = self.read(entry)
        if issue.status is not Status.CLOSED:
            raise InvalidOperation(f"{issue_id} is not closed")
        pending = [c.id for c in self.children(issue_id) if c.status is not Status.CLOSED]
        if pending:
            raise ChildrenNotClosed(issue_id, sorted(pending))
        self._relocate_closed(entry)
        return issue

    def _relocate_closed(self, entry: Entry) -> Path:
        """Move the unit to its closed location; returns the document's path there."""
        dest = layout.closed_destination(self.root, entry)
        if dest is None:
            return entry.doc
        move_unit(entry.unit, dest)
        prune_empty_dirs(entry.unit.parent, self.root)
        log.debug("closed %s -> %s", entry.id, dest)
        if entry.is_dir_unit:
            return dest / entry.doc.name
        return dest

    # ------------------------------------------------------------------
    # Delete / purge
    # ------------------------------------------------------------------

    def _descendants(self, issue_id: str, entries: list[Entry]) -> list[Entry]:
        by_parent: dict[str, list[Entry]] = {}
        for e in entries:
            if e.parent:
                by_parent.setdefault(e.parent, []).append(e)
        found: list[Entry] = []
        stack = [issue_id]
        seen = {issue_id}
        while stack:
            for child in by_parent.get(stack.pop(), []):
                if child.id not in seen:
                    seen.add(child.id)
                    found.append(child)
                    stack.append(child.id)
        return found

    def delete(self, issue_id: str) -> list[str]:
        """Remove an issue and its whole subtree regardless of status.

        Children already moved to done/ or archive/ go too. Removed IDs
        are dropped from every remaining `blocks` list. Returns the
        removed IDs.
        """
        entries = self.entries()
        target = next((e for e in entries if e.id == issue_id), None)
        if target is None:
            raise NotFound(issue_id)

        doomed = [target, *self._descendants(issue_id, entries)]
        removed = [e.id for e in doomed]
        for e in doomed:
            if e.unit.exists():
                remove_unit(e.unit)
                if e.location is Location.ARCHIVE:
                    prune_empty_dirs(e.unit.parent, self.root / ARCHIVE_DIR)

        gone = set(removed)
        for _, other in self.iter_issues():
            if gone.intersection(other.blocks):
                other.blocks = [b for b in other.blocks if b not in gone]
                self.save(other)
        log.debug("deleted %s", removed)
        return removed

    def purge_archive(self) -> int:
        """Empty archive/ (the directory itself stays). Returns issues removed."""
        archive = self.root / ARCHIVE_DIR
        count = sum(1 for e in self.entries() if e.location is Location.ARCHIVE)
        if archive.is_dir():
            for child in archive.iterdir():
                remove_unit(child)
        log.debug("purged %d archived issue(s)", count)
        return count

    # ------------------------------------------------------------------
    # Backlog
    # ------------------------------------------------------------------

    def _plan_entry(self, plan_id: str) -> Entry:
        entry = self.entry(plan_id)
        if entry.owner_kind is not Kind.PLAN:
            raise InvalidOperation(f"{plan_id} is not a plan")
        return entry

    def backlog(self, plan_id: str) -> Issue:
        """Park an open plan under backlog/ with its whole subtree."""
        entry = self._plan_entry(plan_id)
        issue = self.read(entry)
        if issue.status is Status.CLOSED:
            raise InvalidOperation(f"{plan_id} is closed")
        if entry.unit != layout.active_plan_path(self.root, plan_id):
            raise NotFound(plan_id, f"Plan {plan_id} is not in the active root")
        move_unit(entry.unit, layout.backlog_path(self.root, plan_id))
        return issue

    def unbacklog(self, plan_id: str) -> Issue:
        """Bring a backlogged plan back to the active root."""
        entry = self._plan_entry(plan_id)
        if entry.unit != layout.backlog_path(self.root, plan_id):
            raise NotFound(plan_id, f"Plan {plan_id} is not in the backlog")
        dest = layout.active_plan_path(self.root, plan_id)
        if dest.exists():
            raise AlreadyExists(f"{dest} already exists")
        issue = self.read(entry)
        move_unit(entry.unit, dest)
        prune_empty_dirs(entry.unit.parent, self.root)
        return issue

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, blockee: str, blocker: str) -> bool:
        """Make `blockee` wait for `blocker`. Returns False if the edge existed."""
        entries = self._entry_map()
        for issue_id in (blockee, blocker):
            if issue_id not in entries:
                raise DependencyNotFound(issue_id)

        cache: dict[str, list[str]] = {}

        def edges(issue_id: str) -> list[str]:
            if issue_id not in cache:
                e = entries.get(issue_id)
                cache[issue_id] = self.read(e).blocks if e is not None else []
            return cache[issue_id]

        issue = self.read(entries[blockee])
        if blocker in issue.blocks:
            return False
        if deps.would_create_cycle(blockee, blocker, edges):
            raise DependencyCycle(blockee, blocker)
        issue.blocks.append(blocker)
        self._write(entries[blockee].doc, issue)
        return True

    def remove_dependency(self, blockee: str, blocker: str) -> bool:
        issue = self.get(blockee)
        if blocker not in issue.blocks:
            return False
        issue.blocks = [b for b in issue.blocks if b != blocker]
        self.save(issue)
        return True

    def ready(self) -> list[Issue]:
        """Open, unblocked issues in the active tree, highest priority first."""
        all_issues = list(self.iter_issues())
        statuses = {issue.id: issue.status for _, issue in all_issues}
        ready = [
            issue
            for entry, issue in all_issues
            if entry.location is Location.ACTIVE and deps.is_ready(issue, statuses)
        ]
        ready.sort(key=deps.ready_sort_key)
        return ready

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def fix_orphans(self) -> tuple[int, int]:
        """Flatten directories that hold issues but have no owner document.

        Their entries move up one level and the directory is removed.
        Returns (directories fixed, entries moved).
        """
        dirs_fixed = 0
        moved = 0
        for d in self._orphan_dirs(self.root):
            children = [c for c in sorted(d.iterdir()) if not c.name.startswith(".")]
            clashes = [c.name for c in children if (d.parent / c.name).exists()]
            if clashes:
                raise AlreadyExists(f"Cannot flatten {d}: {', '.join(clashes)} already exist above it")
            for child in children:
                move_unit(child, d.parent / child.name)
                moved += 1
            try:
                d.rmdir()
            except OSError:
                log.warning("left %s in place: hidden entries remain", d)
            dirs_fixed += 1
            log.debug("flattened orphan directory %s", d)
        return dirs_fixed, moved

    def _orphan_dirs(self, d: Path) -> list[Path]:
        """Orphan containers under d, deepest first (active tree only)."""
        found: list[Path] = []
        for child in sorted(d.iterdir()):
            if not child.is_dir() or child.name.startswith(".") or child.name in RESERVED_NAMES:
                continue
            found.extend(self._orphan_dirs(child))
            if layout.owner_doc(child) is None and any(
                c.suffix == ".md" or (c.is_dir() and not c.name.startswith("."))
                for c in child.iterdir()
            ):
                found.append(child)
        return found

    def copy_to(self, dest: Path) -> None:
        """Snapshot the whole store (used before restructuring)."""
        if dest.exists():
            shutil.rmtree(dest)
        shutil.copytree(self.root, dest)
