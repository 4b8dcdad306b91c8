"""Tests for the filesystem store — layout, lifecycle moves, hierarchy rules."""

from __future__ import annotations

from pathlib import Path

import pytest

from dots.errors import (
    AlreadyExists,
    ChildrenNotClosed,
    DependencyNotFound,
    InvalidOperation,
    MalformedDocument,
    NotFound,
)
from dots.fs import promote_leaf
from dots.store import Issue, Kind, Location, Status, Storage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _plan(store: Storage, title: str) -> Issue:
    return store.create(Issue(id=store.allocate_id(Kind.PLAN, title), title=title, kind=Kind.PLAN))


def _milestone(store: Storage, plan_id: str, title: str) -> Issue:
    issue_id = store.allocate_id(Kind.MILESTONE, title, plan_id)
    return store.create(Issue(id=issue_id, title=title, kind=Kind.MILESTONE, parent=plan_id))


def _task(store: Storage, title: str, parent: str | None = None, blocks: tuple[str, ...] = ()) -> Issue:
    issue_id = store.allocate_id(Kind.TASK, title, parent)
    return store.create(Issue(id=issue_id, title=title, parent=parent, blocks=list(blocks)))


def _snapshot(root: Path) -> dict[str, bytes | None]:
    """Every path under root; files map to their bytes, dirs to None."""
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob("*"))
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path):
    return Storage.open(tmp_path / ".dots")


@pytest.fixture
def auth_plan(store):
    """p1-user-auth / m1-backend-setup / t1-create-model + t2-add-index."""
    plan = _plan(store, "User Auth")
    ms = _milestone(store, plan.id, "Backend Setup")
    t1 = _task(store, "Create Model", ms.id)
    t2 = _task(store, "Add Index", ms.id)
    return plan, ms, t1, t2


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestHierarchyLayout:
    def test_ids(self, auth_plan):
        plan, ms, t1, t2 = auth_plan
        assert (plan.id, ms.id, t1.id, t2.id) == (
            "p1-user-auth", "m1-backend-setup", "t1-create-model", "t2-add-index",
        )

    def test_paths(self, store, auth_plan):
        root = store.root
        assert (root / "p1-user-auth" / "_plan.md").is_file()
        assert (root / "p1-user-auth" / "artifacts").is_dir()
        assert (root / "p1-user-auth" / "done").is_dir()
        assert (root / "p1-user-auth" / "m1-backend-setup" / "_milestone.md").is_file()
        assert (root / "p1-user-auth" / "m1-backend-setup" / "done").is_dir()
        assert (root / "p1-user-auth" / "m1-backend-setup" / "t1-create-model.md").is_file()

    def test_parents_derived_from_paths(self, store, auth_plan):
        plan, ms, t1, _ = auth_plan
        assert store.get(plan.id).parent is None
        assert store.get(ms.id).parent == plan.id
        assert store.get(t1.id).parent == ms.id

    def test_children(self, store, auth_plan):
        plan, ms, t1, t2 = auth_plan
        assert [c.id for c in store.children(plan.id)] == [ms.id]
        assert sorted(c.id for c in store.children(ms.id)) == sorted([t1.id, t2.id])

    def test_task_counter_is_scoped_to_milestone(self, store, auth_plan):
        plan, _, _, _ = auth_plan
        other = _milestone(store, plan.id, "Frontend")
        assert other.id == "m2-frontend"
        assert _task(store, "Login Page", other.id).id == "t1-login-page"

    def test_round_trip(self, store):
        issue = Issue(
            id="t1-x", title="X", description="body\n", priority=1,
            assignee="bob", created_at="2026-01-02T03:04:05.000006+00:00",
        )
        store.create(issue)
        assert store.get("t1-x") == issue

    def test_resolve_after_create(self, store, auth_plan):
        _, _, t1, _ = auth_plan
        assert store.resolve(t1.id) == t1.id
        assert store.resolve("t1") == t1.id


class TestCreateValidation:
    def test_duplicate_id(self, store):
        store.create(Issue(id="t1-x", title="X"))
        with pytest.raises(AlreadyExists):
            store.create(Issue(id="t1-x", title="Y"))

    def test_missing_blocker_writes_nothing(self, store):
        before = _snapshot(store.root)
        with pytest.raises(DependencyNotFound):
            store.create(Issue(id="t1-x", title="X", blocks=["t9-nope"]))
        assert _snapshot(store.root) == before

    def test_missing_parent(self, store):
        with pytest.raises(NotFound):
            store.create(Issue(id="t1-x", title="X", parent="t9-nope"))

    def test_milestone_needs_plan(self, store):
        store.create(Issue(id="t1-x", title="X"))
        with pytest.raises(InvalidOperation):
            store.create(Issue(id="m1-y", title="Y", kind=Kind.MILESTONE, parent="t1-x"))

    def test_empty_title(self, store):
        with pytest.raises(InvalidOperation):
            store.create(Issue(id="t1-x", title="  "))

    def test_invalid_id(self, store):
        with pytest.raises(InvalidOperation):
            store.create(Issue(id="../escape", title="X"))


# ---------------------------------------------------------------------------
# Promotion
# ---------------------------------------------------------------------------


class TestPromotion:
    def test_child_promotes_leaf_parent(self, store):
        parent = _task(store, "Parent")
        child = _task(store, "Child", parent.id)
        root = store.root
        assert not (root / "t1-parent.md").exists()
        assert (root / "t1-parent" / "t1-parent.md").is_file()
        assert (root / "t1-parent" / f"{child.id}.md").is_file()
        assert store.get(parent.id).title == "Parent"
        assert store.get(child.id).parent == parent.id

    def test_interrupted_promotion_prefers_directory(self, store):
        root = store.root
        _task(store, "Parent")
        # Crash after the rename, before the leaf was removed
        (root / "t1-parent").mkdir()
        (root / "t1-parent" / "t1-parent.md").write_bytes((root / "t1-parent.md").read_bytes())
        ids = [e.id for e in store.entries()]
        assert ids.count("t1-parent") == 1
        assert store.entry("t1-parent").is_dir_unit

    def test_promote_finishes_interrupted_run(self, tmp_path):
        leaf = tmp_path / "t1-p.md"
        leaf.write_text("x")
        (tmp_path / "t1-p").mkdir()
        (tmp_path / "t1-p" / "t1-p.md").write_text("x")
        assert promote_leaf(leaf) == tmp_path / "t1-p" / "t1-p.md"
        assert not leaf.exists()

    def test_staging_dir_is_ignored(self, store):
        _task(store, "Parent")
        staging = store.root / ".t1-parent.promoting"
        staging.mkdir()
        (staging / "t1-parent.md").write_text("---\ntitle: stale\n---\n")
        assert [e.id for e in store.entries()] == ["t1-parent"]
        assert store.get("t1-parent").title == "Parent"


# ---------------------------------------------------------------------------
# Close and relocation
# ---------------------------------------------------------------------------


class TestClose:
    def test_close_task_moves_into_milestone_done(self, store, auth_plan):
        plan, ms, t1, t2 = auth_plan
        ms_dir = store.root / plan.id / ms.id
        store.close(t1.id, "built")

        assert not (ms_dir / f"{t1.id}.md").exists()
        assert (ms_dir / "done" / f"{t1.id}.md").is_file()
        assert (ms_dir / "_milestone.md").is_file()
        assert store.get(ms.id).status is Status.OPEN

        closed = store.get(t1.id)
        assert closed.status is Status.CLOSED
        assert closed.close_reason == "built"
        assert closed.closed_at
        assert closed.parent == ms.id
        open_children = [c.id for c in store.children(ms.id) if c.status is not Status.CLOSED]
        assert open_children == [t2.id]

    def test_close_parent_with_open_child_changes_nothing(self, store, auth_plan):
        _, ms, t1, t2 = auth_plan
        store.close(t1.id)
        before = _snapshot(store.root)
        with pytest.raises(ChildrenNotClosed) as exc_info:
            store.close(ms.id)
        assert exc_info.value.children == [t2.id]
        assert _snapshot(store.root) == before

    def test_close_milestone_moves_subtree(self, store, auth_plan):
        plan, ms, t1, t2 = auth_plan
        store.close(t1.id)
        store.close(t2.id)
        store.close(ms.id)

        plan_dir = store.root / plan.id
        assert not (plan_dir / ms.id).exists()
        moved = plan_dir / "done" / ms.id
        assert (moved / "_milestone.md").is_file()
        assert (moved / "done" / f"{t1.id}.md").is_file()
        assert (moved / "done" / f"{t2.id}.md").is_file()
        assert store.get(t1.id).parent == ms.id
        assert store.entry(ms.id).location is Location.DONE

    def test_close_plan_moves_to_root_done(self, store, auth_plan):
        plan, ms, t1, t2 = auth_plan
        for issue_id in (t1.id, t2.id, ms.id, plan.id):
            store.close(issue_id)
        assert not (store.root / plan.id).exists()
        assert (store.root / "done" / plan.id / "_plan.md").is_file()
        assert store.get(t2.id).status is Status.CLOSED

    def test_standalone_goes_to_archive(self, store):
        issue = _task(store, "Loose end")
        store.close(issue.id)
        assert (store.root / "archive" / f"{issue.id}.md").is_file()
        assert store.entry(issue.id).location is Location.ARCHIVE

    def test_standalone_child_archive_mirrors_parent(self, store):
        parent = _task(store, "Parent")
        child = _task(store, "Child", parent.id)
        store.close(child.id)
        assert (store.root / "archive" / parent.id / f"{child.id}.md").is_file()
        assert store.get(child.id).parent == parent.id

        store.close(parent.id)
        assert not (store.root / parent.id).exists()
        assert (store.root / "archive" / parent.id / f"{parent.id}.md").is_file()
        assert (store.root / "archive" / parent.id / f"{child.id}.md").is_file()
        assert store.get(parent.id).parent is None

    def test_closing_twice_keeps_first_stamp(self, store):
        issue = _task(store, "Once")
        first = store.close(issue.id, "r1")
        again = store.close(issue.id, "r2")
        assert again.closed_at == first.closed_at
        assert again.close_reason == "r1"

    def test_closed_ids_still_reserve_counters(self, store, auth_plan):
        _, ms, t1, t2 = auth_plan
        store.close(t1.id)
        store.close(t2.id)
        assert _task(store, "Create Model", ms.id).id == "t3-create-model"

    def test_failed_move_leaves_issue_open(self, store):
        issue = _task(store, "Blocked move")
        doc = store.root / f"{issue.id}.md"
        stale = store.root / "archive" / f"{issue.id}.md"
        stale.parent.mkdir(exist_ok=True)
        stale.write_text("---\ntitle: stale\nstatus: closed\n---\n")
        before = doc.read_bytes()

        with pytest.raises(FileExistsError):
            store.close(issue.id, "done")
        assert doc.read_bytes() == before
        entry = store.entry(issue.id)
        assert entry.location is Location.ACTIVE
        assert store.read(entry).status is Status.OPEN


class TestTransitions:
    def test_activate_in_place(self, store):
        issue = _task(store, "Work")
        path = store.entry(issue.id).doc
        store.activate(issue.id)
        assert store.get(issue.id).status is Status.ACTIVE
        assert store.entry(issue.id).doc == path

    def test_active_back_to_open(self, store):
        issue = _task(store, "Work")
        store.activate(issue.id)
        store.update_status(issue.id, Status.OPEN)
        assert store.get(issue.id).status is Status.OPEN

    def test_closed_is_terminal(self, store):
        issue = _task(store, "Work")
        store.close(issue.id)
        with pytest.raises(InvalidOperation):
            store.activate(issue.id)
        with pytest.raises(InvalidOperation):
            store.update_status(issue.id, Status.OPEN)

    def test_archive_requires_closed(self, store):
        issue = _task(store, "Work")
        with pytest.raises(InvalidOperation):
            store.archive(issue.id)


# ---------------------------------------------------------------------------
# Delete / purge / backlog / fix
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_subtree_regardless_of_status(self, store, auth_plan):
        plan, ms, t1, t2 = auth_plan
        store.activate(t1.id)
        removed = store.delete(plan.id)
        assert set(removed) == {plan.id, ms.id, t1.id, t2.id}
        assert not (store.root / plan.id).exists()
        assert store.all_ids() == set()

    def test_delete_scrubs_blocks(self, store):
        a = _task(store, "A")
        b = _task(store, "B", blocks=(a.id,))
        store.delete(a.id)
        assert store.get(b.id).blocks == []

    def test_delete_takes_archived_children(self, store):
        parent = _task(store, "Parent")
        child = _task(store, "Child", parent.id)
        store.close(child.id)
        store.delete(parent.id)
        assert not store.exists(child.id)
        assert not (store.root / "archive" / parent.id).exists()

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete("t9-nope")


class TestPurge:
    def test_purge_empties_archive_only(self, store, auth_plan):
        _, _, t1, _ = auth_plan
        loose = _task(store, "Loose")
        store.close(loose.id)
        store.close(t1.id)
        assert store.purge_archive() == 1
        assert (store.root / "archive").is_dir()
        assert list((store.root / "archive").iterdir()) == []
        assert store.exists(t1.id)

    def test_purged_blocker_no_longer_blocks(self, store):
        a = _task(store, "A")
        b = _task(store, "B", blocks=(a.id,))
        store.close(a.id)
        store.purge_archive()
        assert [i.id for i in store.ready()] == [b.id]


class TestBacklog:
    def test_round_trip(self, store, auth_plan):
        plan, _, t1, _ = auth_plan
        store.backlog(plan.id)
        assert (store.root / "backlog" / plan.id / "_plan.md").is_file()
        assert not (store.root / plan.id).exists()
        assert store.entry(t1.id).location is Location.BACKLOG
        assert t1.id not in [i.id for i in store.ready()]

        store.unbacklog(plan.id)
        assert (store.root / plan.id / "_plan.md").is_file()
        assert store.entry(t1.id).location is Location.ACTIVE

    def test_plans_only(self, store, auth_plan):
        _, ms, _, _ = auth_plan
        with pytest.raises(InvalidOperation):
            store.backlog(ms.id)

    def test_unbacklog_requires_backlog(self, store, auth_plan):
        plan, _, _, _ = auth_plan
        with pytest.raises(NotFound):
            store.unbacklog(plan.id)

    def test_backlogged_plan_reserves_counter(self, store, auth_plan):
        plan, _, _, _ = auth_plan
        store.backlog(plan.id)
        assert _plan(store, "Next").id == "p2-next"

    def test_unbacklog_returns_plan(self, store, auth_plan):
        plan, _, _, _ = auth_plan
        store.backlog(plan.id)
        restored = store.unbacklog(plan.id)
        assert (restored.id, restored.title) == (plan.id, "User Auth")
        assert restored.kind is Kind.PLAN


class TestFixOrphans:
    def test_flattens_orphan_dir(self, store):
        orphan = store.root / "t1-gone"
        orphan.mkdir()
        (orphan / "t2-kid.md").write_text("---\ntitle: Kid\n---\n")
        assert store.get("t2-kid").parent is None
        assert store.fix_orphans() == (1, 1)
        assert (store.root / "t2-kid.md").is_file()
        assert not orphan.exists()

    def test_leaves_owned_dirs(self, store, auth_plan):
        before = _snapshot(store.root)
        assert store.fix_orphans() == (0, 0)
        assert _snapshot(store.root) == before


class TestMalformed:
    def test_listing_skips_but_get_raises(self, store):
        _task(store, "Good")
        (store.root / "t9-bad.md").write_text("no header here")
        assert [i.id for i in store.issues()] == ["t1-good"]
        with pytest.raises(MalformedDocument):
            store.get("t9-bad")


class TestLineEndings:
    def test_crlf_body_round_trips(self, store):
        issue = _task(store, "Windows notes")
        issue.description = "line1\r\nline2\r\n"
        store.save(issue)
        assert (store.root / f"{issue.id}.md").read_bytes().endswith(b"\nline1\r\nline2\r\n")
        assert store.get(issue.id).description == "line1\r\nline2\r\n"

    def test_append_section_keeps_crlf(self, store):
        issue = _task(store, "Windows notes")
        issue.description = "## Progress\r\n\r\n- a\r\n\r\n## Notes\r\nkeep\r\n"
        store.save(issue)
        store.append_section(issue.id, "## Progress", "- b")
        data = (store.root / f"{issue.id}.md").read_bytes()
        assert data.endswith(b"## Progress\r\n\r\n- a\r\n- b\r\n\r\n## Notes\r\nkeep\r\n")
