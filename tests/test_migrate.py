"""Tests for ExecPlan migration and legacy restructuring."""

from __future__ import annotations

import pytest

from dots import issues
from dots.errors import InvalidOperation
from dots.migrate import migrate_execplans, restructure
from dots.migrate.execplans import plan_title
from dots.store import Issue, Kind, Status, Storage
from dots.store.document import render

PLAN = "dots-" + "a" * 16
MS = "dots-" + "b" * 16
T1 = "dots-" + "c" * 16
T2 = "dots-" + "d" * 16


@pytest.fixture
def store(tmp_path):
    return Storage.open(tmp_path / ".dots")


# ---------------------------------------------------------------------------
# ExecPlans
# ---------------------------------------------------------------------------


class TestExecPlans:
    def test_title_from_heading(self, tmp_path):
        assert plan_title(tmp_path / "x.md", "intro\n# Auth Flow  \nbody") == "Auth Flow"

    def test_title_from_file_name(self, tmp_path):
        assert plan_title(tmp_path / "notes_misc-v2.md", "no heading") == "notes misc v2"

    def test_one_plan_per_file(self, tmp_path, store):
        source = tmp_path / "execplans"
        source.mkdir()
        (source / "auth-flow.md").write_text("# Auth Flow\n\nDo the thing.\n")
        (source / "notes_misc.md").write_text("loose notes\n")
        (source / "ignored.txt").write_text("x")

        migrated = migrate_execplans(source, store)
        assert [m["id"] for m in migrated] == ["p1-auth-flow", "p2-notes-misc"]
        plan = store.get("p1-auth-flow")
        assert plan.kind is Kind.PLAN
        assert plan.description == "# Auth Flow\n\nDo the thing.\n"
        assert (store.root / "p1-auth-flow" / "artifacts").is_dir()
        assert (source / "auth-flow.md").exists()

    def test_missing_source(self, tmp_path, store):
        with pytest.raises(InvalidOperation):
            migrate_execplans(tmp_path / "nope", store)

    def test_default_source_next_to_store(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOTS_DIR", raising=False)
        source = tmp_path / ".agent" / "execplans"
        source.mkdir(parents=True)
        (source / "one.md").write_text("# One\n")
        result = issues.migrate(root=tmp_path / ".dots")
        assert [m["id"] for m in result["migrated"]] == ["p1-one"]

    def test_missing_source_is_error_dict(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOTS_DIR", raising=False)
        assert issues.migrate(root=tmp_path / ".dots")["code"] == "invalid"


# ---------------------------------------------------------------------------
# Restructure
# ---------------------------------------------------------------------------


def _write_legacy(root) -> None:
    """A hash-ID plan with one milestone and two tasks, nested the old way."""
    docs = {
        root / PLAN / f"{PLAN}.md": Issue(
            id=PLAN, title="Roadmap", kind=Kind.PLAN, created_at="2026-01-01T00:00:00+00:00",
        ),
        root / PLAN / MS / f"{MS}.md": Issue(
            id=MS, title="Phase One", kind=Kind.MILESTONE, created_at="2026-01-01T00:00:01+00:00",
        ),
        root / PLAN / MS / f"{T1}.md": Issue(
            id=T1, title="Build", status=Status.CLOSED, created_at="2026-01-01T00:00:02+00:00",
            closed_at="2026-01-02T00:00:00+00:00",
        ),
        root / PLAN / MS / f"{T2}.md": Issue(
            id=T2, title="Test", blocks=[T1], created_at="2026-01-01T00:00:03+00:00",
        ),
    }
    for path, issue in docs.items():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(issue))


EXPECTED = {PLAN: "p1-roadmap", MS: "m1-phase-one", T1: "t1-build", T2: "t2-test"}


class TestRestructure:
    def test_dry_run_writes_nothing(self, tmp_path, store):
        _write_legacy(store.root)
        before = sorted(p.relative_to(tmp_path) for p in tmp_path.rglob("*"))
        result = restructure(store, dry_run=True)
        assert result == {"dry_run": True, "mapping": EXPECTED, "backup": None}
        assert sorted(p.relative_to(tmp_path) for p in tmp_path.rglob("*")) == before

    def test_rebuilds_hierarchy(self, tmp_path, store):
        _write_legacy(store.root)
        result = restructure(store)
        assert result["mapping"] == EXPECTED

        root = store.root
        ms_dir = root / "p1-roadmap" / "m1-phase-one"
        assert (root / "p1-roadmap" / "_plan.md").is_file()
        assert (ms_dir / "_milestone.md").is_file()
        assert (ms_dir / "t2-test.md").is_file()
        assert (ms_dir / "done" / "t1-build.md").is_file()
        assert store.get("t2-test").blocks == ["t1-build"]
        assert store.get("t1-build").created_at == "2026-01-01T00:00:02+00:00"

    def test_backup_and_old_files_kept(self, tmp_path, store):
        _write_legacy(store.root)
        result = restructure(store)
        backup = tmp_path / ".dots.bak"
        assert result["backup"] == str(backup)
        assert (backup / PLAN / f"{PLAN}.md").is_file()
        assert store.exists(PLAN)

    def test_nothing_to_do(self, store):
        issues.add("Modern", root=store.root)
        assert restructure(store) == {"dry_run": False, "mapping": {}, "backup": None}
