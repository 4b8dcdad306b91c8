"""Convert legacy hash-ID plans into the hierarchical layout.

Stores created before plans had their own directories hold plans,
milestones and tasks as ordinary issues with `{prefix}-{16 hex}` IDs.
Each such plan is recreated as `p{n}-{slug}/` with `m{n}-...`
milestones and `t{n}-...` tasks underneath. The old files stay in place
so the result can be checked before deleting them; a full copy of the
store is taken first.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from dots.defaults import BACKLOG_DIR, BACKUP_DIR_NAME, DONE_DIR
from dots.errors import ChildrenNotClosed, DependencyCycle, DependencyNotFound
from dots.store import Issue, Kind, Status, Storage
from dots.store.ids import EMPTY_SLUG, is_legacy_hash_id, next_counter, scope_names, slugify

log = logging.getLogger(__name__)


def _legacy_plans(store: Storage) -> list[Issue]:
    return [
        issue
        for issue in store.issues()
        if is_legacy_hash_id(issue.id) and issue.kind is Kind.PLAN
    ]


def _children_of_kind(store: Storage, parent_id: str, kind: Kind) -> list[Issue]:
    children = [c for c in store.children(parent_id) if c.kind is kind]
    children.sort(key=lambda c: (c.created_at, c.id))
    return children


def _planned_ids(store: Storage, plans: list[Issue]) -> dict[str, str]:
    """The old->new mapping a real run would produce, without writing."""
    root_names: set[str] = set()
    for scope in (store.root, store.root / DONE_DIR, store.root / BACKLOG_DIR):
        root_names.update(scope_names(scope))
    next_plan = next_counter(root_names, "p")

    mapping: dict[str, str] = {}
    for plan in plans:
        mapping[plan.id] = f"p{next_plan}-{slugify(plan.title) or EMPTY_SLUG}"
        next_plan += 1
        for m_idx, ms in enumerate(_children_of_kind(store, plan.id, Kind.MILESTONE), start=1):
            mapping[ms.id] = f"m{m_idx}-{slugify(ms.title) or EMPTY_SLUG}"
            for t_idx, task in enumerate(_children_of_kind(store, ms.id, Kind.TASK), start=1):
                mapping[task.id] = f"t{t_idx}-{slugify(task.title) or EMPTY_SLUG}"
    return mapping


def _copy(store: Storage, old: Issue, kind: Kind, parent: str | None) -> Issue:
    new = replace(
        old,
        id=store.allocate_id(kind, old.title, parent),
        kind=kind,
        parent=parent,
        blocks=[],
    )
    return store.create(new)


def restructure(store: Storage, dry_run: bool = False) -> dict[str, Any]:
    plans = _legacy_plans(store)
    if dry_run:
        return {"dry_run": True, "mapping": _planned_ids(store, plans), "backup": None}
    if not plans:
        return {"dry_run": False, "mapping": {}, "backup": None}

    backup = store.root.parent / BACKUP_DIR_NAME
    store.copy_to(backup)

    mapping: dict[str, str] = {}
    legacy: list[Issue] = []
    for plan in plans:
        new_plan = _copy(store, plan, Kind.PLAN, None)
        mapping[plan.id] = new_plan.id
        legacy.append(plan)
        for ms in _children_of_kind(store, plan.id, Kind.MILESTONE):
            new_ms = _copy(store, ms, Kind.MILESTONE, new_plan.id)
            mapping[ms.id] = new_ms.id
            legacy.append(ms)
            for task in _children_of_kind(store, ms.id, Kind.TASK):
                mapping[task.id] = _copy(store, task, Kind.TASK, new_ms.id).id
                legacy.append(task)

    for old in legacy:
        for blocker in old.blocks:
            try:
                store.add_dependency(mapping[old.id], mapping.get(blocker, blocker))
            except (DependencyNotFound, DependencyCycle) as exc:
                log.warning("dropping edge %s -> %s: %s", old.id, blocker, exc)

    # Closed items move to done/ bottom-up, after their subtree exists
    for old in reversed(legacy):
        if old.status is not Status.CLOSED:
            continue
        try:
            store.archive(mapping[old.id])
        except ChildrenNotClosed as exc:
            log.warning("leaving %s in place: %s", mapping[old.id], exc)

    return {"dry_run": False, "mapping": mapping, "backup": str(backup)}
