"""Identifier allocation.

Hierarchical IDs look like `p1-user-auth`, `m2-backend`, `t14-create-model`.
Counters are not stored anywhere: the next number is derived from the
names already present in the scope directories, so a short-lived
process can allocate correctly without shared state.

Flat IDs (`{prefix}-{8 hex}`) are used when the store is configured for
them.
"""

from __future__ import annotations

import hashlib
import os
import re
import time
from collections.abc import Iterable
from pathlib import Path

from dots.defaults import RESERVED_NAMES, SLUG_MAX_LEN
from dots.errors import AlreadyExists
from dots.store.models import Kind

EMPTY_SLUG = "untitled"
FLAT_HEX_LEN = 8
FLAT_MAX_ATTEMPTS = 64

KIND_PREFIX = {Kind.PLAN: "p", Kind.MILESTONE: "m", Kind.TASK: "t"}

_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_LEGACY_PATTERN = re.compile(r"^[a-z0-9]+-[0-9a-f]{16}$")


def slugify(text: str, max_len: int = SLUG_MAX_LEN) -> str:
    """Lowercase, collapse non-alphanumerics to single hyphens, cap length."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_len].rstrip("-")


def is_valid_id(issue_id: str) -> bool:
    """True when the ID is usable as a file or directory name in the store."""
    if not _ID_PATTERN.match(issue_id) or issue_id in RESERVED_NAMES:
        return False
    return not issue_id.endswith((".md", ".tmp"))


def is_legacy_hash_id(issue_id: str) -> bool:
    """Old-style `{prefix}-{16 hex}` IDs, converted by `dot restructure`."""
    return bool(_LEGACY_PATTERN.match(issue_id))


# ---------------------------------------------------------------------------
# Scoped (hierarchical) IDs
# ---------------------------------------------------------------------------


def scope_names(scope: Path) -> list[str]:
    """Names directly under scope, minus reserved and hidden entries.

    A missing scope directory has no entries; any other I/O error
    propagates.
    """
    try:
        entries = list(os.scandir(scope))
    except FileNotFoundError:
        return []
    names = []
    for entry in entries:
        name = entry.name
        if name.startswith(".") or name in RESERVED_NAMES:
            continue
        if name.endswith(".md"):
            name = name[:-3]
        names.append(name)
    return names


def next_counter(names: Iterable[str], prefix: str) -> int:
    """1 + the highest `{prefix}{n}-` counter among names (1 if none)."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)(?:-|$)")
    highest = 0
    for name in names:
        m = pattern.match(name)
        if m:
            highest = max(highest, int(m.group(1)))
    return highest + 1


def allocate_scoped(
    scope_dirs: Iterable[Path],
    kind: Kind,
    title: str,
    taken: Iterable[str] = (),
) -> str:
    """Allocate `{p|m|t}{n}-{slug}` for a new issue.

    scope_dirs are the directories whose entries share one counter (the
    scope itself plus its done/backlog/archive counterparts). `taken` is
    the store-wide ID set; the counter is bumped until the ID collides
    with neither.
    """
    prefix = KIND_PREFIX[kind]
    names: set[str] = set()
    for scope in scope_dirs:
        names.update(scope_names(scope))
    taken_ids = set(taken) | names

    slug = slugify(title) or EMPTY_SLUG
    n = next_counter(names, prefix)
    while f"{prefix}{n}-{slug}" in taken_ids:
        n += 1
    return f"{prefix}{n}-{slug}"


# ---------------------------------------------------------------------------
# Flat IDs
# ---------------------------------------------------------------------------


def allocate_flat(title: str, taken: Iterable[str], prefix: str) -> str:
    """Allocate `{prefix}-{8 hex}`, retrying on collision."""
    taken_ids = set(taken)
    for _ in range(FLAT_MAX_ATTEMPTS):
        digest = hashlib.sha1(
            f"{title}\0{time.time_ns()}".encode() + os.urandom(8)
        ).hexdigest()
        candidate = f"{prefix}-{digest[:FLAT_HEX_LEN]}"
        if candidate not in taken_ids:
            return candidate
    raise AlreadyExists(f"Could not allocate a unique ID with prefix '{prefix}'")
