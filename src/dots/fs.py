"""Filesystem helpers — atomic writes, unit moves, leaf promotion.

Every relocation in the store goes through move_unit() so that a move
is a single rename whenever the destination does not exist yet.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Atomic file write
# ---------------------------------------------------------------------------


def atomic_write_file(path: str | Path, content: str) -> Path:
    """Write content to path atomically (write-to-temp, fsync, then rename).

    Returns the final path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    return path


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------


def move_unit(src: Path, dst: Path) -> None:
    """Move a file or directory to dst.

    A plain rename when dst is free. When dst is an existing directory
    and src is one too, src's entries are merged into it recursively.
    A file collision raises FileExistsError.
    """
    if not dst.exists():
        dst.parent.mkdir(parents=True, exist_ok=True)
        os.rename(src, dst)
        log.debug("moved %s -> %s", src, dst)
        return
    if not (src.is_dir() and dst.is_dir()):
        raise FileExistsError(f"Refusing to overwrite {dst}")
    for child in sorted(src.iterdir()):
        move_unit(child, dst / child.name)
    src.rmdir()


def remove_unit(path: Path) -> None:
    """Delete a file or a whole directory tree."""
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink()
    log.debug("removed %s", path)


def prune_empty_dirs(start: Path, stop: Path) -> None:
    """Remove empty directories from start upwards, never removing stop."""
    current = start
    while current != stop and stop in current.parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


# ---------------------------------------------------------------------------
# Leaf promotion: {p}.md -> {p}/{p}.md
# ---------------------------------------------------------------------------


def staging_name(stem: str) -> str:
    return f".{stem}.promoting"


def promote_leaf(leaf: Path) -> Path:
    """Turn a leaf document into a directory unit holding it.

    Phase one stages a copy inside a hidden directory. Phase two renames
    the staging directory into place and unlinks the leaf. A crash in
    phase one leaves the leaf untouched; a crash between the rename and
    the unlink leaves both forms, and readers prefer the directory.
    Returns the document's new path.
    """
    stem = leaf.stem
    target = leaf.parent / stem
    if target.is_dir():
        # Finish an interrupted promotion
        if leaf.exists():
            leaf.unlink()
        return target / leaf.name

    staging = leaf.parent / staging_name(stem)
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir()
    shutil.copy2(leaf, staging / leaf.name)
    os.rename(staging, target)
    leaf.unlink()
    log.debug("promoted %s -> %s", leaf, target)
    return target / leaf.name
