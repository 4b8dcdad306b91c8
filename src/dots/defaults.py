"""Shared constants — env var names, store layout names, resolvers.

Single source of truth for where the store lives and what its
reserved directory names are.
"""

from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Env var names
# ---------------------------------------------------------------------------

ENV_DOTS_DIR = "DOTS_DIR"

# ---------------------------------------------------------------------------
# Store layout
# ---------------------------------------------------------------------------

DOTS_DIR_NAME = ".dots"
CONFIG_FILE_NAME = "config.yaml"
MAPPING_FILE_NAME = "todo-mapping.json"
BACKUP_DIR_NAME = ".dots.bak"
EXECPLANS_DIR = ".agent/execplans"

PLAN_FILE = "_plan.md"
MILESTONE_FILE = "_milestone.md"

DONE_DIR = "done"
BACKLOG_DIR = "backlog"
ARCHIVE_DIR = "archive"
ARTIFACTS_DIR = "artifacts"
RALPH_DIR = "ralph"

# Names that never hold an issue of their own
RESERVED_NAMES = frozenset({DONE_DIR, BACKLOG_DIR, ARCHIVE_DIR, ARTIFACTS_DIR, RALPH_DIR})

DEFAULT_PRIORITY = 2
MIN_PRIORITY = 0
MAX_PRIORITY = 4

SLUG_MAX_LEN = 40

# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def resolve_dots_dir(project_dir: str | Path | None = None) -> Path:
    """Resolve the store root: ENV_DOTS_DIR > <project>/.dots."""
    explicit = os.getenv(ENV_DOTS_DIR)
    if explicit:
        return Path(explicit).expanduser()
    base = Path(project_dir) if project_dir else Path.cwd()
    return base / DOTS_DIR_NAME


def resolve_mapping_path(root: Path) -> Path:
    return root / MAPPING_FILE_NAME
