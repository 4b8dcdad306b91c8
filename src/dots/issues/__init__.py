"""Issue operations — the dict-returning surface the CLI calls.

Every function resolves short IDs itself and returns a plain dict:
the data on success, {"error": ..., "code": ...} on a rule violation.
"""

from .admin import hook_session, hook_sync, init_store, migrate, restructure
from .create import add, add_milestone, add_task, create_plan
from .journal import decide, discover, progress
from .lifecycle import activate_plan, archive, close, delete, fix, move_to_backlog, purge, start, update
from .links import block, unblock
from .query import find, list_issues, ready, resolve_id, show, tree

__all__: list[str] = [
    "activate_plan",
    "add",
    "add_milestone",
    "add_task",
    "archive",
    "block",
    "close",
    "create_plan",
    "decide",
    "delete",
    "discover",
    "find",
    "fix",
    "hook_session",
    "hook_sync",
    "init_store",
    "list_issues",
    "migrate",
    "move_to_backlog",
    "progress",
    "purge",
    "ready",
    "resolve_id",
    "restructure",
    "show",
    "start",
    "tree",
    "unblock",
    "update",
]
