"""Agent hooks — session summary and TodoWrite sync."""

from .mapping import load_mapping, save_mapping
from .session import format_session, session_summary
from .stdin import read_piped_stdin
from .sync import ToolEvent, Todo, sync_todos

__all__: list[str] = [
    "Todo",
    "ToolEvent",
    "format_session",
    "load_mapping",
    "read_piped_stdin",
    "save_mapping",
    "session_summary",
    "sync_todos",
]
