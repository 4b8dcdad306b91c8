"""dots — a filesystem-backed issue tracker.

Issues live under .dots/ as markdown files with YAML frontmatter.
The directory tree is the database: a file's location encodes its
parent and its lifecycle state (active, done, backlog, archive).
"""

from .store import Issue, Kind, Status, Storage

__all__: list[str] = [
    "Issue",
    "Kind",
    "Status",
    "Storage",
]
