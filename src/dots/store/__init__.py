"""Filesystem store — documents, layout, IDs, dependency graph."""

from .layout import Entry, Location
from .models import Issue, Kind, Status
from .storage import Storage

__all__: list[str] = [
    "Entry",
    "Issue",
    "Kind",
    "Location",
    "Status",
    "Storage",
]
