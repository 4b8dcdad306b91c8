"""One-shot adapters that bring outside data into the store."""

from .execplans import migrate_execplans
from .jsonl import ImportSummary, JsonlDependency, JsonlRecord, import_jsonl, map_status, read_records
from .restructure import restructure

__all__: list[str] = [
    "ImportSummary",
    "JsonlDependency",
    "JsonlRecord",
    "import_jsonl",
    "map_status",
    "migrate_execplans",
    "read_records",
    "restructure",
]
