"""Markdown document codec — YAML frontmatter header plus free-text body.

    ---
    title: Create model
    status: open
    priority: 2
    issue-type: task
    created-at: '2026-01-02T03:04:05.000006+01:00'
    ---

    body...

Header keys are written in a fixed order and empty optional keys are
left out. Timestamps stay strings: the YAML timestamp resolver is
disabled so they round-trip byte-for-byte.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from dots.defaults import MAX_PRIORITY, MIN_PRIORITY
from dots.errors import MalformedDocument
from dots.store.models import Issue, Kind, Status

log = logging.getLogger(__name__)

_FM_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]")

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"

KNOWN_KEYS = (
    "title",
    "status",
    "priority",
    "issue-type",
    "assignee",
    "created-at",
    "closed-at",
    "close-reason",
    "blocks",
    "scope",
    "acceptance",
)


class _HeaderLoader(yaml.SafeLoader):
    """SafeLoader that keeps ISO timestamps as plain strings."""


_HeaderLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


def _header(issue: Issue) -> dict[str, Any]:
    header: dict[str, Any] = {
        "title": issue.title,
        "status": issue.status.value,
        "priority": issue.priority,
        "issue-type": issue.kind.value,
    }
    optional = (
        ("assignee", issue.assignee),
        ("created-at", issue.created_at),
        ("closed-at", issue.closed_at),
        ("close-reason", issue.close_reason),
        ("blocks", list(issue.blocks)),
        ("scope", issue.scope),
        ("acceptance", issue.acceptance),
    )
    for key, value in optional:
        if value:
            header[key] = value
    return header


def render(issue: Issue) -> str:
    """Serialize an issue to document text. The parent is not stored."""
    dumped = yaml.safe_dump(
        _header(issue),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10_000,
    )
    text = f"---\n{dumped}---\n"
    if issue.description:
        text += "\n" + issue.description
    return text


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


def parse(text: str, issue_id: str, parent: str | None = None, path: Path | str = "<text>") -> Issue:
    """Build an Issue from document text.

    The ID and parent come from the file's location. Raises
    MalformedDocument when the header is missing or carries invalid
    values; unknown header keys are ignored.
    """
    m = _FM_PATTERN.match(text)
    if not m:
        raise MalformedDocument(path, "missing frontmatter header")
    try:
        data = yaml.load(m.group(1), Loader=_HeaderLoader) or {}
    except yaml.YAMLError as exc:
        raise MalformedDocument(path, f"invalid YAML header: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedDocument(path, "header must be a mapping")

    unknown = set(data) - set(KNOWN_KEYS)
    if unknown:
        log.debug("%s: ignoring unknown header keys %s", path, sorted(unknown))

    title = _opt_str(data, "title")
    if not title:
        raise MalformedDocument(path, "missing title")

    try:
        status = Status(str(data.get("status", Status.OPEN.value)))
    except ValueError:
        raise MalformedDocument(path, f"invalid status '{data.get('status')}'") from None

    try:
        kind = Kind(str(data.get("issue-type", Kind.TASK.value)))
    except ValueError:
        raise MalformedDocument(path, f"invalid issue-type '{data.get('issue-type')}'") from None

    priority = data.get("priority", 2)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise MalformedDocument(path, f"priority must be an integer, got {priority!r}")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise MalformedDocument(path, f"priority {priority} out of range")

    blocks = data.get("blocks") or []
    if not isinstance(blocks, list):
        raise MalformedDocument(path, "blocks must be a list")

    body = text[m.end():]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]

    return Issue(
        id=issue_id,
        title=title,
        description=body,
        status=status,
        priority=priority,
        kind=kind,
        assignee=_opt_str(data, "assignee"),
        created_at=_opt_str(data, "created-at") or "",
        closed_at=_opt_str(data, "closed-at"),
        close_reason=_opt_str(data, "close-reason"),
        blocks=[str(b) for b in blocks],
        scope=_opt_str(data, "scope"),
        acceptance=_opt_str(data, "acceptance"),
        parent=parent,
    )


def read_issue(path: Path, issue_id: str, parent: str | None = None) -> Issue:
    # newline="" keeps CRLF bodies intact through a read-modify-write
    with path.open(encoding="utf-8", newline="") as fh:
        text = fh.read()
    return parse(text, issue_id, parent, path)


# ---------------------------------------------------------------------------
# Section append
# ---------------------------------------------------------------------------


def _heading_level(line: str) -> int:
    m = _HEADING_PATTERN.match(line)
    return len(m.group(1)) if m else 0


def append_to_section(body: str, heading: str, entry: str) -> str:
    """Insert entry at the end of the section that starts with `heading`.

    The section ends at the next heading of the same or a higher level,
    or at end of text. The entry lands after the section's last
    non-blank line, so the blank lines before the next heading stay put.
    A missing heading is appended to the end together with the entry.
    Text outside the insertion point is preserved byte-for-byte, and
    inserted lines follow the body's own line endings.
    """
    heading = heading.rstrip()
    nl = "\r\n" if "\r\n" in body else "\n"
    if nl != "\n":
        entry = entry.replace("\r\n", "\n").replace("\n", nl)
    lines = body.splitlines(keepends=True)

    start = next((i for i, line in enumerate(lines) if line.rstrip() == heading), None)
    if start is None:
        if not body:
            sep = ""
        elif body.endswith(nl * 2):
            sep = ""
        elif body.endswith("\n"):
            sep = nl
        else:
            sep = nl * 2
        return f"{body}{sep}{heading}{nl}{nl}{entry}{nl}"

    level = _heading_level(heading) or 6
    end = start + 1
    while end < len(lines):
        found = _heading_level(lines[end])
        if found and found <= level:
            break
        end += 1

    insert = end
    while insert > start + 1 and not lines[insert - 1].strip():
        insert -= 1

    offset = sum(len(line) for line in lines[:insert])
    prefix = ""
    if insert == start + 1:
        # Empty section: keep a blank line under the heading
        prefix = nl
    if offset and body[offset - 1] != "\n":
        prefix = nl + prefix
    return body[:offset] + prefix + entry + nl + body[offset:]
