"""Append timestamped entries to an issue's Progress / Discoveries / Decision Log."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dots.errors import InvalidOperation
from dots.store.models import now_iso

from ._helpers import (
    DECISIONS_HEADING,
    DISCOVERIES_HEADING,
    PROGRESS_HEADING,
    handles_errors,
    open_store,
)


def _append(issue: str, heading: str, entry: str, root: str | Path | None) -> dict[str, Any]:
    store = open_store(root)
    issue_id = store.resolve(issue)
    store.append_section(issue_id, heading, entry)
    return {"appended": issue_id, "section": heading.lstrip("# "), "entry": entry}


def _require(text: str, label: str) -> str:
    if not text or not text.strip():
        raise InvalidOperation(f"{label} is required")
    return text.strip()


@handles_errors
def progress(issue: str, message: str, root: str | Path | None = None) -> dict[str, Any]:
    message = _require(message, "Message")
    return _append(issue, PROGRESS_HEADING, f"- [x] ({now_iso()}) {message}", root)


@handles_errors
def discover(
    issue: str,
    observation: str,
    evidence: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    observation = _require(observation, "Observation")
    entry = f"- Observation ({now_iso()}): {observation}"
    if evidence:
        entry += f"\n  Evidence: {evidence.strip()}"
    return _append(issue, DISCOVERIES_HEADING, entry, root)


@handles_errors
def decide(
    issue: str,
    decision: str,
    rationale: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    decision = _require(decision, "Decision")
    entry = f"- Decision ({now_iso()}): {decision}"
    if rationale:
        entry += f"\n  Rationale: {rationale.strip()}"
    return _append(issue, DECISIONS_HEADING, entry, root)
