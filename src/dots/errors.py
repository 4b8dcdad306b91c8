"""Error taxonomy for store operations.

Every business-rule violation raises a DotsError subclass before any
file is touched. OSError is never wrapped: filesystem failures reach
the caller as-is.
"""

from __future__ import annotations


class DotsError(Exception):
    """Base class. `code` is the stable key used in error dicts."""

    code = "error"

    def to_dict(self) -> dict[str, object]:
        return {"error": str(self), "code": self.code}


class NotFound(DotsError):
    code = "not_found"

    def __init__(self, issue_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Issue not found: {issue_id}")
        self.issue_id = issue_id


class Ambiguous(DotsError):
    code = "ambiguous"

    def __init__(self, prefix: str, candidates: list[str]) -> None:
        super().__init__(
            f"Ambiguous ID '{prefix}' matches {len(candidates)} issues: {', '.join(candidates)}"
        )
        self.prefix = prefix
        self.candidates = candidates

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "candidates": list(self.candidates)}


class DependencyCycle(DotsError):
    code = "dependency_cycle"

    def __init__(self, blockee: str, blocker: str) -> None:
        super().__init__(f"Adding dependency {blockee} -> {blocker} would create a cycle")
        self.blockee = blockee
        self.blocker = blocker


class DependencyNotFound(DotsError):
    code = "dependency_not_found"

    def __init__(self, issue_id: str) -> None:
        super().__init__(f"Dependency target not found: {issue_id}")
        self.issue_id = issue_id


class ChildrenNotClosed(DotsError):
    code = "children_not_closed"

    def __init__(self, issue_id: str, children: list[str]) -> None:
        super().__init__(
            f"Cannot close {issue_id}: children not closed: {', '.join(children)}"
        )
        self.issue_id = issue_id
        self.children = children

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "children": list(self.children)}


class AlreadyExists(DotsError):
    code = "already_exists"


class InvalidOperation(DotsError):
    code = "invalid"


class MalformedDocument(DotsError):
    code = "malformed"

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path


class MalformedRecord(DotsError):
    code = "malformed"

    def __init__(self, line_no: int, reason: str) -> None:
        super().__init__(f"line {line_no}: {reason}")
        self.line_no = line_no
