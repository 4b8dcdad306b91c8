"""Short-ID resolution: `t1` -> `t1-create-model`."""

from __future__ import annotations

from collections.abc import Iterable

from dots.errors import Ambiguous, InvalidOperation, NotFound


def resolve(prefix: str, ids: Iterable[str]) -> str:
    """Return the unique ID matching prefix.

    An exact match wins even when it is also a prefix of longer IDs.
    """
    prefix = prefix.strip()
    if not prefix:
        raise InvalidOperation("Empty issue ID")
    known = set(ids)
    if prefix in known:
        return prefix
    matches = sorted(i for i in known if i.startswith(prefix))
    if not matches:
        raise NotFound(prefix)
    if len(matches) > 1:
        raise Ambiguous(prefix, matches)
    return matches[0]
