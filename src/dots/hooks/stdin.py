"""Read optional piped input without blocking forever."""

from __future__ import annotations

import io
import select
import sys
from typing import TextIO

# Seconds to wait for the first byte of piped input
POLL_TIMEOUT = 0.1


def read_piped_stdin(stream: TextIO | None = None, timeout: float = POLL_TIMEOUT) -> str | None:
    """Return piped input, or None for a terminal or a pipe that stays silent.

    Streams without a file descriptor (in-memory buffers) are read directly.
    """
    stream = stream if stream is not None else sys.stdin
    if stream is None or stream.isatty():
        return None
    try:
        fd = stream.fileno()
    except (io.UnsupportedOperation, OSError, ValueError):
        return stream.read()
    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        return None
    return stream.read()
