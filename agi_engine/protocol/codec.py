"""
AGI line codec.

Pure functions for the three things that cross the wire:

- outbound command lines: every token wrapped in double quotes, followed by a space
- inbound response lines: a status token plus a free-form payload
- raw lines handed over by a transport: terminator stripping and HANGUP detection

Nothing here validates status codes or payload shape; callers decide what a
given command's payload means.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

HANGUP_PREFIX = "HANGUP"

_PARENTHESIZED = re.compile(r"\(([^\)]*)\)")
_RESULT_CODE = re.compile(r"(?:^|\s)result=(\S*)")


def serialize(command: str, args: Sequence[str] = ()) -> str:
    """Build a command line without the trailing newline.

    No escaping is done: an argument containing a double quote produces a
    line the switch will split differently.
    """
    tokens = [command, *args]
    return "".join(f'"{token}" ' for token in tokens)


def split_command(line: str) -> List[str]:
    """Inverse of :func:`serialize` for quote-free tokens."""
    line = line.rstrip("\n")
    if not line:
        return []
    if not (line.startswith('"') and line.endswith('" ')):
        raise ValueError(f"Not a serialized AGI command: {line!r}")
    return line[1:-2].split('" "')


def parse_response(line: str) -> Tuple[str, Optional[str]]:
    """Split a response line into ``(status, extra)``.

    ``extra`` is ``None`` when the line carries nothing after the status.
    """
    status, sep, extra = line.strip().partition(" ")
    if not sep:
        return status, None
    return status, extra


def normalize_line(raw: Optional[str]) -> Optional[str]:
    """Turn what a transport read into a protocol line.

    Returns ``None`` for end-of-stream and for a line starting with HANGUP;
    otherwise the line with its final terminator character removed.
    """
    if raw is None or raw == "":
        return None
    line = raw[:-1] if raw.endswith("\n") else raw
    if line.startswith(HANGUP_PREFIX):
        return None
    return line


def extract_parenthesized(extra: Optional[str]) -> Optional[str]:
    """Return the contents of the first ``(...)`` group in ``extra``."""
    if not extra:
        return None
    match = _PARENTHESIZED.search(extra)
    if not match:
        return None
    return match.group(1)


def parse_result_code(payload: Optional[str]) -> Optional[str]:
    if not payload:
        return None
    match = _RESULT_CODE.search(payload)
    if not match:
        return None
    return match.group(1)
