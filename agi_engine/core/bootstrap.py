"""
AGI variable preamble.

When a session starts the switch sends ``agi_*`` variables as ``KEY: VALUE``
lines, closed by an empty line. Lines shorter than two characters count as
the terminator, so a stray carriage return ends the block too.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Optional

import structlog

from agi_engine.protocol.errors import AGIProtocolError

logger = structlog.get_logger(__name__)


async def read_variables(read_line: Callable[[], Awaitable[Optional[str]]]) -> Optional[Dict[str, str]]:
    """Read the preamble through ``read_line``.

    ``read_line`` returns a normalized line, or ``None`` for end-of-stream.
    Returns the variables map, or ``None`` when the stream ended first.

    Raises:
        AGIProtocolError: a non-terminator line has no ``:`` separator
    """
    variables: Dict[str, str] = {}
    while True:
        line = await read_line()
        if line is None:
            logger.debug("EOF while reading AGI variables", read=len(variables))
            return None
        if len(line) < 2:
            return variables
        key, sep, value = line.partition(":")
        if not sep:
            raise AGIProtocolError(f"Malformed AGI variable line: {line!r}")
        variables[key.strip()] = value.strip()
