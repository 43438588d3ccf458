"""
Data types shared by the AGI session engine.

Requests sent to an engine form a closed set: ``RunCommand`` and ``Close``.
Anything else submitted through ``AGIEngine.call`` is answered with
``NOT_IMPLEMENTED``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

LineReader = Callable[[], Awaitable[Optional[str]]]
LineWriter = Callable[[str], Awaitable[None]]
Hook = Callable[[], Union[None, Awaitable[None]]]
Application = Callable[[Any], Union[None, Awaitable[None]]]


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    TERMINATED = "terminated"


class _NotImplementedMarker:
    _instance: Optional["_NotImplementedMarker"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_IMPLEMENTED"


NOT_IMPLEMENTED = _NotImplementedMarker()


@dataclass(frozen=True)
class RunCommand:
    """Write one command line and read its response."""

    command: str
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Close:
    """Terminate the session after the requests queued before it."""


@dataclass
class PendingRequest:
    message: Any
    future: asyncio.Future = field(repr=False)
