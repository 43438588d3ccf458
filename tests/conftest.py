"""
Shared pytest fixtures for AGI engine testing.

Provides a scripted in-memory transport standing in for the switch side of
the channel.
"""

import asyncio
import sys
from typing import List, Optional

import pytest
import structlog
from unittest.mock import AsyncMock

from agi_engine.core.engine import AGIEngine

PREAMBLE = [
    "agi_request: agi://127.0.0.1/demo",
    "agi_channel: PJSIP/6001-00000001",
    "agi_uniqueid: 1758498324.399",
    "agi_callerid: 6001",
    "",
]


class ScriptedTransport:
    """Switch-side script: lines fed here are what the engine reads."""

    def __init__(self):
        self._incoming: asyncio.Queue = asyncio.Queue()
        self.written: List[str] = []
        self.fail_writes = False

    def feed(self, *lines: str) -> None:
        for line in lines:
            self._incoming.put_nowait(line + "\n")

    def feed_eof(self) -> None:
        self._incoming.put_nowait(None)

    async def read_line(self) -> Optional[str]:
        return await self._incoming.get()

    async def write_line(self, line: str) -> None:
        if self.fail_writes:
            raise ConnectionResetError("peer went away")
        self.written.append(line)


async def settle(rounds: int = 10) -> None:
    """Let the session task run until it blocks again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def _log_to_stderr():
    """Keep log output off stdout, which classic AGI owns (as ``runner`` does)."""
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield
    structlog.reset_defaults()


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def io_hooks():
    return AsyncMock(name="io_init"), AsyncMock(name="io_close")


@pytest.fixture
def make_engine(transport, io_hooks):
    """Build an engine on the scripted transport; ``app`` is optional."""
    io_init, io_close = io_hooks

    def _make(app=None, **kwargs) -> AGIEngine:
        return AGIEngine(
            reader=transport.read_line,
            writer=transport.write_line,
            app=app,
            io_init=io_init,
            io_close=io_close,
            **kwargs,
        )

    return _make


@pytest.fixture
async def ready_engine(transport, make_engine):
    """Engine past the preamble, with no application attached."""
    engine = make_engine()
    transport.feed(*PREAMBLE)
    await engine.start()
    await engine.wait_ready()
    yield engine
    await engine.close()
