"""
Stream transports for AGIEngine.

An engine only needs a line reader, a line writer and two lifecycle hooks.
``StreamTransport`` provides all four on top of an asyncio stream pair, which
covers FastAGI sockets and classic AGI over the process stdio.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class StreamTransport:
    """Line-oriented adapter around ``asyncio.StreamReader``/``StreamWriter``."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        encoding: str = "utf-8",
        peer: Optional[str] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.encoding = encoding
        self.peer = peer or str(writer.get_extra_info("peername") or "unknown")
        self._closed = False

    async def read_line(self) -> Optional[str]:
        data = await self.reader.readline()
        if not data:
            return None
        return data.decode(self.encoding, errors="replace")

    async def write_line(self, line: str) -> None:
        if self._closed:
            raise ConnectionError(f"Transport to {self.peer} is closed")
        self.writer.write(line.encode(self.encoding))
        await self.writer.drain()

    async def open(self) -> None:
        logger.debug("AGI transport opened", peer=self.peer)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            logger.debug("AGI transport already reset by peer", peer=self.peer)
        logger.debug("AGI transport closed", peer=self.peer)

    def engine_hooks(self) -> Dict[str, Any]:
        """Keyword arguments wiring this transport into ``AGIEngine``."""
        return {
            "reader": self.read_line,
            "writer": self.write_line,
            "io_init": self.open,
            "io_close": self.close,
        }


async def open_stdio_transport(encoding: str = "utf-8") -> StreamTransport:
    """Connect stdin/stdout for AGI scripts launched directly by the switch."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    # writer.wait_closed() needs a protocol with a close waiter; FlowControlMixin has none.
    w_transport, w_protocol = await loop.connect_write_pipe(
        lambda: asyncio.StreamReaderProtocol(asyncio.StreamReader()), sys.stdout
    )
    writer = asyncio.StreamWriter(w_transport, w_protocol, reader, loop)
    return StreamTransport(reader, writer, encoding=encoding, peer="stdio")
