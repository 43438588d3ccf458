"""
FastAGI server.

Accepts connections from the switch and runs one ``AGIEngine`` per
connection; engines share nothing with each other.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Set

import structlog

from agi_engine.config import ServerConfig, SessionConfig
from agi_engine.core.engine import AGIEngine
from agi_engine.core.models import Application
from agi_engine.protocol.errors import AGIError
from agi_engine.transport import StreamTransport

logger = structlog.get_logger(__name__)


class AGIServer:
    """FastAGI listener driving ``app`` for every accepted call."""

    def __init__(
        self,
        app: Application,
        server_config: Optional[ServerConfig] = None,
        session_config: Optional[SessionConfig] = None,
    ):
        self.app = app
        self.server_config = server_config or ServerConfig()
        self.session_config = session_config or SessionConfig()
        self._server: Optional[asyncio.AbstractServer] = None
        self._engines: Set[AGIEngine] = set()

    @property
    def port(self) -> Optional[int]:
        """Bound port (useful when configured with port 0)."""
        if not self._server or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    @property
    def active_sessions(self) -> int:
        return len(self._engines)

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self.handle_connection,
            self.server_config.host,
            self.server_config.port,
        )
        logger.info("FastAGI server listening", host=self.server_config.host, port=self.port)

    async def serve_forever(self) -> None:
        await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def stop(self) -> None:
        if self._server is None:
            return
        logger.info("Stopping FastAGI server", active_sessions=self.active_sessions)
        server, self._server = self._server, None
        server.close()

        await self._close_sessions()
        await server.wait_closed()
        logger.info("FastAGI server stopped")

    async def _close_sessions(self) -> None:
        """Close every open session at once; abort those still busy at the deadline."""
        closing = {asyncio.create_task(engine.close()): engine for engine in list(self._engines)}
        if not closing:
            return
        timeout = self.server_config.shutdown_timeout_ms / 1000
        _, late = await asyncio.wait(list(closing), timeout=timeout)
        for task in late:
            engine = closing[task]
            logger.warning("AGI session did not close in time, aborting", session_id=engine.session_id)
            try:
                await engine.abort("shutdown")
            except AGIError:
                pass  # reported by the close task below

        for task, engine in closing.items():
            try:
                await task
            except AGIError as exc:
                logger.warning("Failed closing AGI session", session_id=engine.session_id, error=str(exc))

    async def handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        transport = StreamTransport(reader, writer, encoding=self.server_config.encoding)
        engine = AGIEngine(
            app=self.app,
            default_timeout_ms=self.session_config.default_timeout_ms,
            close_on_app_exit=self.session_config.close_on_app_exit,
            **transport.engine_hooks(),
        )
        logger.info("FastAGI connection", peer=transport.peer, session_id=engine.session_id)

        self._engines.add(engine)
        try:
            await engine.start()
            await engine.wait_closed()
            if engine.app_task is not None:
                await engine.app_task
        except AGIError as exc:
            logger.error("AGI session failed", session_id=engine.session_id, error=str(exc))
            await transport.close()
        finally:
            self._engines.discard(engine)
            logger.info("FastAGI connection finished", peer=transport.peer,
                        session_id=engine.session_id, reason=engine.stop_reason)
