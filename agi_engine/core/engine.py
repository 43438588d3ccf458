"""
AGIEngine - one AGI call session.

The engine is a serial actor: a single task owns the transport and the
session state, and every request reaches it through one queue with a
per-request future. A command is written and its response line read before
the next request is taken off the queue, so there is never more than one
command in flight.

Lifecycle: INITIALIZING -> BOOTSTRAPPING -> READY -> TERMINATED.
``io_init`` runs once in ``start()``; ``io_close`` runs once when the
session terminates, whichever way that happens.
"""

from __future__ import annotations

import asyncio
import inspect
import time
import uuid
from typing import Any, Dict, Iterable, Optional, Sequence

import structlog

from agi_engine import metrics
from agi_engine.core.bootstrap import read_variables
from agi_engine.core.models import (
    NOT_IMPLEMENTED,
    Application,
    Close,
    Hook,
    LineReader,
    LineWriter,
    PendingRequest,
    RunCommand,
    SessionState,
)
from agi_engine.protocol.codec import (
    HANGUP_PREFIX,
    extract_parenthesized,
    normalize_line,
    serialize,
)
from agi_engine.protocol.errors import (
    AGIError,
    AGIHookError,
    AGIProtocolError,
    AGISessionClosed,
    AGITimeoutError,
)
from agi_engine.protocol.result import Result

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MS = 5000
SUCCESS_RESULT = "1"


async def _call_hook(hook: Optional[Hook]) -> None:
    if hook is None:
        return
    outcome = hook()
    if inspect.isawaitable(outcome):
        await outcome


class AGIEngine:
    """Drives a single AGI session over caller-supplied read/write hooks.

    Args:
        reader: coroutine returning the next raw line (with its terminator),
            or ``None``/``""`` at end-of-stream
        writer: coroutine writing one raw line; raises on failure
        app: called with the engine once the variable preamble is read
        io_init: runs once before the preamble is read
        io_close: runs once when the session terminates
        default_timeout_ms: timeout for commands that don't pass their own
        close_on_app_exit: close the session when ``app`` returns
    """

    def __init__(
        self,
        *,
        reader: LineReader,
        writer: LineWriter,
        app: Optional[Application] = None,
        io_init: Optional[Hook] = None,
        io_close: Optional[Hook] = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        close_on_app_exit: bool = True,
        session_id: Optional[str] = None,
    ):
        self._reader = reader
        self._writer = writer
        self._app = app
        self._io_init = io_init
        self._io_close = io_close
        self.default_timeout_ms = int(default_timeout_ms)
        self.close_on_app_exit = bool(close_on_app_exit)
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self._state = SessionState.INITIALIZING
        self._variables: Dict[str, str] = {}
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._app_task: Optional[asyncio.Task] = None
        self._current: Optional[PendingRequest] = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()
        self._stop_reason: Optional[str] = None
        self._close_error: Optional[AGIHookError] = None
        self._log = logger.bind(session_id=self.session_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def variables(self) -> Dict[str, str]:
        """Variables read from the preamble (a copy)."""
        return dict(self._variables)

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.TERMINATED

    @property
    def stop_reason(self) -> Optional[str]:
        return self._stop_reason if self.is_closed else None

    @property
    def app_task(self) -> Optional[asyncio.Task]:
        return self._app_task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run ``io_init`` and spawn the session task.

        Raises:
            AGIHookError: ``io_init`` failed; the session is terminated and
                ``io_close`` is not run
        """
        if self._task is not None or self._state is not SessionState.INITIALIZING:
            raise AGIError(f"AGI session {self.session_id} already started")

        self._log.info("Starting AGI session")
        try:
            await _call_hook(self._io_init)
        except Exception as exc:
            self._mark_stop("io_init_failed")
            self._set_state(SessionState.TERMINATED)
            self._closed.set()
            raise AGIHookError(f"io_init failed for AGI session {self.session_id}") from exc

        metrics.session_started()
        self._task = asyncio.create_task(self._run(), name=f"agi-session-{self.session_id}")

    async def wait_ready(self) -> Dict[str, str]:
        """Wait for the preamble; returns the variables.

        Raises:
            AGISessionClosed: the session ended before the preamble completed
        """
        if not self._ready.is_set() and not self._closed.is_set():
            ready = asyncio.ensure_future(self._ready.wait())
            closed = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({ready, closed}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                ready.cancel()
                closed.cancel()
        if not self._ready.is_set():
            raise AGISessionClosed(f"AGI session {self.session_id} ended during bootstrap")
        return self.variables

    async def wait_closed(self) -> None:
        """Wait until the session is terminated and ``io_close`` has run.

        Raises:
            AGIHookError: ``io_close`` failed
        """
        await self._closed.wait()
        if self._close_error is not None:
            raise self._close_error

    async def close(self) -> None:
        """Terminate the session. Calling it on a closed session does nothing.

        Raises:
            AGIHookError: ``io_close`` failed
        """
        if self._state is SessionState.TERMINATED:
            await self._closed.wait()
            return
        if self._task is None:
            self._mark_stop("closed")
            self._set_state(SessionState.TERMINATED)
            self._closed.set()
            return
        if self._state is not SessionState.READY:
            # Nothing is in flight yet; stop waiting for the preamble.
            await self._cancel_session("closed")
            return
        await self.call(Close(), timeout_ms=0)
        await self.wait_closed()

    async def abort(self, reason: str = "aborted") -> None:
        """Terminate without waiting for the in-flight command.

        The pending caller gets ``AGISessionClosed``; ``io_close`` still runs
        once.

        Raises:
            AGIHookError: ``io_close`` failed
        """
        if self._state is SessionState.TERMINATED or self._task is None:
            await self.close()
            return
        await self._cancel_session(reason)

    async def _cancel_session(self, reason: str) -> None:
        self._mark_stop(reason)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        if not self._closed.is_set():
            await self._terminate()
        await self.wait_closed()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def call(self, message: Any, timeout_ms: Optional[int] = None) -> Any:
        """Submit a request to the session task and wait for its reply.

        ``timeout_ms`` of ``0`` waits forever; ``None`` uses the engine
        default.

        Raises:
            AGISessionClosed: the session is, or became, terminated
            AGITimeoutError: no reply within the timeout
        """
        if self._state is SessionState.TERMINATED:
            if isinstance(message, Close):
                return None
            raise AGISessionClosed(f"AGI session {self.session_id} is closed")
        if self._task is None:
            raise AGIError(f"AGI session {self.session_id} not started")

        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._queue.put_nowait(PendingRequest(message=message, future=fut))

        timeout_ms = self.default_timeout_ms if timeout_ms is None else int(timeout_ms)
        timeout = float(timeout_ms) / 1000.0 if timeout_ms > 0 else None
        try:
            return await asyncio.wait_for(fut, timeout=timeout)
        except asyncio.TimeoutError as exc:
            self._log.warning("AGI request timed out", request=repr(message), timeout_ms=timeout_ms)
            raise AGITimeoutError(f"No AGI response within {timeout_ms} ms") from exc

    async def execute(
        self,
        command: str,
        args: Iterable[Any] = (),
        timeout_ms: Optional[int] = None,
    ) -> Result:
        """Send ``command`` with ``args`` and return the decoded response."""
        request = RunCommand(command=str(command), args=tuple(str(a) for a in args))
        return await self.call(request, timeout_ms=timeout_ms)

    async def answer(self) -> Result:
        return await self.execute("ANSWER")

    async def hangup(self, channel: str = "") -> Result:
        return await self.execute("HANGUP", [channel])

    async def set_variable(self, name: str, value: Any) -> Result:
        return await self.execute("SET", ["VARIABLE", name, value])

    async def get_full_variable(self, name: str) -> Result:
        """Evaluate ``${name}`` on the switch.

        The value comes back in parentheses and only when the result code is
        1; ``extra`` holds the value, or ``None`` otherwise.
        """
        result = await self.execute("GET", ["FULL", "VARIABLE", f"${{{name}}}"])
        if result.result == SUCCESS_RESULT:
            return result.with_extra(extract_parenthesized(result.extra))
        return result.with_extra(None)

    async def dial(
        self,
        dial_string: str,
        timeout_seconds: int,
        options: Sequence[str] = (),
        timeout_ms: Optional[int] = None,
    ) -> Result:
        if timeout_ms is None:
            timeout_ms = int(timeout_seconds) * 1000 + self.default_timeout_ms
        return await self.exec(
            "DIAL",
            [dial_string, str(timeout_seconds), ",".join(options)],
            timeout_ms=timeout_ms,
        )

    async def exec(
        self,
        application: str,
        args: Sequence[Any] = (),
        timeout_ms: Optional[int] = None,
    ) -> Result:
        return await self.execute("EXEC", [application, *args], timeout_ms=timeout_ms)

    # ------------------------------------------------------------------
    # Session task
    # ------------------------------------------------------------------

    def _mark_stop(self, reason: str) -> None:
        if self._stop_reason is None:
            self._stop_reason = reason

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._log.info("AGI session state", previous=self._state.value, state=state.value)
        self._state = state

    async def _run(self) -> None:
        try:
            self._set_state(SessionState.BOOTSTRAPPING)
            variables = await read_variables(self._read_line)
            if variables is None:
                self._log.info("AGI session ended before variables were read", reason=self._stop_reason)
                return

            self._variables = variables
            self._log.debug("Read AGI variables", variables=variables)
            self._set_state(SessionState.READY)
            self._ready.set()
            if self._app is not None:
                self._app_task = asyncio.create_task(self._run_app(), name=f"agi-app-{self.session_id}")

            while True:
                pending = await self._queue.get()
                self._current = pending
                if not await self._dispatch(pending):
                    return
                self._current = None
        except AGIProtocolError as exc:
            self._mark_stop("protocol_error")
            self._log.warning("AGI protocol error", error=str(exc))
        except asyncio.CancelledError:
            self._mark_stop("cancelled")
            raise
        finally:
            await self._terminate()

    async def _dispatch(self, pending: PendingRequest) -> bool:
        """Handle one request; returns False when the session must stop."""
        message = pending.message
        if isinstance(message, RunCommand):
            return await self._run_command(message, pending.future)
        if isinstance(message, Close):
            self._mark_stop("closed")
            if not pending.future.done():
                pending.future.set_result(None)
            return False
        self._log.warning("Unknown AGI request", request=repr(message))
        if not pending.future.done():
            pending.future.set_result(NOT_IMPLEMENTED)
        return True

    async def _run_command(self, request: RunCommand, fut: asyncio.Future) -> bool:
        if fut.done():
            self._log.debug("Skipping AGI command abandoned before dispatch", command=request.command)
            return True

        cmd = serialize(request.command, request.args)
        started = time.perf_counter()
        try:
            await self._writer(cmd + "\n")
        except Exception as exc:
            self._mark_stop("write_error")
            self._log.warning("AGI write failed", command=request.command, error=str(exc))
            metrics.record_command(request.command, "write_error")
            if not fut.done():
                closed = AGISessionClosed(f"AGI session {self.session_id} write failed")
                closed.__cause__ = exc
                fut.set_exception(closed)
            return False
        self._log.debug("AGI sending", line=cmd)

        line = await self._read_line()
        if line is None:
            metrics.record_command(request.command, self._stop_reason)
            if not fut.done():
                fut.set_exception(AGISessionClosed(f"AGI session {self.session_id} ended: {self._stop_reason}"))
            return False

        self._log.debug("AGI response", line=line)
        metrics.record_command(request.command, "ok", time.perf_counter() - started)
        result = Result.from_line(line)
        if fut.done():
            # The caller timed out; the line answers this command, not the next one.
            self._log.warning("Discarding late AGI response", command=request.command, line=line)
            metrics.late_response_discarded()
        else:
            fut.set_result(result)
        return True

    async def _read_line(self) -> Optional[str]:
        try:
            raw = await self._reader()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._mark_stop("read_error")
            self._log.warning("AGI read failed", error=str(exc))
            return None

        line = normalize_line(raw)
        if line is None:
            self._mark_stop("hangup" if raw and raw.startswith(HANGUP_PREFIX) else "eof")
        self._log.debug("AGI read", line=line)
        return line

    async def _run_app(self) -> None:
        try:
            await _call_hook(lambda: self._app(self))
        except AGISessionClosed:
            self._log.info("AGI application stopped, session closed")
            return
        except Exception:
            self._log.exception("AGI application failed")
            self._mark_stop("app_error")
        else:
            if not self.close_on_app_exit:
                return
        try:
            await self.close()
        except AGIError as exc:
            self._log.error("Closing AGI session after application exit failed", error=str(exc))

    async def _terminate(self) -> None:
        self._mark_stop("closed")
        self._set_state(SessionState.TERMINATED)
        if self._current is not None and not self._current.future.done():
            self._current.future.set_exception(AGISessionClosed(f"AGI session {self.session_id} was aborted"))
        self._current = None
        while not self._queue.empty():
            pending = self._queue.get_nowait()
            if pending.future.done():
                continue
            if isinstance(pending.message, Close):
                pending.future.set_result(None)
            else:
                pending.future.set_exception(AGISessionClosed(f"AGI session {self.session_id} is closed"))

        self._log.info("AGI session terminating", reason=self._stop_reason)
        try:
            await _call_hook(self._io_close)
        except Exception as exc:
            self._close_error = AGIHookError(f"io_close failed for AGI session {self.session_id}")
            self._close_error.__cause__ = exc
            self._log.error("AGI io_close hook failed", error=str(exc), exc_info=True)
        finally:
            metrics.session_terminated(self._stop_reason)
            self._closed.set()
