from __future__ import annotations

import asyncio


class AGIError(Exception):
    """Base class for AGI session errors."""


class AGISessionClosed(AGIError):
    """The session terminated (EOF, HANGUP or close) before a reply was read."""


class AGITimeoutError(AGIError, asyncio.TimeoutError):
    """No response line arrived within the command timeout."""


class AGIProtocolError(AGIError):
    """A line received from the switch could not be decoded."""


class AGIHookError(AGIError):
    """The io_init or io_close lifecycle hook failed."""
