"""
Asterisk Gateway Interface session engine.

One ``AGIEngine`` drives one call: it reads the ``agi_*`` variable
preamble, hands itself to an application coroutine and then serializes
that application's commands over the channel, one at a time.
"""

from .core import NOT_IMPLEMENTED, AGIEngine, SessionState
from .protocol import (
    AGIError,
    AGIHookError,
    AGIProtocolError,
    AGISessionClosed,
    AGITimeoutError,
    Result,
)

__version__ = "0.3.0"

__all__ = [
    'AGIEngine',
    'NOT_IMPLEMENTED',
    'SessionState',
    'Result',
    'AGIError',
    'AGIHookError',
    'AGIProtocolError',
    'AGISessionClosed',
    'AGITimeoutError',
]
