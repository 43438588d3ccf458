"""
Core modules for the AGI session engine.

This package contains the session actor, the variable preamble reader and
the request/state types they share.
"""

from .bootstrap import read_variables
from .engine import AGIEngine, DEFAULT_TIMEOUT_MS
from .models import NOT_IMPLEMENTED, Close, RunCommand, SessionState

__all__ = [
    'AGIEngine',
    'DEFAULT_TIMEOUT_MS',
    'NOT_IMPLEMENTED',
    'Close',
    'RunCommand',
    'SessionState',
    'read_variables',
]
