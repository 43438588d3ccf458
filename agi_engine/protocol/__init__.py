"""
AGI wire protocol: line codec, decoded results and error types.
"""

from .codec import (
    HANGUP_PREFIX,
    extract_parenthesized,
    normalize_line,
    parse_response,
    parse_result_code,
    serialize,
    split_command,
)
from .errors import (
    AGIError,
    AGIHookError,
    AGIProtocolError,
    AGISessionClosed,
    AGITimeoutError,
)
from .result import Result

__all__ = [
    'HANGUP_PREFIX',
    'extract_parenthesized',
    'normalize_line',
    'parse_response',
    'parse_result_code',
    'serialize',
    'split_command',
    'AGIError',
    'AGIHookError',
    'AGIProtocolError',
    'AGISessionClosed',
    'AGITimeoutError',
    'Result',
]
