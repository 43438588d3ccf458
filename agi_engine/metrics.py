"""
Prometheus metrics for AGI sessions.

Labels stay low-cardinality: command verbs and termination reasons only,
never channel names or session ids.
"""

from __future__ import annotations

from typing import Optional

import structlog
from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = structlog.get_logger(__name__)

_AGI_COMMANDS_TOTAL = Counter(
    "agi_commands_total",
    "AGI commands written to the switch",
    labelnames=("command", "outcome"),
)
_AGI_COMMAND_LATENCY_SECONDS = Histogram(
    "agi_command_latency_seconds",
    "Time between writing an AGI command and reading its response line",
    labelnames=("command",),
)
_AGI_SESSIONS_ACTIVE = Gauge(
    "agi_sessions_active",
    "AGI sessions between start and termination",
)
_AGI_SESSIONS_TOTAL = Counter(
    "agi_sessions_total",
    "Terminated AGI sessions",
    labelnames=("reason",),
)
_AGI_LATE_RESPONSES_TOTAL = Counter(
    "agi_late_responses_total",
    "Response lines read after the waiting caller timed out",
)


def record_command(command: str, outcome: str, latency_s: Optional[float] = None) -> None:
    _AGI_COMMANDS_TOTAL.labels(command, outcome).inc()
    if latency_s is not None:
        _AGI_COMMAND_LATENCY_SECONDS.labels(command).observe(latency_s)


def session_started() -> None:
    _AGI_SESSIONS_ACTIVE.inc()


def session_terminated(reason: str) -> None:
    _AGI_SESSIONS_ACTIVE.dec()
    _AGI_SESSIONS_TOTAL.labels(reason).inc()


def late_response_discarded() -> None:
    _AGI_LATE_RESPONSES_TOTAL.inc()


def start_metrics_server(host: str, port: int) -> None:
    start_http_server(port, addr=host)
    logger.info("Prometheus metrics exporter started", host=host, port=port)
