"""
Process entry point: load config, set up logging and metrics, then serve
FastAGI connections (or a single classic AGI session over stdio).
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog

from agi_engine.config import AppConfig, load_config
from agi_engine.core.engine import AGIEngine
from agi_engine.logging_config import configure_logging
from agi_engine.metrics import start_metrics_server
from agi_engine.server import AGIServer
from agi_engine.transport import open_stdio_transport

logger = structlog.get_logger(__name__)


async def demo_app(agi: AGIEngine) -> None:
    """Answer the call, log who is calling and hang up."""
    await agi.answer()
    caller = await agi.get_full_variable("CALLERID(num)")
    logger.info("Call answered", session_id=agi.session_id,
                channel=agi.variables.get("agi_channel"), caller=caller.extra)
    await agi.hangup()


async def run_stdio(config: AppConfig) -> None:
    transport = await open_stdio_transport(encoding=config.server.encoding)
    engine = AGIEngine(
        app=demo_app,
        default_timeout_ms=config.session.default_timeout_ms,
        close_on_app_exit=config.session.close_on_app_exit,
        **transport.engine_hooks(),
    )
    await engine.start()
    await engine.wait_closed()


async def run_server(config: AppConfig) -> None:
    server = AGIServer(demo_app, config.server, config.session)
    await server.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    serve = asyncio.create_task(server.serve_forever(), name="fastagi-server")
    await stop.wait()
    logger.info("Received shutdown signal")
    await server.stop()
    serve.cancel()


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AGI session engine")
    parser.add_argument("--config", help="Path to YAML config (default: $AGI_CONFIG or config/agi.yaml)")
    parser.add_argument("--stdio", action="store_true", help="Run one AGI session over stdin/stdout")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    config = load_config(args.config)
    # stdout carries the AGI channel in stdio mode
    stream = sys.stderr if args.stdio else sys.stdout
    configure_logging(config.logging.level, config.logging.format, stream=stream)

    if config.metrics.enabled:
        start_metrics_server(config.metrics.host, config.metrics.port)

    if args.stdio:
        await run_stdio(config)
    else:
        await run_server(config)
