"""Application bootstrap and lifecycle.

Wires the log feed, the decode pipeline, the broadcaster and the WebSocket
server, then blocks until a shutdown signal arrives or the pipeline ends.
Shutdown always stops the pipeline task, closes every subscriber session and
tears down the HTTP server before returning.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from .bus.broadcaster import Broadcaster
from .core.config import Settings, load_settings
from .core.interfaces import LogFeed
from .feed.pipeline import LogPipeline
from .feed.solana_logs import SolanaLogFeed
from .observability.logger import setup_logging
from .server.app import create_relay_app, start_relay_server

logger = logging.getLogger(__name__)


def build_feed(settings: Settings) -> SolanaLogFeed:
    """Live node feed for the configured program."""
    settings.validate_program_id()
    feed_cfg = settings.feed
    return SolanaLogFeed(
        ws_url=feed_cfg.ws_url,
        program_id=settings.program_id,
        commitment=feed_cfg.commitment,
        reconnect=feed_cfg.reconnect,
        initial_delay=feed_cfg.reconnect_initial_delay,
        max_delay=feed_cfg.reconnect_max_delay,
        heartbeat=feed_cfg.heartbeat,
    )


async def run(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    feed: LogFeed | None = None,
    serve_after_feed_end: bool = False,
) -> None:
    """Main entry point. Load config, wire modules, run until shutdown.

    Args:
        config_path: Optional TOML config file.
        overrides: Settings overrides (CLI flags).
        feed: Log feed to consume; defaults to the live Solana feed.
        serve_after_feed_end: Keep the WebSocket server up after a feed with
            a natural end (replay) is exhausted.

    Raises:
        FeedError: the log feed failed (fatal unless reconnect is enabled).
    """
    # 1. Load settings
    settings = load_settings(config_path=config_path, overrides=overrides)

    # 2. Set up logging
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )

    # 3. Feed (validates the program id for the live feed)
    if feed is None:
        feed = build_feed(settings)

    # 4. Metrics endpoint
    if settings.observability.metrics_port:
        try:
            from .observability.metrics import start_metrics_server

            start_metrics_server(port=settings.observability.metrics_port)
            logger.info(
                "Prometheus metrics server started on port %d",
                settings.observability.metrics_port,
            )
        except Exception:
            logger.warning("Failed to start metrics server", exc_info=True)

    # 5. Fan-out + pipeline + push endpoint
    server_cfg = settings.server
    broadcaster = Broadcaster(queue_size=server_cfg.queue_size)
    pipeline = LogPipeline(broadcaster)
    app = create_relay_app(
        broadcaster,
        pipeline=pipeline,
        path=server_cfg.path,
        send_timeout=server_cfg.send_timeout,
    )
    runner = await start_relay_server(app, server_cfg.host, server_cfg.port)

    # 6. Graceful shutdown
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except (NotImplementedError, RuntimeError):
            pass  # Not supported on this platform / thread

    pipeline_task = asyncio.create_task(pipeline.run(feed), name="pipeline")
    stop_task = asyncio.create_task(stop_event.wait(), name="shutdown")

    try:
        await asyncio.wait(
            {pipeline_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if (
            pipeline_task.done()
            and pipeline_task.exception() is None
            and serve_after_feed_end
        ):
            logger.info("Feed exhausted; serving until shutdown signal")
            await stop_task
        elif pipeline_task.done() and pipeline_task.exception() is None:
            await broadcaster.wait_drained(server_cfg.send_timeout)
    finally:
        for task in (pipeline_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(pipeline_task, stop_task, return_exceptions=True)
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
        broadcaster.close()
        await runner.cleanup()
        logger.info("Shutdown complete")

    if not pipeline_task.cancelled() and pipeline_task.exception() is not None:
        raise pipeline_task.exception()
