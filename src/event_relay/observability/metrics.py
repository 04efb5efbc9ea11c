"""Prometheus metrics endpoint.

Exposes relay throughput and subscriber health for monitoring via Grafana.
"""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Info,
    start_http_server,
)

from event_relay import __version__

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SYSTEM_INFO = Info("event_relay", "Event relay information")

# ---------------------------------------------------------------------------
# Feed / pipeline metrics
# ---------------------------------------------------------------------------

LOG_LINES = Counter(
    "event_relay_log_lines_total",
    "Raw log lines received from the feed",
)

PAYLOADS_DROPPED = Counter(
    "event_relay_payloads_dropped_total",
    "Program-data payloads dropped without producing an event",
    ["reason"],
)

EVENTS_DECODED = Counter(
    "event_relay_events_decoded_total",
    "Program events decoded",
    ["event_type"],
)

FEED_RECONNECTIONS = Counter(
    "event_relay_feed_reconnections_total",
    "Log-feed reconnection attempts",
)

# ---------------------------------------------------------------------------
# Fan-out metrics
# ---------------------------------------------------------------------------

ACTIVE_SUBSCRIBERS = Gauge(
    "event_relay_active_subscribers",
    "Currently connected subscribers",
)

EVENTS_PUBLISHED = Counter(
    "event_relay_events_published_total",
    "Events handed to the broadcaster",
)

OVERFLOW_DROPS = Counter(
    "event_relay_overflow_drops_total",
    "Queued events discarded because a subscriber fell behind",
)

SESSIONS_CLOSED = Counter(
    "event_relay_sessions_closed_total",
    "Subscriber sessions closed",
    ["reason"],
)


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({"version": __version__})
    start_http_server(port)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_log_lines(count: int) -> None:
    LOG_LINES.inc(count)


def record_payload_dropped(reason: str) -> None:
    """Record a payload dropped by the extractor or decoder."""
    PAYLOADS_DROPPED.labels(reason=reason).inc()


def record_event_decoded(event_type: str) -> None:
    EVENTS_DECODED.labels(event_type=event_type).inc()


def record_feed_reconnection() -> None:
    FEED_RECONNECTIONS.inc()


def record_published() -> None:
    EVENTS_PUBLISHED.inc()


def record_overflow_drop() -> None:
    OVERFLOW_DROPS.inc()


def update_active_subscribers(count: int) -> None:
    ACTIVE_SUBSCRIBERS.set(count)


def record_session_closed(reason: str) -> None:
    SESSIONS_CLOSED.labels(reason=reason).inc()
