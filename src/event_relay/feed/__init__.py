"""Inbound log feeds and the decode pipeline that consumes them."""

from event_relay.feed.pipeline import LogPipeline, PipelineStats
from event_relay.feed.solana_logs import SolanaLogFeed
from event_relay.feed.static import StaticLogFeed

__all__ = ["LogPipeline", "PipelineStats", "SolanaLogFeed", "StaticLogFeed"]
