"""WebSocket push endpoint and per-connection subscriber sessions."""
