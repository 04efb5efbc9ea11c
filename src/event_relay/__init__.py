"""Anchor program event relay.

Decodes events emitted into a Solana program's log stream and pushes them to
live WebSocket subscribers.
"""

__version__ = "0.1.0"
