"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .enums import Commitment


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class FeedConfig(BaseModel):
    ws_url: str = "ws://127.0.0.1:8900"
    commitment: Commitment | None = None  # Node default when unset
    reconnect: bool = False  # Feed failure is fatal unless enabled
    reconnect_initial_delay: float = 0.5  # seconds
    reconnect_max_delay: float = 30.0  # seconds
    heartbeat: float = 20.0  # WebSocket ping interval, seconds


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/ws"
    queue_size: int = Field(default=100, ge=1)  # Per-subscriber capacity
    send_timeout: float = 5.0  # seconds


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"
    metrics_port: int = 0  # 0 disables the Prometheus endpoint


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level relay settings.

    Values passed in (TOML file, CLI overrides) take precedence over
    ``RELAY_*`` environment variables, which fill in the rest.
    """

    program_id: str = ""  # base58 id of the program whose logs are relayed

    feed: FeedConfig = Field(default_factory=FeedConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "RELAY_", "env_nested_delimiter": "__"}

    def validate_program_id(self) -> None:
        """Require a well-formed program id before the feed is opened."""
        from .errors import ConfigError
        from .ids import is_pubkey

        if not self.program_id:
            raise ConfigError(
                "Program id not set (RELAY_PROGRAM_ID or --program-id)."
            )
        if not is_pubkey(self.program_id):
            raise ConfigError(
                f"Invalid program id {self.program_id!r}: expected a base58 "
                "32-byte account identifier."
            )


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

    return Settings(**data)
