"""
Configuration loaded from environment variables (and .env). Fail-fast on invalid values.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "ignore"}

    # Server
    ws_url: str = Field(default="wss://demoserver.dev/ws", min_length=1, description="Dataset server WebSocket URL")

    # Timing
    pull_interval_ms: int = Field(default=12000, gt=0, description="getEvents poll interval (ms)")

    # Legacy. Accepted for compatibility with existing launch scripts, not read by
    # any algorithm.
    win: int = 100

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    @property
    def pull_interval_sec(self) -> float:
        return self.pull_interval_ms / 1000.0


def load_config() -> Config:
    """Load and validate config from environment. Raises ValidationError on bad values."""
    return Config()
