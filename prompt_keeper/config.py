"""Application configuration: reads from environment variables and Docker Swarm secrets."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


def _read_secret(name: str) -> str | None:
    """Read a Docker Swarm secret from /run/secrets/."""
    secret_path = Path(f"/run/secrets/{name}")
    if secret_path.exists():
        return secret_path.read_text().strip()
    return None


class Settings(BaseSettings):
    """Application settings with env var and secret support."""

    supabase_url: str = ""
    supabase_key: str = ""
    nats_url: str = "nats://localhost:4222"
    port: int = 8400
    log_level: str = "INFO"

    # Bulk operations
    bulk_concurrency: int = 8
    backup_list_cap: int = 200

    # Deletion impact scoring
    impact_team_weight: int = 20
    impact_user_weight: int = 10
    impact_usage_weight: int = 1
    high_impact_threshold: int = 100
    high_usage_threshold: int = 50

    # Usage tracking and feeds (seconds)
    usage_batch_delay: float = 2.0
    usage_flush_interval: float = 30.0
    feed_poll_interval: float = 5.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Override with Docker Swarm secrets if available
        if secret := _read_secret("supabase_url"):
            self.supabase_url = secret
        if secret := _read_secret("supabase_key"):
            self.supabase_key = secret
        if secret := _read_secret("nats_url"):
            self.nats_url = secret


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
