"""Client configuration via environment variables (EVSOURCE_ prefix) or defaults."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class ClientConfig(BaseSettings):
    retry_ms: int = 3000
    connect_timeout: float = 10.0
    max_buffer_bytes: int = 50_000_000  # 50 MB
    transport: Literal["httpx", "aiohttp"] = "httpx"
    store_path: str = ""  # empty = in-memory last-event-id store
    log_dir: str = "logs"
    log_level: str = "INFO"

    model_config = {"env_prefix": "EVSOURCE_"}

    @property
    def durable_store(self) -> bool:
        """Whether last-event-ids are persisted to SQLite."""
        return bool(self.store_path)
