from __future__ import annotations

import os
from dataclasses import dataclass

from lifecounter.infra.redis_client import get_redis_url


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    # Coalescing window for outbound snapshot publishes.
    sync_window_ms: int = 500
    subscribe_poll_ms: int = 50
    # Whether a pending publish is sent or dropped when a client detaches.
    flush_on_detach: bool = False
    log_level: str = "INFO"

    @property
    def sync_window(self) -> float:
        return self.sync_window_ms / 1000

    @property
    def subscribe_poll_interval(self) -> float:
        return self.subscribe_poll_ms / 1000


def settings_from_env() -> Settings:
    return Settings(
        redis_url=get_redis_url(),
        sync_window_ms=_env_int("LIFECOUNTER_SYNC_WINDOW_MS", 500),
        subscribe_poll_ms=_env_int("LIFECOUNTER_SUBSCRIBE_POLL_MS", 50),
        flush_on_detach=_env_bool("LIFECOUNTER_FLUSH_ON_DETACH", False),
        log_level=os.environ.get("LIFECOUNTER_LOG_LEVEL", "INFO").upper(),
    )
