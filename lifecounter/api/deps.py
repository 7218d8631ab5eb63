from __future__ import annotations

import logging
from collections.abc import Generator

import redis

from lifecounter.config import settings_from_env
from lifecounter.infra.redis_client import create_redis

logger = logging.getLogger(__name__)


def get_redis() -> Generator[redis.Redis, None, None]:
    """One client per request, pointed at the configured REDIS_URL."""

    client = create_redis(settings_from_env().redis_url)
    try:
        yield client
    finally:
        try:
            client.close()
        except redis.RedisError:
            logger.debug("error closing redis client", exc_info=True)
