"""Redis connection shared by the installation token cache and secret locks."""

from functools import lru_cache

import redis

# Seconds between PING checks on idle pooled connections.
HEALTH_CHECK_INTERVAL = 30


@lru_cache(maxsize=None)
def get_redis(url: str) -> redis.Redis:
    """Return the process-wide client for ``url``; redis-py pools connections."""
    if not url:
        raise ValueError("Redis URL must be provided")
    return redis.from_url(
        url, decode_responses=True, health_check_interval=HEALTH_CHECK_INTERVAL
    )
