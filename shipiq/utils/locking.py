import logging
from contextlib import contextmanager
from typing import Any, Generator

import redis

logger = logging.getLogger(__name__)


@contextmanager
def redis_lock(
    redis_client: Any, lock_name: str, timeout: int = 10, ttl: int = 30
) -> Generator[bool, None, None]:
    """
    Acquire a Redis lock, yielding whether it was acquired.

    Args:
        redis_client: Redis client instance.
        lock_name: Name of the lock key.
        timeout: Maximum time to wait for the lock in seconds.
        ttl: Lock expiry, so a crashed holder cannot block others forever.
    """
    lock = redis_client.lock(lock_name, timeout=ttl, blocking_timeout=timeout)

    acquired = False
    try:
        acquired = lock.acquire()
        if not acquired:
            logger.warning(f"Could not acquire lock {lock_name} after {timeout}s")
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
            except redis.exceptions.LockError:
                logger.warning(f"Could not release lock {lock_name} (maybe expired)")
