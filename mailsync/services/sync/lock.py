"""
Per-account sync lease
Redis lock with expiry so two triggers can never interleave checkpoint writes
"""
import logging
from typing import Optional

import redis
from redis.exceptions import LockError

from mailsync.services.sync.errors import SyncAlreadyRunningError

logger = logging.getLogger(__name__)

LEASE_KEY_PREFIX = "mailsync:lease:"


class SyncLease:
    """
    Non-blocking lease on one account's sync job.

    The lock expires after `ttl_seconds`, so a crashed invocation releases
    the account on its own.

    Usage:
        async with SyncLease(redis_client, account_id, ttl_seconds=300):
            ...
    """

    def __init__(self, redis_client: redis.Redis, account_id: str, ttl_seconds: int):
        self.account_id = account_id
        self.key = f"{LEASE_KEY_PREFIX}{account_id}"
        self._lock = redis_client.lock(self.key, timeout=ttl_seconds, blocking=False)

    async def __aenter__(self) -> "SyncLease":
        if not self._lock.acquire(blocking=False):
            logger.info(f"Sync lease {self.key} already held")
            raise SyncAlreadyRunningError(self.account_id)
        logger.debug(f"Acquired sync lease {self.key}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            self._lock.release()
            logger.debug(f"Released sync lease {self.key}")
        except LockError as e:
            # Lease expired mid-cycle; another invocation may own it now
            logger.warning(f"Sync lease {self.key} was lost before release: {e}")
        return None
