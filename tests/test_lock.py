"""
Unit tests for the per-account sync lease.
"""
import pytest
from redis.exceptions import LockError

from mailsync.services.sync.errors import SyncAlreadyRunningError
from mailsync.services.sync.lock import SyncLease


class FakeLock:
    def __init__(self, registry, name, timeout):
        self.registry = registry
        self.name = name
        self.timeout = timeout
        self.owned = False

    def acquire(self, blocking=None):
        if self.name in self.registry:
            return False
        self.registry[self.name] = self.timeout
        self.owned = True
        return True

    def release(self):
        if not self.owned or self.name not in self.registry:
            raise LockError("Cannot release an unlocked lock")
        del self.registry[self.name]
        self.owned = False


class FakeRedis:
    """Just enough of redis.Redis.lock for lease tests."""

    def __init__(self):
        self.held = {}

    def lock(self, name, timeout=None, blocking=True):
        return FakeLock(self.held, name, timeout)


@pytest.mark.asyncio
class TestSyncLease:

    async def test_acquires_and_releases(self):
        redis_client = FakeRedis()

        async with SyncLease(redis_client, "acct-1", ttl_seconds=300) as lease:
            assert redis_client.held == {"mailsync:lease:acct-1": 300}
            assert lease.account_id == "acct-1"

        assert redis_client.held == {}

    async def test_second_holder_is_rejected(self):
        redis_client = FakeRedis()

        async with SyncLease(redis_client, "acct-1", ttl_seconds=300):
            with pytest.raises(SyncAlreadyRunningError):
                async with SyncLease(redis_client, "acct-1", ttl_seconds=300):
                    pass

        assert redis_client.held == {}

    async def test_accounts_are_independent(self):
        redis_client = FakeRedis()

        async with SyncLease(redis_client, "acct-1", ttl_seconds=300):
            async with SyncLease(redis_client, "acct-2", ttl_seconds=300):
                assert len(redis_client.held) == 2

    async def test_released_on_error(self):
        redis_client = FakeRedis()

        with pytest.raises(RuntimeError):
            async with SyncLease(redis_client, "acct-1", ttl_seconds=300):
                raise RuntimeError("cycle blew up")

        assert redis_client.held == {}

    async def test_expired_lease_does_not_mask_result(self):
        redis_client = FakeRedis()

        async with SyncLease(redis_client, "acct-1", ttl_seconds=1):
            # TTL ran out mid-cycle
            redis_client.held.clear()

        assert redis_client.held == {}
