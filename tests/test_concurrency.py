"""
Concurrency safety tests.

Demonstrates:
1. Distributed lock acquire / release semantics (mocked Redis).
2. The expiry sweep only runs while holding the lock and always releases it.
3. A driver accepting a request mid-sweep keeps the ride.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.domain.enums import CancelledBy, RideStatus
from src.infrastructure.locks import DistributedLock, LockNotAcquired
from src.infrastructure.repositories import RideRequestRepository
from src.services.rides import RideLifecycleService
from src.workers.expiry import run_expiry_cycle
from tests.conftest import AIRPORT, ASHA, BEN, MG_ROAD, RAVI


def _redis(acquired: bool = True) -> AsyncMock:
    mock_redis = AsyncMock()
    mock_redis.set = AsyncMock(return_value=acquired)
    mock_redis.eval = AsyncMock(return_value=1)
    return mock_redis


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        lock = DistributedLock(_redis(True), "test-key", ttl_seconds=10)
        assert await lock.acquire() is True

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        lock = DistributedLock(_redis(False), "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_acquire_uses_set_nx_with_ttl(self):
        mock_redis = _redis()
        lock = DistributedLock(mock_redis, "ride_expiry", ttl_seconds=60)
        await lock.acquire()
        mock_redis.set.assert_awaited_once_with(
            "lock:ride_expiry", lock.token, nx=True, ex=60
        )

    @pytest.mark.asyncio
    async def test_release_only_deletes_own_token(self):
        mock_redis = _redis()
        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        assert await lock.release() is True

        _, numkeys, key, token = mock_redis.eval.call_args.args
        assert (numkeys, key, token) == (1, "lock:test-key", lock.token)

    @pytest.mark.asyncio
    async def test_release_after_expiry_reports_false(self):
        mock_redis = _redis()
        mock_redis.eval = AsyncMock(return_value=0)
        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.release() is False

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        lock = DistributedLock(_redis(False), "test-key", ttl_seconds=10)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass


class TestExpiryCycle:
    @pytest.mark.asyncio
    async def test_cycle_cancels_stale_requests(self, run, session_factory):
        ride = await run(
            lambda s: RideLifecycleService(s).submit(ASHA, AIRPORT, MG_ROAD)
        )
        mock_redis = _redis()
        later = datetime.now(timezone.utc) + timedelta(hours=1)

        assert await run_expiry_cycle(session_factory, mock_redis, now=later) == 1
        mock_redis.eval.assert_awaited_once()

        stored = await run(lambda s: RideRequestRepository(s).get_by_id(ride.id))
        assert stored.status == RideStatus.CANCELLED
        assert stored.cancelled_by == CancelledBy.SYSTEM

    @pytest.mark.asyncio
    async def test_cycle_skips_when_lock_is_held(self, run, session_factory):
        ride = await run(
            lambda s: RideLifecycleService(s).submit(ASHA, AIRPORT, MG_ROAD)
        )
        mock_redis = _redis(False)
        later = datetime.now(timezone.utc) + timedelta(hours=1)

        assert await run_expiry_cycle(session_factory, mock_redis, now=later) == 0
        mock_redis.eval.assert_not_awaited()

        stored = await run(lambda s: RideRequestRepository(s).get_by_id(ride.id))
        assert stored.status == RideStatus.PENDING

    @pytest.mark.asyncio
    async def test_accepted_request_survives_sweep(self, run, session_factory):
        stale = await run(
            lambda s: RideLifecycleService(s).submit(ASHA, AIRPORT, MG_ROAD)
        )
        taken = await run(
            lambda s: RideLifecycleService(s).submit(BEN, AIRPORT, MG_ROAD)
        )
        await run(lambda s: RideLifecycleService(s).claim(RAVI, taken.id))
        later = datetime.now(timezone.utc) + timedelta(hours=1)

        assert await run_expiry_cycle(session_factory, _redis(), now=later) == 1

        stored = await run(lambda s: RideRequestRepository(s).get_by_id(taken.id))
        assert stored.status == RideStatus.ACCEPTED
        assert stored.driver_id == RAVI.actor_id
        stored = await run(lambda s: RideRequestRepository(s).get_by_id(stale.id))
        assert stored.status == RideStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_lock_released_when_sweep_fails(self):
        mock_redis = _redis()
        broken = MagicMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await run_expiry_cycle(broken, mock_redis)
        mock_redis.eval.assert_awaited_once()
