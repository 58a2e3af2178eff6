"""
Background Expiry Worker
========================

Runs every ``EXPIRY_INTERVAL_SECONDS`` (default 60 s) and cancels ride
requests that have sat in PENDING longer than ``PENDING_RIDE_TTL_SECONDS``
with ``cancelled_by = SYSTEM``, which frees the passenger to request again.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance sweeps at a time
  across multiple API processes.
* Each cancel is a compare-and-swap on PENDING, so a driver accepting the
  request mid-sweep wins cleanly and the sweep skips it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.infrastructure.database import async_session_factory, unit_of_work
from src.infrastructure.locks import DistributedLock
from src.infrastructure.redis_client import get_redis
from src.services.rides import RideLifecycleService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Expiry worker started (interval=%ds, ttl=%ds)",
        settings.expiry_interval_seconds,
        settings.pending_ride_ttl_seconds,
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Expiry worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_cycle()
        except Exception:
            logger.exception("Unhandled error in expiry cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.expiry_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_expiry_cycle(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    redis: Optional[aioredis.Redis] = None,
    now: Optional[datetime] = None,
) -> int:
    """Execute one sweep.  Returns the number of requests cancelled."""
    redis = redis or await get_redis()
    lock = DistributedLock(redis, "ride_expiry", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    try:
        async with unit_of_work(session_factory) as session:
            expired = await RideLifecycleService(session).expire_stale(now=now)
        if expired:
            logger.info("Expiry cycle: cancelled %d stale requests %s", len(expired), expired)
        return len(expired)
    finally:
        await lock.release()
