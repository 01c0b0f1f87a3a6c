"""
Hold expiry sweeper.

Priced registrations start as pending holds with `hold_expires_at` set.
Nothing in this service captures payment, so a hold that reaches its expiry
still pending is cancelled and its tickets go back to the event.

Each hold is handled in its own transaction: the conditional
pending -> cancelled update and the release commit together, and a hold
whose update matches nothing (already cancelled, or cancelled by an admin a
moment ago) releases nothing. Re-running a pass is therefore a no-op for
everything the previous pass handled, and one bad record never stops the
rest of the batch.
"""

import asyncio
import time
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from district_events.core.config import get_settings
from district_events.core.logging import get_logger
from district_events.core.metrics import holds_swept, record_release, sweep_duration, sweep_failures
from district_events.db.base import utcnow
from district_events.models.registration import RegistrationStatus
from district_events.services import ledger_service
from district_events.services.reservation_service import release_spots

logger = get_logger(__name__)
settings = get_settings()


async def sweep_expired_holds(
    session_factory: async_sessionmaker[AsyncSession],
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
) -> int:
    """Cancel expired pending holds and release their spots. Returns the count released."""
    now = now or utcnow()
    limit = batch_size or settings.SWEEP_BATCH_SIZE
    start = time.perf_counter()

    async with session_factory() as db:
        candidates = await ledger_service.find_expired_holds(db, now, limit)

    released = 0
    failed = 0
    for registration_id, event_id, num_tickets in candidates:
        try:
            async with session_factory() as db:
                cancelled = await ledger_service.cancel_registration(
                    db,
                    registration_id,
                    only_if_status=RegistrationStatus.PENDING,
                    expired_before=now,
                )
                if cancelled is None:
                    continue
                await release_spots(db, event_id, num_tickets)
                await db.commit()
        except Exception as exc:
            failed += 1
            sweep_failures.inc()
            logger.error(
                "hold_release_failed",
                registration_id=registration_id,
                event_id=event_id,
                error=str(exc),
            )
            continue

        released += 1
        holds_swept.inc()
        record_release("hold_expired", num_tickets)
        logger.info(
            "hold_expired",
            registration_id=registration_id,
            event_id=event_id,
            spots_released=num_tickets,
        )

    sweep_duration.observe(time.perf_counter() - start)
    if candidates:
        logger.info(
            "hold_sweep_completed",
            scanned=len(candidates),
            released=released,
            failed=failed,
        )
    return released


async def run_sweeper(
    session_factory: async_sessionmaker[AsyncSession],
    stop_event: asyncio.Event,
    interval_seconds: Optional[float] = None,
) -> None:
    """Sweep every `interval_seconds` until `stop_event` is set."""
    interval = interval_seconds or settings.SWEEP_INTERVAL_SECONDS
    logger.info("hold_sweeper_started", interval_seconds=interval)

    while not stop_event.is_set():
        try:
            await sweep_expired_holds(session_factory)
        except Exception as exc:
            # e.g. database unreachable; try again next tick
            logger.error("hold_sweep_failed", error=str(exc))

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("hold_sweeper_stopped")
