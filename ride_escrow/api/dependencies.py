"""FastAPI dependency injection helpers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ride_escrow.config import settings
from ride_escrow.domain.ports import Clock, EventSink
from ride_escrow.infrastructure.clock import SystemClock
from ride_escrow.infrastructure.database import async_session_factory
from ride_escrow.infrastructure.events import (
    FanoutEventSink,
    RedisEventSink,
    SqlEventSink,
)
from ride_escrow.infrastructure.redis_client import get_redis
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.rating_ledger import RatingLedger
from ride_escrow.services.ride_engine import RideEngine

_clock = SystemClock()


async def get_publisher() -> RedisEventSink:
    """Per-request Redis fan-out; ``get_db`` flushes it after commit."""
    return RedisEventSink(await get_redis(), settings.event_channel)


async def get_db(
    publisher: RedisEventSink = Depends(get_publisher),
) -> AsyncSession:  # type: ignore[misc]
    """
    Yield an async DB session; commit on success, rollback on error.

    Events buffered in *publisher* go out only after the commit succeeds.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            publisher.discard()
            raise
    await publisher.flush()


def get_clock() -> Clock:
    return _clock


def get_event_sink(
    db: AsyncSession = Depends(get_db),
    publisher: RedisEventSink = Depends(get_publisher),
) -> EventSink:
    return FanoutEventSink(SqlEventSink(db), publisher)


def get_wallet(db: AsyncSession = Depends(get_db)) -> WalletLedger:
    return WalletLedger(db)


def get_registry(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    events: EventSink = Depends(get_event_sink),
) -> DriverRegistry:
    return DriverRegistry(db, clock, events)


def get_engine(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    wallet: WalletLedger = Depends(get_wallet),
    events: EventSink = Depends(get_event_sink),
    registry: DriverRegistry = Depends(get_registry),
) -> RideEngine:
    return RideEngine(
        db,
        clock,
        wallet,
        events,
        registry,
        accept_timeout=settings.accept_timeout_seconds,
        start_timeout=settings.start_timeout_seconds,
    )


def get_ratings(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    events: EventSink = Depends(get_event_sink),
    registry: DriverRegistry = Depends(get_registry),
) -> RatingLedger:
    return RatingLedger(db, clock, events, registry)
