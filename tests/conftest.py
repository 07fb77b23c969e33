"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  SQLite ignores ``FOR UPDATE``; every test
runs on its own engine, so there is nothing to serialize anyway.

Time is a ``FrozenClock`` the tests move by hand, which is how the refund
windows are exercised without sleeping.
"""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ride_escrow.api.middleware import limiter
from ride_escrow.domain.entities import Location, RideEvent
from ride_escrow.domain.enums import RideState
from ride_escrow.domain.ports import Clock, EventSink
from ride_escrow.domain.timeouts import ACCEPT_TIMEOUT_SECONDS
from ride_escrow.infrastructure import models  # noqa: F401  (registers tables)
from ride_escrow.infrastructure.database import Base
from ride_escrow.infrastructure.events import FanoutEventSink, SqlEventSink
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.rating_ledger import RatingLedger
from ride_escrow.services.ride_engine import RideEngine

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

RIDER = "rider-alice"
DRIVER = "driver-bob"
STRANGER = "mallory"
FARE = Decimal("100")
START_TIME = 1_700_000_000

PICKUP = Location("19.0896", "72.8656", "Airport T2")
DESTINATION = Location("19.1176", "72.9060", "Powai")

# Ride states in the order a happy-path ride reaches them
_HAPPY_PATH = [
    RideState.REQUESTED,
    RideState.ACCEPTED,
    RideState.FUNDED,
    RideState.STARTED,
    RideState.COMPLETED_BY_DRIVER,
    RideState.FINALIZED,
]

limiter.enabled = False


class FrozenClock(Clock):
    def __init__(self, now: int = START_TIME):
        self.current = now

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class RecordingEventSink(EventSink):
    """Keeps every emitted event in memory."""

    def __init__(self):
        self.events: list[RideEvent] = []

    async def emit(self, event: RideEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def clear(self) -> None:
        self.events.clear()


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Services ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def recorder() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def events(db_session, recorder) -> EventSink:
    return FanoutEventSink(SqlEventSink(db_session), recorder)


@pytest.fixture
def wallet(db_session) -> WalletLedger:
    return WalletLedger(db_session)


@pytest.fixture
def registry(db_session, clock, events) -> DriverRegistry:
    return DriverRegistry(db_session, clock, events)


@pytest.fixture
def rides(db_session, clock, wallet, events, registry) -> RideEngine:
    return RideEngine(db_session, clock, wallet, events, registry)


@pytest.fixture
def ratings(db_session, clock, events, registry) -> RatingLedger:
    return RatingLedger(db_session, clock, events, registry)


@pytest.fixture
def make_ride(rides, registry, wallet, clock):
    """Factory driving a fresh ride (RIDER / DRIVER, fare FARE) to *state*."""

    async def _make(state: RideState = RideState.REQUESTED, *, amount: Decimal = FARE):
        ride = await rides.request_ride(RIDER, PICKUP, DESTINATION, amount)
        if state is RideState.CANCELLED:
            return await rides.cancel_ride(RIDER, ride.id)

        if state is not RideState.REQUESTED and not await registry.is_registered(DRIVER):
            await registry.register_driver(DRIVER, "Bob")

        target = RideState.ACCEPTED if state is RideState.REFUNDED else state
        steps = _HAPPY_PATH[1 : _HAPPY_PATH.index(target) + 1]
        for step in steps:
            if step is RideState.ACCEPTED:
                ride = await rides.accept_ride(DRIVER, ride.id)
            elif step is RideState.FUNDED:
                await wallet.deposit(RIDER, amount)
                ride = await rides.fund_ride(RIDER, ride.id, amount)
            elif step is RideState.STARTED:
                ride = await rides.start_ride(DRIVER, ride.id)
            elif step is RideState.COMPLETED_BY_DRIVER:
                ride = await rides.complete_ride(DRIVER, ride.id)
            elif step is RideState.FINALIZED:
                ride = await rides.confirm_arrival(RIDER, ride.id)

        if state is RideState.REFUNDED:
            clock.advance(ACCEPT_TIMEOUT_SECONDS)
            ride = await rides.claim_refund_not_funded(RIDER, ride.id)
        return ride

    return _make
