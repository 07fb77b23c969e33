"""
Concurrent commands against the same ride or account.

Every command runs in its own session, connection and transaction on a
file-backed SQLite database.  SQLite has no row locks, so the engine is
wrapped with ``serialize_sqlite_writes`` exactly as a SQLite deployment is.
Set ``TEST_POSTGRES_URL`` to run the same races against PostgreSQL, where
``SELECT ... FOR UPDATE`` and the unique index do the serializing.
"""

import asyncio
import os
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ride_escrow.domain.entities import Ride
from ride_escrow.domain.enums import RideState
from ride_escrow.domain.errors import AlreadyRegistered, InvalidState
from ride_escrow.infrastructure import models  # noqa: F401  (registers tables)
from ride_escrow.infrastructure.database import Base, serialize_sqlite_writes
from ride_escrow.infrastructure.events import SqlEventSink
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.ride_engine import RideEngine
from tests.conftest import DESTINATION, DRIVER, FARE, PICKUP, RIDER

POSTGRES_URL = os.environ.get("TEST_POSTGRES_URL")
OTHER_DRIVER = "driver-carol"


@pytest_asyncio.fixture(params=["sqlite", "postgres"])
async def race_sessions(request, tmp_path):
    if request.param == "postgres":
        if not POSTGRES_URL:
            pytest.skip("TEST_POSTGRES_URL not set")
        engine = create_async_engine(POSTGRES_URL)
    else:
        engine = serialize_sqlite_writes(
            create_async_engine(
                f"sqlite+aiosqlite:///{tmp_path / 'rides.db'}",
                connect_args={"timeout": 30},
            )
        )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def run(race_sessions, clock):
    """Run ``command(wallet, registry, rides)`` in its own committed transaction."""

    async def _run(command):
        async with race_sessions() as session:
            events = SqlEventSink(session)
            wallet = WalletLedger(session)
            registry = DriverRegistry(session, clock, events)
            rides = RideEngine(session, clock, wallet, events, registry)
            try:
                result = await command(wallet, registry, rides)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return result

    return _run


async def race(run, *commands):
    return await asyncio.gather(*(run(c) for c in commands), return_exceptions=True)


def split(results):
    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    return winners, losers


async def funded_ride(run) -> Ride:
    async def setup(wallet, registry, rides):
        await registry.register_driver(DRIVER, "Bob")
        ride = await rides.request_ride(RIDER, PICKUP, DESTINATION, FARE)
        await rides.accept_ride(DRIVER, ride.id)
        await wallet.deposit(RIDER, FARE)
        return await rides.fund_ride(RIDER, ride.id, FARE)

    return await run(setup)


async def snapshot(run, ride_id: int):
    async def read(wallet, registry, rides):
        return (
            await rides.get_ride(ride_id),
            await wallet.balance_of(RIDER),
            await rides.escrow_balance(),
            [e.name for e in await rides.ride_events(ride_id)],
        )

    return await run(read)


class TestAcceptRace:
    @pytest.mark.asyncio
    async def test_exactly_one_driver_gets_the_ride(self, run):
        async def setup(wallet, registry, rides):
            await registry.register_driver(DRIVER, "Bob")
            await registry.register_driver(OTHER_DRIVER, "Carol")
            return await rides.request_ride(RIDER, PICKUP, DESTINATION, FARE)

        ride = await run(setup)

        winners, losers = split(
            await race(
                run,
                lambda w, r, rides: rides.accept_ride(DRIVER, ride.id),
                lambda w, r, rides: rides.accept_ride(OTHER_DRIVER, ride.id),
            )
        )

        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], InvalidState)

        stored, _, _, names = await snapshot(run, ride.id)
        assert stored.state is RideState.ACCEPTED
        assert stored.driver == winners[0].driver
        assert names.count("RideAccepted") == 1


class TestRegistrationRace:
    @pytest.mark.asyncio
    async def test_same_account_registers_once(self, run):
        winners, losers = split(
            await race(
                run,
                lambda w, registry, r: registry.register_driver(DRIVER, "Bob"),
                lambda w, registry, r: registry.register_driver(DRIVER, "Bobby"),
            )
        )

        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], AlreadyRegistered)

        async def drivers(wallet, registry, rides):
            return await registry.list_drivers()

        assert [d.name for d in await run(drivers)] == [winners[0].name]


class TestEscrowRaces:
    @pytest.mark.asyncio
    async def test_cancel_and_start_do_not_both_commit(self, run):
        ride = await funded_ride(run)

        winners, losers = split(
            await race(
                run,
                lambda w, r, rides: rides.cancel_ride(RIDER, ride.id),
                lambda w, r, rides: rides.start_ride(DRIVER, ride.id),
            )
        )

        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], InvalidState)

        stored, rider_balance, escrow, names = await snapshot(run, ride.id)
        if stored.state is RideState.CANCELLED:
            assert (rider_balance, escrow) == (FARE, Decimal("0"))
            assert "RideStarted" not in names
        else:
            assert stored.state is RideState.STARTED
            assert (rider_balance, escrow) == (Decimal("0"), FARE)
            assert "RideCancelled" not in names

    @pytest.mark.asyncio
    async def test_double_cancel_refunds_once(self, run):
        ride = await funded_ride(run)

        winners, losers = split(
            await race(
                run,
                lambda w, r, rides: rides.cancel_ride(RIDER, ride.id),
                lambda w, r, rides: rides.cancel_ride(DRIVER, ride.id),
            )
        )

        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], InvalidState)

        stored, rider_balance, escrow, names = await snapshot(run, ride.id)
        assert stored.state is RideState.CANCELLED
        assert rider_balance == FARE
        assert escrow == Decimal("0")
        assert names.count("RideCancelled") == 1


class TestRequestRace:
    @pytest.mark.asyncio
    async def test_parallel_requests_get_distinct_ids(self, run):
        results = await race(
            run,
            *[
                lambda w, r, rides: rides.request_ride(RIDER, PICKUP, DESTINATION, FARE)
                for _ in range(5)
            ],
        )

        winners, losers = split(results)
        assert losers == []
        assert sorted(ride.id for ride in winners) == [1, 2, 3, 4, 5]

        async def listed(wallet, registry, rides):
            return await rides.rides_for_rider(RIDER)

        assert [ride.id for ride in await run(listed)] == [1, 2, 3, 4, 5]
