"""
Driver Registry
===============

Which accounts are registered drivers, whether they are verified, and their
accumulated rating.  Registration and verification are one-way: there is no
de-registration and no un-verify.

``record_rating`` is called only by the rating ledger and has no route of
its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ride_escrow.domain.entities import DriverRecord, RideEvent
from ride_escrow.domain.errors import AlreadyRegistered, NotRegistered
from ride_escrow.domain.ports import Clock, EventSink
from ride_escrow.infrastructure.repositories import DriverRepository, RideRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverRating:
    is_registered: bool
    average_x10: int
    count: int


class DriverRegistry:
    def __init__(self, session: AsyncSession, clock: Clock, events: EventSink):
        self.session = session
        self.clock = clock
        self.events = events
        self.drivers = DriverRepository(session)
        self.rides = RideRepository(session)

    async def register_driver(self, caller: str, name: str) -> DriverRecord:
        if await self.drivers.exists(caller):
            raise AlreadyRegistered(caller)

        now = self.clock.now()
        driver = DriverRecord(account=caller, name=name, registered_at=now)
        try:
            await self.drivers.add(driver)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration of the same account
            raise AlreadyRegistered(caller) from exc

        await self.events.emit(
            RideEvent("DriverRegistered", None, caller, now, {"name": name})
        )
        logger.info("Driver registered: %s", caller)
        return driver

    async def verify_identity(self, caller: str) -> DriverRecord:
        """Persist a successful identity check.  Requires prior registration."""
        driver = await self.drivers.get(caller, for_update=True)
        if driver is None:
            raise NotRegistered(caller)
        if driver.is_verified:
            return driver

        driver.is_verified = True
        await self.drivers.save(driver)
        await self.events.emit(
            RideEvent("DriverVerified", None, caller, self.clock.now())
        )
        logger.info("Driver verified: %s", caller)
        return driver

    async def record_rating(self, account: str, rating: int) -> int:
        """Add one rider->driver rating.  Returns the new average (x10)."""
        driver = await self.drivers.get(account, for_update=True)
        if driver is None:
            raise NotRegistered(account)
        average = driver.add_rating(rating)
        await self.drivers.save(driver)
        return average

    async def is_registered(self, account: str) -> bool:
        return await self.drivers.exists(account)

    async def get_driver(self, account: str) -> DriverRecord:
        driver = await self.drivers.get(account)
        if driver is None:
            raise NotRegistered(account)
        driver.ride_ids = [r.id for r in await self.rides.list_for_driver(account)]
        return driver

    async def get_rating(self, account: str) -> DriverRating:
        driver = await self.drivers.get(account)
        if driver is None:
            return DriverRating(is_registered=False, average_x10=0, count=0)
        return DriverRating(
            is_registered=True,
            average_x10=driver.average_x10,
            count=driver.rating_count,
        )

    async def list_drivers(self) -> list[DriverRecord]:
        return await self.drivers.list_all()
