"""
Ride Engine
===========

Owns ride records and drives them through the lifecycle::

    Requested -> Accepted -> Funded -> Started -> CompletedByDriver -> Finalized
                    |           |
                    +-----------+--> Cancelled | Refunded

Command flow
------------
1. Load the ride with ``SELECT ... FOR UPDATE`` (per-ride serialization).
2. Apply the transition to the entity; every precondition raises before
   anything changes.
3. Move escrowed value through the ``ValueTransfer`` collaborator.  A
   ``TransferFailed`` aborts here, before the ride row is written.
4. Persist the ride and emit exactly one event.

Timeout refunds are evaluated lazily against the clock collaborator;
nothing is scheduled in the background.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from .driver_registry import DriverRegistry
from ride_escrow.domain.entities import Location, Ride, RideEvent
from ride_escrow.domain.errors import RideNotFound
from ride_escrow.domain.ports import Clock, EventSink, ValueTransfer
from ride_escrow.domain.timeouts import (
    ACCEPT_TIMEOUT_SECONDS,
    START_TIMEOUT_SECONDS,
    RefundStatus,
    refund_status,
)
from ride_escrow.infrastructure.repositories import EventRepository, RideRepository

logger = logging.getLogger(__name__)


class RideEngine:
    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        transfer: ValueTransfer,
        events: EventSink,
        registry: DriverRegistry,
        accept_timeout: int = ACCEPT_TIMEOUT_SECONDS,
        start_timeout: int = START_TIMEOUT_SECONDS,
    ):
        self.clock = clock
        self.transfer = transfer
        self.events = events
        self.registry = registry
        self.accept_timeout = accept_timeout
        self.start_timeout = start_timeout
        self.rides = RideRepository(session)
        self.event_log = EventRepository(session)

    # ── Commands ──────────────────────────────────────────────────

    async def request_ride(
        self,
        caller: str,
        pickup: Location,
        destination: Location,
        amount: Decimal,
    ) -> Ride:
        now = self.clock.now()
        ride = Ride.request(caller, pickup, destination, amount, now)
        await self.rides.add(ride)
        await self._emit(
            ride, "RideRequested", caller, now, rider=caller, amount=str(amount)
        )
        logger.info("Ride %s requested by %s (fare=%s)", ride.id, caller, amount)
        return ride

    async def accept_ride(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        registered = await self.registry.is_registered(caller)
        ride.accept(caller, now, is_registered=registered)
        await self._commit(ride, "RideAccepted", caller, now, driver=caller, accepted_at=now)
        return ride

    async def fund_ride(self, caller: str, ride_id: int, value: Decimal) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.fund(caller, value, now)
        # Only the fare is taken; any excess offered stays with the rider
        await self.transfer.collect(caller, ride.amount)
        await self._commit(
            ride, "RideFunded", caller, now,
            amount=str(ride.amount), offered=str(value), funded_at=now,
        )
        return ride

    async def start_ride(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.start(caller, now)
        await self._commit(ride, "RideStarted", caller, now, timestamp=now)
        return ride

    async def complete_ride(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.complete(caller, now)
        await self._commit(ride, "RideCompletedByDriver", caller, now, timestamp=now)
        return ride

    async def confirm_arrival(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.confirm_arrival(caller, now)
        await self.transfer.pay(ride.driver, ride.amount)
        await self._commit(
            ride, "RideFinalized", caller, now,
            driver=ride.driver, amount=str(ride.amount),
        )
        return ride

    async def cancel_ride(self, caller: str, ride_id: int, reason: str = "") -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        refund = ride.cancel(caller)
        if refund:
            await self.transfer.pay(ride.rider, ride.amount)
        await self._commit(
            ride, "RideCancelled", caller, now,
            cancelled_by=caller,
            reason=reason,
            refunded=str(ride.amount if refund else Decimal("0")),
        )
        return ride

    async def claim_refund_not_funded(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.refund_not_funded(caller, now, self.accept_timeout)
        await self._commit(
            ride, "RideRefunded", caller, now,
            rider=ride.rider, amount="0", reason="Ride not funded in time",
        )
        return ride

    async def claim_refund_not_started(self, caller: str, ride_id: int) -> Ride:
        ride = await self._load(ride_id)
        now = self.clock.now()
        ride.refund_not_started(caller, now, self.start_timeout)
        await self.transfer.pay(ride.rider, ride.amount)
        await self._commit(
            ride, "RideRefunded", caller, now,
            rider=ride.rider, amount=str(ride.amount), reason="Ride not started in time",
        )
        return ride

    # ── Queries ───────────────────────────────────────────────────

    async def get_ride(self, ride_id: int) -> Ride:
        return await self._load(ride_id, for_update=False)

    async def rides_for_rider(self, rider: str) -> list[Ride]:
        return await self.rides.list_for_rider(rider)

    async def rides_for_driver(self, driver: str) -> list[Ride]:
        return await self.rides.list_for_driver(driver)

    async def refund_status(self, ride_id: int) -> RefundStatus:
        ride = await self._load(ride_id, for_update=False)
        return refund_status(
            ride, self.clock.now(), self.accept_timeout, self.start_timeout
        )

    async def escrow_balance(self) -> Decimal:
        return await self.rides.escrow_balance()

    async def ride_count(self) -> int:
        return await self.rides.count()

    async def ride_events(self, ride_id: int) -> list[RideEvent]:
        await self._load(ride_id, for_update=False)
        return await self.event_log.list_for_ride(ride_id)

    # ── Internals ─────────────────────────────────────────────────

    async def _load(self, ride_id: int, *, for_update: bool = True) -> Ride:
        if ride_id <= 0:
            raise RideNotFound(ride_id)
        ride = await self.rides.get(ride_id, for_update=for_update)
        if ride is None:
            raise RideNotFound(ride_id)
        return ride

    async def _commit(
        self, ride: Ride, event: str, caller: str, now: int, **payload: Any
    ) -> None:
        await self.rides.save(ride)
        await self._emit(ride, event, caller, now, **payload)
        logger.info("Ride %s -> %s by %s", ride.id, ride.state.value, caller)

    async def _emit(
        self, ride: Ride, event: str, caller: str, now: int, **payload: Any
    ) -> None:
        await self.events.emit(RideEvent(event, ride.id, caller, now, payload))
