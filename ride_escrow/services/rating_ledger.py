"""
Rating Ledger
=============

Each finalized ride takes at most one rating per direction:

* rider -> driver: stored on the ride and added to the driver's aggregate
  in the ``DriverRegistry``;
* driver -> rider: stored on the ride only.  Riders have no aggregate
  score anywhere in the system.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from .driver_registry import DriverRegistry
from ride_escrow.domain.entities import Ride, RideEvent, RideRating
from ride_escrow.domain.enums import RideState
from ride_escrow.domain.errors import (
    AlreadyRated,
    InvalidRating,
    InvalidState,
    NotDriver,
    NotRider,
    RideNotFound,
)
from ride_escrow.domain.ports import Clock, EventSink
from ride_escrow.infrastructure.repositories import RatingRepository, RideRepository

logger = logging.getLogger(__name__)

MIN_RATING, MAX_RATING = 1, 5


class RatingLedger:
    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        events: EventSink,
        registry: DriverRegistry,
    ):
        self.clock = clock
        self.events = events
        self.registry = registry
        self.rides = RideRepository(session)
        self.ratings = RatingRepository(session)

    async def rate_driver(self, caller: str, ride_id: int, rating: int) -> RideRating:
        ride = await self._finalized_ride(ride_id)
        if caller != ride.rider:
            raise NotRider(caller, ride_id)
        _check_range(rating)

        record = await self._record(ride_id)
        if record.rider_rated_driver:
            raise AlreadyRated(ride_id, "rider rating of driver")
        record.rider_rated_driver = True
        record.rider_rating = rating
        await self.ratings.save(record)

        new_average = await self.registry.record_rating(ride.driver, rating)
        await self.events.emit(
            RideEvent(
                "DriverRated", ride_id, caller, self.clock.now(),
                {"driver": ride.driver, "rating": rating, "new_average": new_average},
            )
        )
        logger.info("Ride %s: driver %s rated %d", ride_id, ride.driver, rating)
        return record

    async def rate_rider(self, caller: str, ride_id: int, rating: int) -> RideRating:
        ride = await self._finalized_ride(ride_id)
        if caller != ride.driver:
            raise NotDriver(caller, ride_id)
        _check_range(rating)

        record = await self._record(ride_id)
        if record.driver_rated_rider:
            raise AlreadyRated(ride_id, "driver rating of rider")
        record.driver_rated_rider = True
        record.driver_rating = rating
        await self.ratings.save(record)

        await self.events.emit(
            RideEvent(
                "RiderRated", ride_id, caller, self.clock.now(),
                {"rider": ride.rider, "rating": rating},
            )
        )
        logger.info("Ride %s: rider %s rated %d", ride_id, ride.rider, rating)
        return record

    async def get_ride_rating(self, ride_id: int) -> RideRating:
        await self._ride(ride_id)
        return await self._record(ride_id)

    async def _record(self, ride_id: int) -> RideRating:
        return await self.ratings.get(ride_id) or RideRating(ride_id=ride_id)

    async def _ride(self, ride_id: int, *, for_update: bool = False) -> Ride:
        ride = await self.rides.get(ride_id, for_update=for_update) if ride_id > 0 else None
        if ride is None:
            raise RideNotFound(ride_id)
        return ride

    async def _finalized_ride(self, ride_id: int) -> Ride:
        ride = await self._ride(ride_id, for_update=True)
        if ride.state is not RideState.FINALIZED:
            raise InvalidState(ride.state, [RideState.FINALIZED])
        return ride


def _check_range(rating: int) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating(rating)
