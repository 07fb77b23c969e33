"""Service tests for post-trip ratings."""

import pytest

from ride_escrow.domain.enums import RideState
from ride_escrow.domain.errors import (
    AlreadyRated,
    InvalidRating,
    InvalidState,
    NotDriver,
    NotRider,
    RideNotFound,
)
from tests.conftest import DRIVER, RIDER, STRANGER


class TestRateDriver:
    @pytest.mark.asyncio
    async def test_two_rides_average(self, ratings, registry, make_ride):
        first = await make_ride(RideState.FINALIZED)
        second = await make_ride(RideState.FINALIZED)
        await ratings.rate_driver(RIDER, first.id, 4)
        await ratings.rate_driver(RIDER, second.id, 5)

        rating = await registry.get_rating(DRIVER)
        assert rating.average_x10 == 45
        assert rating.count == 2

    @pytest.mark.asyncio
    async def test_rating_is_stored_on_ride(self, ratings, make_ride, recorder):
        ride = await make_ride(RideState.FINALIZED)
        record = await ratings.rate_driver(RIDER, ride.id, 3)
        assert record.rider_rated_driver
        assert record.rider_rating == 3
        assert not record.driver_rated_rider

        event = recorder.events[-1]
        assert event.name == "DriverRated"
        assert event.payload == {"driver": DRIVER, "rating": 3, "new_average": 30}

    @pytest.mark.asyncio
    async def test_second_rating_rejected(self, ratings, registry, make_ride):
        ride = await make_ride(RideState.FINALIZED)
        await ratings.rate_driver(RIDER, ride.id, 5)
        with pytest.raises(AlreadyRated):
            await ratings.rate_driver(RIDER, ride.id, 1)
        assert (await registry.get_rating(DRIVER)).count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [0, 6, -1])
    async def test_out_of_range(self, ratings, make_ride, value):
        ride = await make_ride(RideState.FINALIZED)
        with pytest.raises(InvalidRating):
            await ratings.rate_driver(RIDER, ride.id, value)
        assert not (await ratings.get_ride_rating(ride.id)).rider_rated_driver

    @pytest.mark.asyncio
    async def test_only_rider_rates_driver(self, ratings, make_ride):
        ride = await make_ride(RideState.FINALIZED)
        with pytest.raises(NotRider):
            await ratings.rate_driver(DRIVER, ride.id, 5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "state",
        [RideState.COMPLETED_BY_DRIVER, RideState.CANCELLED, RideState.REFUNDED],
    )
    async def test_requires_finalized_ride(self, ratings, make_ride, state):
        ride = await make_ride(state)
        with pytest.raises(InvalidState):
            await ratings.rate_driver(RIDER, ride.id, 5)

    @pytest.mark.asyncio
    async def test_unknown_ride(self, ratings):
        with pytest.raises(RideNotFound):
            await ratings.rate_driver(RIDER, 99, 5)


class TestRateRider:
    @pytest.mark.asyncio
    async def test_driver_rates_rider(self, ratings, registry, make_ride, recorder):
        ride = await make_ride(RideState.FINALIZED)
        record = await ratings.rate_rider(DRIVER, ride.id, 2)
        assert record.driver_rated_rider
        assert record.driver_rating == 2
        assert recorder.events[-1].name == "RiderRated"
        # No aggregate is kept for riders, and the driver's is untouched
        assert (await registry.get_rating(DRIVER)).count == 0

    @pytest.mark.asyncio
    async def test_both_directions_are_independent(self, ratings, make_ride):
        ride = await make_ride(RideState.FINALIZED)
        await ratings.rate_rider(DRIVER, ride.id, 4)
        await ratings.rate_driver(RIDER, ride.id, 5)
        record = await ratings.get_ride_rating(ride.id)
        assert (record.rider_rating, record.driver_rating) == (5, 4)

    @pytest.mark.asyncio
    async def test_second_rating_rejected(self, ratings, make_ride):
        ride = await make_ride(RideState.FINALIZED)
        await ratings.rate_rider(DRIVER, ride.id, 4)
        with pytest.raises(AlreadyRated):
            await ratings.rate_rider(DRIVER, ride.id, 4)

    @pytest.mark.asyncio
    async def test_only_driver_rates_rider(self, ratings, make_ride):
        ride = await make_ride(RideState.FINALIZED)
        with pytest.raises(NotDriver):
            await ratings.rate_rider(STRANGER, ride.id, 4)


class TestRideRating:
    @pytest.mark.asyncio
    async def test_unrated_ride_has_empty_record(self, ratings, make_ride):
        ride = await make_ride(RideState.REQUESTED)
        record = await ratings.get_ride_rating(ride.id)
        assert record.ride_id == ride.id
        assert not record.rider_rated_driver
        assert record.rider_rating is None
