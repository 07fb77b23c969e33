"""Service tests for driver registration, verification and rating aggregates."""

from unittest.mock import AsyncMock

import pytest

from ride_escrow.domain.entities import DriverRecord
from ride_escrow.domain.enums import RideState
from ride_escrow.domain.errors import AlreadyRegistered, NotRegistered
from tests.conftest import DRIVER, START_TIME, STRANGER


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register(self, registry, recorder):
        driver = await registry.register_driver(DRIVER, "Bob")
        assert driver.is_registered
        assert not driver.is_verified
        assert driver.registered_at == START_TIME
        assert await registry.is_registered(DRIVER)
        assert recorder.names == ["DriverRegistered"]

    @pytest.mark.asyncio
    async def test_register_twice_rejected(self, registry, recorder):
        await registry.register_driver(DRIVER, "Bob")
        with pytest.raises(AlreadyRegistered):
            await registry.register_driver(DRIVER, "Bobby")
        assert (await registry.get_driver(DRIVER)).name == "Bob"
        assert recorder.names == ["DriverRegistered"]

    @pytest.mark.asyncio
    async def test_insert_losing_to_a_concurrent_registration(
        self, registry, recorder, monkeypatch
    ):
        await registry.register_driver(DRIVER, "Bob")
        # The other registration committed after this one checked for it
        monkeypatch.setattr(registry.drivers, "exists", AsyncMock(return_value=False))

        with pytest.raises(AlreadyRegistered):
            await registry.register_driver(DRIVER, "Bobby")
        assert recorder.names == ["DriverRegistered"]

    @pytest.mark.asyncio
    async def test_list_in_registration_order(self, registry):
        await registry.register_driver(STRANGER, "Mallory")
        await registry.register_driver(DRIVER, "Bob")
        assert [d.account for d in await registry.list_drivers()] == [STRANGER, DRIVER]

    @pytest.mark.asyncio
    async def test_unknown_driver(self, registry):
        assert not await registry.is_registered(STRANGER)
        with pytest.raises(NotRegistered):
            await registry.get_driver(STRANGER)

    @pytest.mark.asyncio
    async def test_driver_record_lists_accepted_rides(self, registry, make_ride):
        first = await make_ride(RideState.ACCEPTED)
        await make_ride(RideState.REQUESTED)
        second = await make_ride(RideState.FINALIZED)
        driver = await registry.get_driver(DRIVER)
        assert driver.ride_ids == [first.id, second.id]


class TestVerification:
    @pytest.mark.asyncio
    async def test_verify(self, registry, recorder):
        await registry.register_driver(DRIVER, "Bob")
        driver = await registry.verify_identity(DRIVER)
        assert driver.is_verified
        assert (await registry.get_driver(DRIVER)).is_verified
        assert recorder.names == ["DriverRegistered", "DriverVerified"]

    @pytest.mark.asyncio
    async def test_verify_is_idempotent(self, registry, recorder):
        await registry.register_driver(DRIVER, "Bob")
        await registry.verify_identity(DRIVER)
        await registry.verify_identity(DRIVER)
        assert recorder.names.count("DriverVerified") == 1

    @pytest.mark.asyncio
    async def test_verify_requires_registration(self, registry, recorder):
        with pytest.raises(NotRegistered):
            await registry.verify_identity(STRANGER)
        assert recorder.events == []


class TestRatingAggregate:
    @pytest.mark.asyncio
    async def test_unregistered_rating_is_empty(self, registry):
        rating = await registry.get_rating(STRANGER)
        assert (rating.is_registered, rating.average_x10, rating.count) == (False, 0, 0)

    @pytest.mark.asyncio
    async def test_fresh_driver_has_no_average(self, registry):
        await registry.register_driver(DRIVER, "Bob")
        rating = await registry.get_rating(DRIVER)
        assert (rating.is_registered, rating.average_x10, rating.count) == (True, 0, 0)

    @pytest.mark.asyncio
    async def test_record_rating_updates_average(self, registry):
        await registry.register_driver(DRIVER, "Bob")
        assert await registry.record_rating(DRIVER, 4) == 40
        assert await registry.record_rating(DRIVER, 5) == 45
        rating = await registry.get_rating(DRIVER)
        assert (rating.average_x10, rating.count) == (45, 2)

    @pytest.mark.parametrize(
        "ratings,expected",
        [([5], 50), ([1, 2], 15), ([5, 4, 4], 43), ([5, 5, 4], 47), ([1, 1, 2], 13)],
    )
    def test_average_is_rounded_tenths(self, ratings, expected):
        driver = DriverRecord(account=DRIVER)
        for r in ratings:
            driver.add_rating(r)
        assert driver.average_x10 == expected
        assert driver.average_x10 == round(10 * sum(ratings) / len(ratings))
