"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Rows go out as domain entities; changes
come back through ``save`` which copies the entity onto the tracked row.

``for_update=True`` issues ``SELECT ... FOR UPDATE`` so that two commands
against the same ride (or driver, or wallet) serialize on the row lock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AccountModel,
    DriverModel,
    RideEventModel,
    RideModel,
    RideRatingModel,
)
from ride_escrow.domain.entities import (
    DriverRecord,
    Location,
    Ride,
    RideEvent,
    RideRating,
)
from ride_escrow.domain.enums import ESCROW_STATES


def as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, ride: Ride) -> Ride:
        row = RideModel()
        _apply_ride(row, ride)
        self.session.add(row)
        await self.session.flush()
        ride.id = row.id
        return ride

    async def get(self, ride_id: int, *, for_update: bool = False) -> Optional[Ride]:
        row = await self._get_row(ride_id, for_update=for_update)
        return _ride_entity(row) if row is not None else None

    async def save(self, ride: Ride) -> None:
        row = await self._get_row(ride.id)
        _apply_ride(row, ride)
        await self.session.flush()

    async def list_for_rider(self, rider: str) -> list[Ride]:
        result = await self.session.execute(
            select(RideModel).where(RideModel.rider == rider).order_by(RideModel.id)
        )
        return [_ride_entity(r) for r in result.scalars().all()]

    async def list_for_driver(self, driver: str) -> list[Ride]:
        """Rides the driver accepted, in acceptance order."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver == driver)
            .order_by(RideModel.accepted_at, RideModel.id)
        )
        return [_ride_entity(r) for r in result.scalars().all()]

    async def escrow_balance(self) -> Decimal:
        result = await self.session.execute(
            select(func.sum(RideModel.amount)).where(
                RideModel.state.in_(list(ESCROW_STATES))
            )
        )
        return as_decimal(result.scalar())

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(RideModel)
        )
        return result.scalar() or 0

    async def _get_row(
        self, ride_id: int, *, for_update: bool = False
    ) -> Optional[RideModel]:
        query = select(RideModel).where(RideModel.id == ride_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, driver: DriverRecord) -> DriverRecord:
        row = DriverModel(
            account=driver.account,
            name=driver.name,
            is_verified=driver.is_verified,
            total_rating_sum=driver.total_rating_sum,
            rating_count=driver.rating_count,
            registered_at=driver.registered_at,
        )
        self.session.add(row)
        await self.session.flush()
        return driver

    async def get(
        self, account: str, *, for_update: bool = False
    ) -> Optional[DriverRecord]:
        row = await self._get_row(account, for_update=for_update)
        return _driver_entity(row) if row is not None else None

    async def exists(self, account: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(DriverModel)
            .where(DriverModel.account == account)
        )
        return bool(result.scalar())

    async def save(self, driver: DriverRecord) -> None:
        row = await self._get_row(driver.account)
        row.is_verified = driver.is_verified
        row.total_rating_sum = driver.total_rating_sum
        row.rating_count = driver.rating_count
        await self.session.flush()

    async def list_all(self) -> list[DriverRecord]:
        """All drivers in registration order."""
        result = await self.session.execute(
            select(DriverModel).order_by(DriverModel.id)
        )
        return [_driver_entity(r) for r in result.scalars().all()]

    async def _get_row(
        self, account: str, *, for_update: bool = False
    ) -> Optional[DriverModel]:
        query = select(DriverModel).where(DriverModel.account == account)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()


class RatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, ride_id: int) -> Optional[RideRating]:
        row = await self.session.get(RideRatingModel, ride_id)
        if row is None:
            return None
        return RideRating(
            ride_id=row.ride_id,
            rider_rated_driver=row.rider_rated_driver,
            driver_rated_rider=row.driver_rated_rider,
            rider_rating=row.rider_rating,
            driver_rating=row.driver_rating,
        )

    async def save(self, rating: RideRating) -> None:
        row = await self.session.get(RideRatingModel, rating.ride_id)
        if row is None:
            row = RideRatingModel(ride_id=rating.ride_id)
            self.session.add(row)
        row.rider_rated_driver = rating.rider_rated_driver
        row.driver_rated_rider = rating.driver_rated_rider
        row.rider_rating = rating.rider_rating
        row.driver_rating = rating.driver_rating
        await self.session.flush()


class AccountRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, account: str, *, for_update: bool = False
    ) -> Optional[AccountModel]:
        query = select(AccountModel).where(AccountModel.id == account)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create(self, account: str) -> AccountModel:
        row = await self.get(account, for_update=True)
        if row is None:
            row = AccountModel(id=account, balance=Decimal("0"), is_frozen=False)
            self.session.add(row)
            await self.session.flush()
        return row

    async def balance_of(self, account: str) -> Decimal:
        row = await self.get(account)
        return as_decimal(row.balance if row is not None else None)


class EventRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, event: RideEvent) -> None:
        self.session.add(
            RideEventModel(
                name=event.name,
                ride_id=event.ride_id,
                account=event.account,
                payload=event.payload,
                occurred_at=event.occurred_at,
            )
        )
        await self.session.flush()

    async def list_for_ride(self, ride_id: int) -> list[RideEvent]:
        result = await self.session.execute(
            select(RideEventModel)
            .where(RideEventModel.ride_id == ride_id)
            .order_by(RideEventModel.id)
        )
        return [_event_entity(r) for r in result.scalars().all()]


# ── Row <-> entity mapping ────────────────────────────────────────────


def _ride_entity(row: RideModel) -> Ride:
    return Ride(
        id=row.id,
        rider=row.rider,
        driver=row.driver,
        amount=as_decimal(row.amount),
        state=row.state,
        pickup=Location(row.pickup_lat, row.pickup_lng, row.pickup_label),
        destination=Location(
            row.destination_lat, row.destination_lng, row.destination_label
        ),
        requested_at=row.requested_at,
        accepted_at=row.accepted_at,
        funded_at=row.funded_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        finalized_at=row.finalized_at,
    )


def _apply_ride(row: RideModel, ride: Ride) -> None:
    row.rider = ride.rider
    row.driver = ride.driver
    row.amount = ride.amount
    row.state = ride.state
    row.pickup_lat = ride.pickup.latitude
    row.pickup_lng = ride.pickup.longitude
    row.pickup_label = ride.pickup.label
    row.destination_lat = ride.destination.latitude
    row.destination_lng = ride.destination.longitude
    row.destination_label = ride.destination.label
    row.requested_at = ride.requested_at
    row.accepted_at = ride.accepted_at
    row.funded_at = ride.funded_at
    row.started_at = ride.started_at
    row.completed_at = ride.completed_at
    row.finalized_at = ride.finalized_at


def _driver_entity(row: DriverModel) -> DriverRecord:
    return DriverRecord(
        account=row.account,
        name=row.name,
        is_verified=row.is_verified,
        total_rating_sum=row.total_rating_sum,
        rating_count=row.rating_count,
        registered_at=row.registered_at,
    )


def _event_entity(row: RideEventModel) -> RideEvent:
    return RideEvent(
        name=row.name,
        ride_id=row.ride_id,
        account=row.account,
        occurred_at=row.occurred_at,
        payload=dict(row.payload or {}),
    )
