"""
SQLAlchemy ORM models.

Tables
------
* ``accounts``      -- wallet balances used as the value-transfer backend
* ``drivers``       -- registered drivers; ``id`` is the registration order
* ``rides``         -- one row per ride request, never deleted
* ``ride_ratings``  -- the two post-trip ratings of a ride (lazy)
* ``ride_events``   -- durable log of every successful transition

Indexes
-------
* **B-Tree** on ``rides.rider`` / ``rides.driver`` back the per-account
  ride listings, ``rides.state`` backs the escrow balance query and
  ``ride_events.ride_id`` the per-ride event history.

Timestamps written by the core are unix seconds (``BigInteger``) supplied
by the clock collaborator; ``created_at`` columns are bookkeeping only.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    func,
)

from .database import Base
from ride_escrow.domain.enums import RideState

MONEY = Numeric(20, 8)


class AccountModel(Base):
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    balance = Column(MONEY, default=0, nullable=False)
    is_frozen = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account = Column(String(64), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    total_rating_sum = Column(Integer, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    registered_at = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = {"sqlite_autoincrement": True}


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider = Column(String(64), nullable=False)
    driver = Column(String(64), nullable=True)
    amount = Column(MONEY, nullable=False)
    state = Column(Enum(RideState), default=RideState.REQUESTED, nullable=False)

    # Opaque location records, stored verbatim
    pickup_lat = Column(String(64), nullable=False, default="")
    pickup_lng = Column(String(64), nullable=False, default="")
    pickup_label = Column(String(255), nullable=False, default="")
    destination_lat = Column(String(64), nullable=False, default="")
    destination_lng = Column(String(64), nullable=False, default="")
    destination_label = Column(String(255), nullable=False, default="")

    requested_at = Column(BigInteger, nullable=False)
    accepted_at = Column(BigInteger, nullable=True)
    funded_at = Column(BigInteger, nullable=True)
    started_at = Column(BigInteger, nullable=True)
    completed_at = Column(BigInteger, nullable=True)
    finalized_at = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_rider", "rider"),
        Index("idx_rides_driver", "driver"),
        Index("idx_rides_state", "state"),
        {"sqlite_autoincrement": True},
    )


class RideRatingModel(Base):
    __tablename__ = "ride_ratings"

    ride_id = Column(Integer, ForeignKey("rides.id"), primary_key=True)
    rider_rated_driver = Column(Boolean, default=False, nullable=False)
    driver_rated_rider = Column(Boolean, default=False, nullable=False)
    rider_rating = Column(SmallInteger, nullable=True)
    driver_rating = Column(SmallInteger, nullable=True)


class RideEventModel(Base):
    __tablename__ = "ride_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(40), nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    account = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    occurred_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_ride_events_ride", "ride_id"),
        Index("idx_ride_events_name", "name"),
    )
