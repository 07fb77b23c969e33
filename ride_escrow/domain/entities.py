"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: every lifecycle command is a method that
  checks the current state first, then the caller's identity, then any
  command-specific rule, and only then mutates.  A failed check raises
  before any field changes, so callers never observe a half-applied
  transition.
- ``DriverRecord`` and ``RideRating`` hold the reputation counters the
  rating flow updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Any, Iterable, Optional

from .enums import (
    CANCELLABLE_STATES,
    RIDE_TRANSITIONS,
    Role,
    RideState,
)
from .errors import (
    InsufficientValue,
    InvalidAmount,
    InvalidState,
    NotDriver,
    NotParticipant,
    NotRegistered,
    NotRider,
    TimeoutNotReached,
)


# Money columns are Numeric(20, 8)
AMOUNT_QUANTUM = Decimal("1E-8")
MAX_AMOUNT = Decimal(10) ** 12


def check_amount(amount: Decimal) -> Decimal:
    """Reject amounts a money column cannot store exactly."""
    if amount <= 0:
        raise InvalidAmount(amount)
    if amount >= MAX_AMOUNT:
        raise InvalidAmount(amount, "is too large")
    if amount != amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN):
        raise InvalidAmount(amount, "has more than 8 decimal places")
    return amount


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    """Opaque pickup / destination record, passed through verbatim."""

    latitude: str = ""
    longitude: str = ""
    label: str = ""


@dataclass(frozen=True)
class RideEvent:
    name: str
    ride_id: Optional[int]
    account: str
    occurred_at: int
    payload: dict[str, Any] = field(default_factory=dict)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    rider: str = ""
    driver: Optional[str] = None
    amount: Decimal = Decimal("0")
    state: RideState = RideState.REQUESTED
    pickup: Location = field(default_factory=Location)
    destination: Location = field(default_factory=Location)
    requested_at: Optional[int] = None
    accepted_at: Optional[int] = None
    funded_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    finalized_at: Optional[int] = None

    @classmethod
    def request(
        cls,
        rider: str,
        pickup: Location,
        destination: Location,
        amount: Decimal,
        now: int,
    ) -> Ride:
        check_amount(amount)
        return cls(
            rider=rider,
            amount=amount,
            pickup=pickup,
            destination=destination,
            requested_at=now,
        )

    # ── Queries ───────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return not RIDE_TRANSITIONS[self.state]

    def role_of(self, account: Optional[str]) -> Role:
        if account is None:
            return Role.STRANGER
        if account == self.rider:
            return Role.RIDER
        if self.driver is not None and account == self.driver:
            return Role.DRIVER
        return Role.STRANGER

    def is_participant(self, account: str) -> bool:
        return self.role_of(account) is not Role.STRANGER

    # ── Commands ──────────────────────────────────────────────────

    def accept(self, driver: str, now: int, *, is_registered: bool = True) -> None:
        self._expect(RideState.REQUESTED)
        if not is_registered:
            raise NotRegistered(driver)
        self.driver = driver
        self.transition_to(RideState.ACCEPTED)
        self.accepted_at = now

    def fund(self, caller: str, value: Decimal, now: int) -> None:
        self._expect(RideState.ACCEPTED)
        self._require_rider(caller)
        if value < self.amount:
            raise InsufficientValue(value, self.amount)
        self.transition_to(RideState.FUNDED)
        self.funded_at = now

    def start(self, caller: str, now: int) -> None:
        self._expect(RideState.FUNDED)
        self._require_driver(caller)
        self.transition_to(RideState.STARTED)
        self.started_at = now

    def complete(self, caller: str, now: int) -> None:
        self._expect(RideState.STARTED)
        self._require_driver(caller)
        self.transition_to(RideState.COMPLETED_BY_DRIVER)
        self.completed_at = now

    def confirm_arrival(self, caller: str, now: int) -> None:
        self._expect(RideState.COMPLETED_BY_DRIVER)
        self._require_rider(caller)
        self.transition_to(RideState.FINALIZED)
        self.finalized_at = now

    def cancel(self, caller: str) -> bool:
        """Cancel the ride.  Returns True when escrow must go back to the rider."""
        self._expect(*CANCELLABLE_STATES)
        if not self.is_participant(caller):
            raise NotParticipant(caller, self.id)
        was_funded = self.state is RideState.FUNDED
        self.transition_to(RideState.CANCELLED)
        return was_funded

    def refund_not_funded(self, caller: str, now: int, timeout: int) -> None:
        self._expect(RideState.ACCEPTED)
        self._require_rider(caller)
        self._require_elapsed(self.accepted_at, timeout, now)
        self.transition_to(RideState.REFUNDED)

    def refund_not_started(self, caller: str, now: int, timeout: int) -> None:
        self._expect(RideState.FUNDED)
        self._require_rider(caller)
        self._require_elapsed(self.funded_at, timeout, now)
        self.transition_to(RideState.REFUNDED)

    def transition_to(self, new_state: RideState) -> None:
        """Move to *new_state* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            sources = [s for s, nxt in RIDE_TRANSITIONS.items() if new_state in nxt]
            raise InvalidState(self.state, sources)
        self.state = new_state

    # ── Guards ────────────────────────────────────────────────────

    def _expect(self, *states: RideState) -> None:
        if self.state not in states:
            raise InvalidState(self.state, _ordered(states))

    def _require_rider(self, caller: str) -> None:
        if caller != self.rider:
            raise NotRider(caller, self.id)

    def _require_driver(self, caller: str) -> None:
        if self.driver is None or caller != self.driver:
            raise NotDriver(caller, self.id)

    @staticmethod
    def _require_elapsed(since: Optional[int], timeout: int, now: int) -> None:
        eligible_at = (since or 0) + timeout
        if now < eligible_at:
            raise TimeoutNotReached(now, eligible_at)


@dataclass
class DriverRecord:
    account: str
    name: str = ""
    is_verified: bool = False
    total_rating_sum: int = 0
    rating_count: int = 0
    registered_at: Optional[int] = None
    ride_ids: list[int] = field(default_factory=list)

    # A stored record always means the account registered
    is_registered: bool = True

    @property
    def average_x10(self) -> int:
        """Average rating scaled by ten for one-decimal display (45 == 4.5)."""
        if self.rating_count == 0:
            return 0
        return round(10 * self.total_rating_sum / self.rating_count)

    def add_rating(self, rating: int) -> int:
        self.total_rating_sum += rating
        self.rating_count += 1
        return self.average_x10


@dataclass
class RideRating:
    ride_id: int
    rider_rated_driver: bool = False
    driver_rated_rider: bool = False
    rider_rating: Optional[int] = None
    driver_rating: Optional[int] = None


def _ordered(states: Iterable[RideState]) -> list[RideState]:
    order = list(RideState)
    return sorted(states, key=order.index)
