"""
Error taxonomy of the ride core.

Every error carries the HTTP status and a short machine-readable ``code``
so the API layer can render it without a lookup table.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .enums import RideState


class RideEscrowError(Exception):
    """Base class for every precondition failure raised by the core."""

    status_code: int = 400
    code: str = "error"


class InvalidState(RideEscrowError):
    status_code = 409
    code = "invalid_state"

    def __init__(self, current: RideState, expected: Iterable[RideState]):
        self.current = current
        self.expected = tuple(expected)
        names = ", ".join(state.value for state in self.expected)
        super().__init__(
            f"Ride is {current.value}; operation requires {names}"
        )


class NotAuthorized(RideEscrowError):
    status_code = 403
    code = "not_authorized"

    def __init__(self, caller: str, ride_id: int | None = None):
        self.caller = caller
        self.ride_id = ride_id
        super().__init__(self.describe())

    def describe(self) -> str:
        return f"{self.caller} is not allowed to act on ride {self.ride_id}"


class NotRider(NotAuthorized):
    code = "not_rider"

    def describe(self) -> str:
        return f"{self.caller} is not the rider of ride {self.ride_id}"


class NotDriver(NotAuthorized):
    code = "not_driver"

    def describe(self) -> str:
        return f"{self.caller} is not the driver of ride {self.ride_id}"


class NotParticipant(NotAuthorized):
    code = "not_participant"

    def describe(self) -> str:
        return f"{self.caller} is not a participant of ride {self.ride_id}"


class RideNotFound(RideEscrowError):
    status_code = 404
    code = "not_found"

    def __init__(self, ride_id: int):
        self.ride_id = ride_id
        super().__init__(f"Ride {ride_id} not found")


class AlreadyRegistered(RideEscrowError):
    status_code = 409
    code = "already_registered"

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} is already a registered driver")


class NotRegistered(RideEscrowError):
    status_code = 403
    code = "not_registered"

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} is not a registered driver")


class InsufficientValue(RideEscrowError):
    status_code = 402
    code = "insufficient_value"

    def __init__(self, offered: Decimal, required: Decimal):
        self.offered = offered
        self.required = required
        super().__init__(f"Offered {offered}, fare is {required}")


class InvalidAmount(RideEscrowError):
    status_code = 422
    code = "invalid_amount"

    def __init__(self, amount: Decimal, problem: str = "must be positive"):
        self.amount = amount
        super().__init__(f"Amount {problem}, got {amount}")


class InvalidRating(RideEscrowError):
    status_code = 422
    code = "invalid_rating"

    def __init__(self, rating: int):
        self.rating = rating
        super().__init__(f"Rating must be between 1 and 5, got {rating}")


class AlreadyRated(RideEscrowError):
    status_code = 409
    code = "already_rated"

    def __init__(self, ride_id: int, direction: str):
        self.ride_id = ride_id
        self.direction = direction
        super().__init__(f"Ride {ride_id}: {direction} already submitted")


class TimeoutNotReached(RideEscrowError):
    status_code = 409
    code = "timeout_not_reached"

    def __init__(self, now: int, eligible_at: int):
        self.now = now
        self.eligible_at = eligible_at
        super().__init__(
            f"Refund not yet available (now={now}, eligible at {eligible_at})"
        )


class TransferFailed(RideEscrowError):
    status_code = 502
    code = "transfer_failed"

    def __init__(self, account: str, amount: Decimal, reason: str):
        self.account = account
        self.amount = amount
        self.reason = reason
        super().__init__(f"Transfer of {amount} for {account} failed: {reason}")
