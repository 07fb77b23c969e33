"""
Timeout-based refund eligibility.

Expiry is never scheduled.  Eligibility is a pure function of the stored
timestamps and the current time, so it can be queried at any moment and
changes nothing until the rider actually claims the refund.

* ``Accepted`` for ``ACCEPT_TIMEOUT_SECONDS`` without funding -> refund type 1
* ``Funded`` for ``START_TIMEOUT_SECONDS`` without starting  -> refund type 2

Both windows are inclusive: at exactly the boundary the ride is expired.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .entities import Ride
from .enums import RefundType, RideState

ACCEPT_TIMEOUT_SECONDS = 15 * 60
START_TIMEOUT_SECONDS = 30 * 60


@dataclass(frozen=True)
class RefundStatus:
    can_refund: bool = False
    refund_type: RefundType = RefundType.NONE
    time_remaining: int = 0
    eligible_at: Optional[int] = None


def refund_status(
    ride: Ride,
    now: int,
    accept_timeout: int = ACCEPT_TIMEOUT_SECONDS,
    start_timeout: int = START_TIMEOUT_SECONDS,
) -> RefundStatus:
    if ride.state is RideState.ACCEPTED:
        refund_type, since, timeout = (
            RefundType.NOT_FUNDED, ride.accepted_at, accept_timeout
        )
    elif ride.state is RideState.FUNDED:
        refund_type, since, timeout = (
            RefundType.NOT_STARTED, ride.funded_at, start_timeout
        )
    else:
        return RefundStatus()

    eligible_at = (since or 0) + timeout
    remaining = max(0, eligible_at - now)
    return RefundStatus(
        can_refund=remaining == 0,
        refund_type=refund_type,
        time_remaining=remaining,
        eligible_at=eligible_at,
    )
