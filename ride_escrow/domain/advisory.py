"""
Read-side projection of a ride for one caller.

``check_action`` answers "may this caller run this command right now, and if
not, why?" with a reason and a short title a client can show as-is.
``resolve_ride_view`` bundles the answers for one ride together with the
caller's role, a state label and a hint about what happens next.

Both are recomputed from snapshots on every read and have no authority: the
engine re-validates every command when it executes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from .entities import Ride, RideRating
from .enums import CANCELLABLE_STATES, RideState, Role
from .timeouts import RefundStatus

STATE_LABELS: dict[RideState, str] = {
    RideState.REQUESTED: "Requested",
    RideState.ACCEPTED: "Accepted",
    RideState.FUNDED: "Funded",
    RideState.STARTED: "In Progress",
    RideState.COMPLETED_BY_DRIVER: "Completed by Driver",
    RideState.FINALIZED: "Completed",
    RideState.CANCELLED: "Cancelled",
    RideState.REFUNDED: "Refunded",
}

_NEXT_ACTION: dict[tuple[RideState, Role], str] = {
    (RideState.REQUESTED, Role.RIDER): "Waiting for a driver to accept...",
    (RideState.REQUESTED, Role.DRIVER): "You can accept this ride",
    (RideState.ACCEPTED, Role.RIDER): "Fund your ride to proceed",
    (RideState.ACCEPTED, Role.DRIVER): "Waiting for rider to fund...",
    (RideState.FUNDED, Role.RIDER): "Waiting for driver to start...",
    (RideState.FUNDED, Role.DRIVER): "You can start the ride now",
    (RideState.STARTED, Role.RIDER): "Ride in progress...",
    (RideState.STARTED, Role.DRIVER): "Complete the ride when you arrive",
    (RideState.COMPLETED_BY_DRIVER, Role.RIDER): "Confirm arrival to release payment",
    (RideState.COMPLETED_BY_DRIVER, Role.DRIVER): "Waiting for rider to confirm...",
}

_TERMINAL_MESSAGES: dict[RideState, str] = {
    RideState.FINALIZED: "Ride complete!",
    RideState.CANCELLED: "Ride was cancelled",
    RideState.REFUNDED: "Ride was refunded due to timeout",
}


class Action(str, enum.Enum):
    REGISTER_DRIVER = "register_driver"
    REQUEST_RIDE = "request_ride"
    ACCEPT_RIDE = "accept_ride"
    FUND_RIDE = "fund_ride"
    START_RIDE = "start_ride"
    COMPLETE_RIDE = "complete_ride"
    CONFIRM_ARRIVAL = "confirm_arrival"
    CANCEL_RIDE = "cancel_ride"
    RATE_DRIVER = "rate_driver"
    RATE_RIDER = "rate_rider"
    CLAIM_REFUND = "claim_refund"


# Actions that make sense without a ride
RIDE_FREE_ACTIONS = frozenset({Action.REGISTER_DRIVER, Action.REQUEST_RIDE})

_SIGN_IN_TO: dict[Action, str] = {
    Action.REGISTER_DRIVER: "register as a driver",
    Action.REQUEST_RIDE: "request a ride",
    Action.ACCEPT_RIDE: "accept rides",
    Action.FUND_RIDE: "fund the ride",
    Action.START_RIDE: "start the ride",
    Action.COMPLETE_RIDE: "complete the ride",
    Action.CONFIRM_ARRIVAL: "confirm arrival",
    Action.CANCEL_RIDE: "cancel",
    Action.RATE_DRIVER: "rate",
    Action.RATE_RIDER: "rate",
    Action.CLAIM_REFUND: "claim a refund",
}


@dataclass(frozen=True)
class ActionPolicy:
    can_proceed: bool
    reason: str = ""
    error_title: Optional[str] = None


ALLOWED = ActionPolicy(True)


def _deny(reason: str, title: str) -> ActionPolicy:
    return ActionPolicy(False, reason, title)


@dataclass(frozen=True)
class _Context:
    ride: Optional[Ride]
    role: Role
    is_registered_driver: bool
    rating: Optional[RideRating]
    refund: Optional[RefundStatus]
    balance: Optional[Decimal]


def _register_driver(ctx: _Context) -> ActionPolicy:
    if ctx.is_registered_driver:
        return _deny("You are already registered as a driver", "Already Registered")
    return ALLOWED


def _request_ride(ctx: _Context) -> ActionPolicy:
    return ALLOWED


def _accept_ride(ctx: _Context) -> ActionPolicy:
    if not ctx.is_registered_driver:
        return _deny("Only registered drivers can accept rides", "Not Registered")
    if ctx.ride.state is not RideState.REQUESTED:
        return _deny("This ride is no longer available", "Ride Unavailable")
    return ALLOWED


def _fund_ride(ctx: _Context) -> ActionPolicy:
    if ctx.role is not Role.RIDER:
        return _deny("Only the rider can fund this ride", "Not Your Ride")
    if ctx.ride.state is not RideState.ACCEPTED:
        return _deny("Ride must be accepted before funding", "Cannot Fund")
    if ctx.balance is not None and ctx.balance < ctx.ride.amount:
        return _deny(
            f"Insufficient balance. You need at least {ctx.ride.amount}",
            "Insufficient Balance",
        )
    return ALLOWED


def _start_ride(ctx: _Context) -> ActionPolicy:
    if ctx.role is not Role.DRIVER:
        return _deny("Only the driver can start the ride", "Not Your Ride")
    if ctx.ride.state is not RideState.FUNDED:
        return _deny("Ride must be funded before starting", "Cannot Start")
    return ALLOWED


def _complete_ride(ctx: _Context) -> ActionPolicy:
    if ctx.role is not Role.DRIVER:
        return _deny("Only the driver can complete the ride", "Not Your Ride")
    if ctx.ride.state is not RideState.STARTED:
        return _deny("Ride must be in progress before completing", "Cannot Complete")
    return ALLOWED


def _confirm_arrival(ctx: _Context) -> ActionPolicy:
    if ctx.role is not Role.RIDER:
        return _deny("Only the rider can confirm arrival", "Not Your Ride")
    if ctx.ride.state is not RideState.COMPLETED_BY_DRIVER:
        return _deny("Driver must complete the ride first", "Cannot Confirm")
    return ALLOWED


def _cancel_ride(ctx: _Context) -> ActionPolicy:
    if ctx.role is Role.STRANGER:
        return _deny("Only participants can cancel this ride", "Not Allowed")
    if ctx.ride.is_terminal:
        return _deny("This ride has already ended", "Ride Ended")
    if ctx.ride.state not in CANCELLABLE_STATES:
        return _deny("Cannot cancel a ride that has already started", "Cannot Cancel")
    return ALLOWED


def _rate(ctx: _Context, rater: Role, rated: str, already: bool) -> ActionPolicy:
    if ctx.role is not rater:
        return _deny(f"Only the {rater.value} can rate the {rated}", "Not Allowed")
    if ctx.ride.state is not RideState.FINALIZED:
        return _deny("You can only rate after the ride is complete", "Cannot Rate Yet")
    if already:
        return _deny(f"You have already rated this {rated}", "Already Rated")
    return ALLOWED


def _rate_driver(ctx: _Context) -> ActionPolicy:
    already = bool(ctx.rating and ctx.rating.rider_rated_driver)
    return _rate(ctx, Role.RIDER, "driver", already)


def _rate_rider(ctx: _Context) -> ActionPolicy:
    already = bool(ctx.rating and ctx.rating.driver_rated_rider)
    return _rate(ctx, Role.DRIVER, "rider", already)


def _claim_refund(ctx: _Context) -> ActionPolicy:
    if ctx.role is not Role.RIDER:
        return _deny("Only the rider can claim a refund", "Not Allowed")
    if ctx.ride.state not in (RideState.ACCEPTED, RideState.FUNDED):
        return _deny(
            "Refund only available for accepted or funded rides", "Cannot Refund"
        )
    if ctx.refund is not None and not ctx.refund.can_refund:
        return _deny(
            f"Refund available in {ctx.refund.time_remaining} seconds", "Too Early"
        )
    return ALLOWED


_POLICIES: dict[Action, Callable[[_Context], ActionPolicy]] = {
    Action.REGISTER_DRIVER: _register_driver,
    Action.REQUEST_RIDE: _request_ride,
    Action.ACCEPT_RIDE: _accept_ride,
    Action.FUND_RIDE: _fund_ride,
    Action.START_RIDE: _start_ride,
    Action.COMPLETE_RIDE: _complete_ride,
    Action.CONFIRM_ARRIVAL: _confirm_arrival,
    Action.CANCEL_RIDE: _cancel_ride,
    Action.RATE_DRIVER: _rate_driver,
    Action.RATE_RIDER: _rate_rider,
    Action.CLAIM_REFUND: _claim_refund,
}


def check_action(
    action: Action,
    ride: Optional[Ride],
    caller: Optional[str],
    *,
    is_registered_driver: bool = False,
    rating: Optional[RideRating] = None,
    refund: Optional[RefundStatus] = None,
    balance: Optional[Decimal] = None,
) -> ActionPolicy:
    """
    Whether *caller* may run *action* on *ride*, with a human-readable reason.

    ``refund`` and ``balance`` are optional: when omitted, the timeout and
    balance checks are skipped rather than failed.
    """
    action = Action(action)
    if ride is None and action not in RIDE_FREE_ACTIONS:
        raise ValueError(f"{action.value} needs a ride")
    if caller is None:
        return _deny(f"Sign in to {_SIGN_IN_TO[action]}", "Not Signed In")

    ctx = _Context(
        ride=ride,
        role=ride.role_of(caller) if ride is not None else Role.STRANGER,
        is_registered_driver=is_registered_driver,
        rating=rating,
        refund=refund,
        balance=balance,
    )
    return _POLICIES[action](ctx)


@dataclass(frozen=True)
class RideView:
    state: RideState
    state_label: str
    role: Role
    can_accept: bool
    can_cancel: bool
    can_fund: bool
    can_start: bool
    can_complete: bool
    can_confirm: bool
    can_rate_driver: bool
    can_rate_rider: bool
    can_claim_refund: bool
    next_action: Optional[str]


def resolve_ride_view(
    ride: Ride,
    caller: Optional[str],
    rating: Optional[RideRating] = None,
    *,
    is_registered_driver: bool = False,
    refund: Optional[RefundStatus] = None,
) -> RideView:
    """
    Project *ride* for *caller*.

    ``can_claim_refund`` is only set when *refund* says the window has
    passed; without a refund status the flag stays off.
    """
    role = ride.role_of(caller)
    state = ride.state

    def can(action: Action) -> bool:
        return check_action(
            action,
            ride,
            caller,
            is_registered_driver=is_registered_driver,
            rating=rating,
            refund=refund,
        ).can_proceed

    return RideView(
        state=state,
        state_label=STATE_LABELS[state],
        role=role,
        can_accept=can(Action.ACCEPT_RIDE),
        can_cancel=can(Action.CANCEL_RIDE),
        can_fund=can(Action.FUND_RIDE),
        can_start=can(Action.START_RIDE),
        can_complete=can(Action.COMPLETE_RIDE),
        can_confirm=can(Action.CONFIRM_ARRIVAL),
        can_rate_driver=can(Action.RATE_DRIVER),
        can_rate_rider=can(Action.RATE_RIDER),
        can_claim_refund=refund is not None and can(Action.CLAIM_REFUND),
        next_action=_TERMINAL_MESSAGES.get(state) or _NEXT_ACTION.get((state, role)),
    )
