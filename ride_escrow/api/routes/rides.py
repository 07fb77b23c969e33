"""
Ride endpoints
==============

POST /api/v1/rides                          -- request a ride (rider)
GET  /api/v1/rides/{ride_id}                -- ride snapshot
POST /api/v1/rides/{ride_id}/accept         -- registered driver takes the ride
POST /api/v1/rides/{ride_id}/fund           -- rider escrows the fare
POST /api/v1/rides/{ride_id}/start          -- driver starts the trip
POST /api/v1/rides/{ride_id}/complete       -- driver marks arrival
POST /api/v1/rides/{ride_id}/confirm-arrival -- rider releases escrow to driver
POST /api/v1/rides/{ride_id}/cancel         -- rider/driver abort before start
POST /api/v1/rides/{ride_id}/refund/not-funded  -- rider, after accept timeout
POST /api/v1/rides/{ride_id}/refund/not-started -- rider, after start timeout
GET  /api/v1/rides/{ride_id}/refund-status  -- lazy timeout evaluation
POST /api/v1/rides/{ride_id}/rate-driver    -- rider rates driver (finalized only)
POST /api/v1/rides/{ride_id}/rate-rider     -- driver rates rider (finalized only)
GET  /api/v1/rides/{ride_id}/rating         -- both ratings of a ride
GET  /api/v1/rides/{ride_id}/view           -- advisory projection for the caller
GET  /api/v1/rides/{ride_id}/actions/{action} -- may the caller run one command, and why not
GET  /api/v1/rides/{ride_id}/events         -- event history of the ride
GET  /api/v1/riders/{account}/rides         -- rides requested by an account
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ride_escrow.api.auth import get_caller, get_optional_caller
from ride_escrow.api.dependencies import (
    get_engine,
    get_ratings,
    get_registry,
    get_wallet,
)
from ride_escrow.api.middleware import limiter
from ride_escrow.api.schemas import (
    ActionPolicyResponse,
    CancelRequest,
    FundRequest,
    RatingRequest,
    RefundStatusResponse,
    RideCreateRequest,
    RideEventResponse,
    RideRatingResponse,
    RideResponse,
    RideViewResponse,
)
from ride_escrow.config import settings
from ride_escrow.domain.advisory import Action, check_action, resolve_ride_view
from ride_escrow.domain.entities import Location, Ride
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.rating_ledger import RatingLedger
from ride_escrow.services.ride_engine import RideEngine

router = APIRouter(prefix="/rides", tags=["rides"])
riders_router = APIRouter(prefix="/riders", tags=["rides"])


def _out(ride: Ride) -> RideResponse:
    return RideResponse.model_validate(ride)


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride",
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    ride = await engine.request_ride(
        caller,
        Location(**body.pickup.model_dump()),
        Location(**body.destination.model_dump()),
        body.amount,
    )
    return _out(ride)


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.get_ride(ride_id))


@router.post("/{ride_id}/accept", response_model=RideResponse, summary="Accept a ride")
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.accept_ride(caller, ride_id))


@router.post(
    "/{ride_id}/fund",
    response_model=RideResponse,
    summary="Escrow the fare",
    description="Collects exactly the fare from the rider's wallet; `value` must cover it.",
)
@limiter.limit(settings.rate_limit)
async def fund_ride(
    request: Request,
    ride_id: int,
    body: FundRequest,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.fund_ride(caller, ride_id, body.value))


@router.post("/{ride_id}/start", response_model=RideResponse, summary="Start the trip")
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.start_ride(caller, ride_id))


@router.post(
    "/{ride_id}/complete", response_model=RideResponse, summary="Mark trip completed"
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.complete_ride(caller, ride_id))


@router.post(
    "/{ride_id}/confirm-arrival",
    response_model=RideResponse,
    summary="Confirm arrival and release escrow to the driver",
)
@limiter.limit(settings.rate_limit)
async def confirm_arrival(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.confirm_arrival(caller, ride_id))


@router.post(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Allowed for the rider or driver while the ride is Requested, "
        "Accepted or Funded.  A funded ride is refunded to the rider."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: Optional[CancelRequest] = None,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    reason = body.reason if body else ""
    return _out(await engine.cancel_ride(caller, ride_id, reason))


@router.post(
    "/{ride_id}/refund/not-funded",
    response_model=RideResponse,
    summary="Claim refund: ride accepted but never funded",
)
@limiter.limit(settings.rate_limit)
async def claim_refund_not_funded(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.claim_refund_not_funded(caller, ride_id))


@router.post(
    "/{ride_id}/refund/not-started",
    response_model=RideResponse,
    summary="Claim refund: ride funded but never started",
)
@limiter.limit(settings.rate_limit)
async def claim_refund_not_started(
    request: Request,
    ride_id: int,
    caller: str = Depends(get_caller),
    engine: RideEngine = Depends(get_engine),
):
    return _out(await engine.claim_refund_not_started(caller, ride_id))


@router.get(
    "/{ride_id}/refund-status",
    response_model=RefundStatusResponse,
    summary="Timeout refund eligibility",
)
@limiter.limit(settings.rate_limit)
async def get_refund_status(
    request: Request,
    ride_id: int,
    engine: RideEngine = Depends(get_engine),
):
    return RefundStatusResponse.model_validate(await engine.refund_status(ride_id))


@router.post(
    "/{ride_id}/rate-driver", response_model=RideRatingResponse, summary="Rate the driver"
)
@limiter.limit(settings.rate_limit)
async def rate_driver(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    caller: str = Depends(get_caller),
    ratings: RatingLedger = Depends(get_ratings),
):
    record = await ratings.rate_driver(caller, ride_id, body.rating)
    return RideRatingResponse.model_validate(record)


@router.post(
    "/{ride_id}/rate-rider", response_model=RideRatingResponse, summary="Rate the rider"
)
@limiter.limit(settings.rate_limit)
async def rate_rider(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    caller: str = Depends(get_caller),
    ratings: RatingLedger = Depends(get_ratings),
):
    record = await ratings.rate_rider(caller, ride_id, body.rating)
    return RideRatingResponse.model_validate(record)


@router.get(
    "/{ride_id}/rating", response_model=RideRatingResponse, summary="Ratings of a ride"
)
@limiter.limit(settings.rate_limit)
async def get_ride_rating(
    request: Request,
    ride_id: int,
    ratings: RatingLedger = Depends(get_ratings),
):
    return RideRatingResponse.model_validate(await ratings.get_ride_rating(ride_id))


@router.get(
    "/{ride_id}/view",
    response_model=RideViewResponse,
    summary="What the caller can do with this ride right now",
    description="Advisory only; every command is re-validated when executed.",
)
@limiter.limit(settings.rate_limit)
async def get_ride_view(
    request: Request,
    ride_id: int,
    caller: Optional[str] = Depends(get_optional_caller),
    engine: RideEngine = Depends(get_engine),
    ratings: RatingLedger = Depends(get_ratings),
    registry: DriverRegistry = Depends(get_registry),
):
    ride = await engine.get_ride(ride_id)
    view = resolve_ride_view(
        ride,
        caller,
        await ratings.get_ride_rating(ride_id),
        is_registered_driver=bool(caller) and await registry.is_registered(caller),
        refund=await engine.refund_status(ride_id),
    )
    return RideViewResponse.model_validate(view)


@router.get(
    "/{ride_id}/actions/{action}",
    response_model=ActionPolicyResponse,
    summary="Whether the caller may run one command on this ride",
    description="Advisory only; a denial carries a reason and a short title.",
)
@limiter.limit(settings.rate_limit)
async def get_action_policy(
    request: Request,
    ride_id: int,
    action: Action,
    caller: Optional[str] = Depends(get_optional_caller),
    engine: RideEngine = Depends(get_engine),
    ratings: RatingLedger = Depends(get_ratings),
    registry: DriverRegistry = Depends(get_registry),
    wallet: WalletLedger = Depends(get_wallet),
):
    ride = await engine.get_ride(ride_id)
    policy = check_action(
        action,
        ride,
        caller,
        is_registered_driver=bool(caller) and await registry.is_registered(caller),
        rating=await ratings.get_ride_rating(ride_id),
        refund=await engine.refund_status(ride_id),
        balance=await wallet.balance_of(caller) if caller else None,
    )
    return ActionPolicyResponse(
        action=action,
        can_proceed=policy.can_proceed,
        reason=policy.reason,
        error_title=policy.error_title,
    )


@router.get(
    "/{ride_id}/events",
    response_model=list[RideEventResponse],
    summary="Event history of a ride",
)
@limiter.limit(settings.rate_limit)
async def get_ride_events(
    request: Request,
    ride_id: int,
    engine: RideEngine = Depends(get_engine),
):
    events = await engine.ride_events(ride_id)
    return [RideEventResponse.model_validate(e) for e in events]


@riders_router.get(
    "/{account}/rides",
    response_model=list[RideResponse],
    summary="Rides requested by an account",
)
@limiter.limit(settings.rate_limit)
async def get_rider_rides(
    request: Request,
    account: str,
    engine: RideEngine = Depends(get_engine),
):
    return [_out(r) for r in await engine.rides_for_rider(account)]
