"""
Driver endpoints
================

POST /api/v1/drivers/register          -- register the caller as a driver
POST /api/v1/drivers/verify            -- record a passed identity check
GET  /api/v1/drivers                   -- all registered drivers
GET  /api/v1/drivers/{account}         -- one driver record with ride ids
GET  /api/v1/drivers/{account}/rating  -- (is_registered, average x10, count)
GET  /api/v1/drivers/{account}/rides   -- rides the driver has accepted
"""

from fastapi import APIRouter, Depends, Request

from ride_escrow.api.auth import get_caller
from ride_escrow.api.dependencies import get_engine, get_registry
from ride_escrow.api.middleware import limiter
from ride_escrow.api.schemas import (
    DriverRatingResponse,
    DriverRegisterRequest,
    DriverResponse,
    RideResponse,
)
from ride_escrow.config import settings
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.ride_engine import RideEngine

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "/register",
    status_code=201,
    response_model=DriverResponse,
    summary="Register the caller as a driver",
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    body: DriverRegisterRequest,
    caller: str = Depends(get_caller),
    registry: DriverRegistry = Depends(get_registry),
):
    driver = await registry.register_driver(caller, body.name)
    return DriverResponse.model_validate(driver)


@router.post(
    "/verify",
    response_model=DriverResponse,
    summary="Mark the caller's identity as verified",
    description="The identity proof itself is checked upstream; this only records the result.",
)
@limiter.limit(settings.rate_limit)
async def verify_identity(
    request: Request,
    caller: str = Depends(get_caller),
    registry: DriverRegistry = Depends(get_registry),
):
    return DriverResponse.model_validate(await registry.verify_identity(caller))


@router.get("", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    registry: DriverRegistry = Depends(get_registry),
):
    return [DriverResponse.model_validate(d) for d in await registry.list_drivers()]


@router.get("/{account}", response_model=DriverResponse, summary="Get a driver")
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    account: str,
    registry: DriverRegistry = Depends(get_registry),
):
    return DriverResponse.model_validate(await registry.get_driver(account))


@router.get(
    "/{account}/rating",
    response_model=DriverRatingResponse,
    summary="Aggregate rating of a driver",
)
@limiter.limit(settings.rate_limit)
async def get_driver_rating(
    request: Request,
    account: str,
    registry: DriverRegistry = Depends(get_registry),
):
    return DriverRatingResponse.model_validate(await registry.get_rating(account))


@router.get(
    "/{account}/rides",
    response_model=list[RideResponse],
    summary="Rides accepted by a driver",
)
@limiter.limit(settings.rate_limit)
async def get_driver_rides(
    request: Request,
    account: str,
    engine: RideEngine = Depends(get_engine),
):
    return [RideResponse.model_validate(r) for r in await engine.rides_for_driver(account)]
