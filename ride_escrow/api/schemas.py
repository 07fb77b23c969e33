"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from ride_escrow.domain.advisory import Action
from ride_escrow.domain.enums import RefundType, RideState, Role


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    """Stored verbatim; coordinates are not validated, only bounded in length."""

    latitude: str = Field("", max_length=64)
    longitude: str = Field("", max_length=64)
    label: str = Field("", max_length=255)


class RideCreateRequest(BaseModel):
    pickup: LocationIn
    destination: LocationIn
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=20,
        decimal_places=8,
        description="Fare, fixed for the life of the ride.",
    )


class FundRequest(BaseModel):
    value: Decimal = Field(
        ...,
        gt=0,
        max_digits=20,
        decimal_places=8,
        description="Value sent with the funding call.",
    )


class CancelRequest(BaseModel):
    reason: str = Field("", max_length=255)


class RatingRequest(BaseModel):
    rating: int


class DriverRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=20, decimal_places=8)


class FreezeRequest(BaseModel):
    frozen: bool = True


# ── Responses ─────────────────────────────────────────────────────────


class LocationOut(BaseModel):
    latitude: str
    longitude: str
    label: str

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    id: int
    rider: str
    driver: Optional[str] = None
    amount: Decimal
    state: RideState
    pickup: LocationOut
    destination: LocationOut
    requested_at: Optional[int] = None
    accepted_at: Optional[int] = None
    funded_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    finalized_at: Optional[int] = None

    model_config = {"from_attributes": True}


class RefundStatusResponse(BaseModel):
    can_refund: bool
    refund_type: RefundType
    time_remaining: int
    eligible_at: Optional[int] = None

    model_config = {"from_attributes": True}


class RideRatingResponse(BaseModel):
    ride_id: int
    rider_rated_driver: bool
    driver_rated_rider: bool
    rider_rating: Optional[int] = None
    driver_rating: Optional[int] = None

    model_config = {"from_attributes": True}


class RideViewResponse(BaseModel):
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
    next_action: Optional[str] = None

    model_config = {"from_attributes": True}


class ActionPolicyResponse(BaseModel):
    action: Action
    can_proceed: bool
    reason: str = ""
    error_title: Optional[str] = None


class RideEventResponse(BaseModel):
    name: str
    ride_id: Optional[int] = None
    account: str
    occurred_at: int
    payload: dict[str, Any] = {}

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    account: str
    name: str
    is_registered: bool
    is_verified: bool
    total_rating_sum: int
    rating_count: int
    average_x10: int
    registered_at: Optional[int] = None
    ride_ids: list[int] = []

    model_config = {"from_attributes": True}


class DriverRatingResponse(BaseModel):
    is_registered: bool
    average_x10: int
    count: int

    model_config = {"from_attributes": True}


class EscrowResponse(BaseModel):
    balance: Decimal
    ride_count: int


class AccountResponse(BaseModel):
    account: str
    balance: Decimal


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str = "error"
