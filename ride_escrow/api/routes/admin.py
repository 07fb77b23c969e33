"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health                     -- simple health check
GET  /api/v1/admin/escrow                     -- value currently held in escrow
GET  /api/v1/admin/accounts/{account}         -- wallet balance        (admin token)
POST /api/v1/admin/accounts/{account}/deposit -- credit a wallet        (admin token)
POST /api/v1/admin/accounts/{account}/freeze  -- block or unblock a wallet (admin token)
"""

import logging

from fastapi import APIRouter, Depends, Request

from ride_escrow.api.auth import require_admin
from ride_escrow.api.dependencies import get_engine, get_wallet
from ride_escrow.api.middleware import limiter
from ride_escrow.api.schemas import (
    AccountResponse,
    DepositRequest,
    EscrowResponse,
    FreezeRequest,
    HealthResponse,
)
from ride_escrow.config import settings
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.ride_engine import RideEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/escrow",
    response_model=EscrowResponse,
    summary="Sum of fares held for Funded, Started and CompletedByDriver rides",
)
@limiter.limit(settings.rate_limit)
async def get_escrow(
    request: Request,
    engine: RideEngine = Depends(get_engine),
):
    return EscrowResponse(
        balance=await engine.escrow_balance(),
        ride_count=await engine.ride_count(),
    )


@router.get(
    "/accounts/{account}", response_model=AccountResponse, summary="Wallet balance"
)
@limiter.limit(settings.rate_limit)
async def get_account(
    request: Request,
    account: str,
    admin: str = Depends(require_admin),
    wallet: WalletLedger = Depends(get_wallet),
):
    return AccountResponse(account=account, balance=await wallet.balance_of(account))


@router.post(
    "/accounts/{account}/deposit",
    response_model=AccountResponse,
    summary="Credit a wallet",
)
@limiter.limit(settings.rate_limit)
async def deposit(
    request: Request,
    account: str,
    body: DepositRequest,
    admin: str = Depends(require_admin),
    wallet: WalletLedger = Depends(get_wallet),
):
    balance = await wallet.deposit(account, body.amount)
    logger.info("%s credited %s to %s", admin, body.amount, account)
    return AccountResponse(account=account, balance=balance)


@router.post(
    "/accounts/{account}/freeze",
    response_model=AccountResponse,
    summary="Freeze or unfreeze a wallet",
    description="A frozen wallet can neither pay nor receive funds.",
)
@limiter.limit(settings.rate_limit)
async def freeze(
    request: Request,
    account: str,
    body: FreezeRequest,
    admin: str = Depends(require_admin),
    wallet: WalletLedger = Depends(get_wallet),
):
    await wallet.set_frozen(account, body.frozen)
    logger.info("%s set frozen=%s on %s", admin, body.frozen, account)
    return AccountResponse(account=account, balance=await wallet.balance_of(account))


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
