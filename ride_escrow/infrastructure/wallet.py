"""
In-house wallet ledger -- the default value-transfer collaborator.

Balances live in the ``accounts`` table and are moved inside the same
session as the ride transition, so a ride and the money it moves commit or
roll back together.  Every check happens before the balance is written;
a ``TransferFailed`` therefore leaves the ledger untouched.

A frozen account can neither pay nor receive.  That is how "recipient
cannot accept funds" shows up in this backend.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import AccountRepository, as_decimal
from ride_escrow.domain.entities import check_amount
from ride_escrow.domain.errors import TransferFailed
from ride_escrow.domain.ports import ValueTransfer

logger = logging.getLogger(__name__)


class WalletLedger(ValueTransfer):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.accounts = AccountRepository(session)

    async def collect(self, account: str, amount: Decimal) -> None:
        row = await self.accounts.get(account, for_update=True)
        if row is None:
            raise TransferFailed(account, amount, "no wallet")
        if row.is_frozen:
            raise TransferFailed(account, amount, "account frozen")
        balance = as_decimal(row.balance)
        if balance < amount:
            raise TransferFailed(account, amount, "insufficient balance")
        row.balance = balance - amount
        await self.session.flush()
        logger.debug("Collected %s from %s", amount, account)

    async def pay(self, account: str, amount: Decimal) -> None:
        row = await self.accounts.get_or_create(account)
        if row.is_frozen:
            raise TransferFailed(account, amount, "account frozen")
        row.balance = as_decimal(row.balance) + amount
        await self.session.flush()
        logger.debug("Paid %s to %s", amount, account)

    # ── Admin helpers ─────────────────────────────────────────────

    async def deposit(self, account: str, amount: Decimal) -> Decimal:
        check_amount(amount)
        await self.pay(account, amount)
        return await self.balance_of(account)

    async def set_frozen(self, account: str, frozen: bool = True) -> None:
        row = await self.accounts.get_or_create(account)
        row.is_frozen = frozen
        await self.session.flush()
        logger.info("Wallet %s frozen=%s", account, frozen)

    async def balance_of(self, account: str) -> Decimal:
        return await self.accounts.balance_of(account)
