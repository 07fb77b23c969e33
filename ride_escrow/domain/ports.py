"""
Collaborator ports consumed by the ride core.

The core never measures wall time, moves money or talks to a message bus
by itself; it goes through these interfaces so each can be swapped
(in-house wallet vs. payment provider, system clock vs. frozen test clock).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from .entities import RideEvent


class Clock(ABC):
    @abstractmethod
    def now(self) -> int:
        """Current time in unix seconds."""


class ValueTransfer(ABC):
    """Moves fare value in and out of escrow.

    Both calls must either complete or raise ``TransferFailed`` without
    side effects.
    """

    @abstractmethod
    async def collect(self, account: str, amount: Decimal) -> None: ...

    @abstractmethod
    async def pay(self, account: str, amount: Decimal) -> None: ...


class EventSink(ABC):
    @abstractmethod
    async def emit(self, event: RideEvent) -> None: ...
