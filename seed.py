"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 funded wallets (3 riders, 3 drivers)
  - 3 registered drivers (2 verified)
  - 5 sample rides walked through the engine (Requested, Accepted, Funded,
    Finalized + rated, Cancelled)

Everything goes through the services, so the event log is populated too.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import text

from ride_escrow.domain.entities import Location
from ride_escrow.infrastructure.clock import SystemClock
from ride_escrow.infrastructure.database import async_session_factory, engine
from ride_escrow.infrastructure.events import SqlEventSink
from ride_escrow.infrastructure.wallet import WalletLedger
from ride_escrow.services.driver_registry import DriverRegistry
from ride_escrow.services.rating_ledger import RatingLedger
from ride_escrow.services.ride_engine import RideEngine

RIDERS = ["rider-aarav", "rider-priya", "rider-rohan"]

DRIVERS = [
    {"account": "driver-sneha", "name": "Sneha Gupta", "verified": True},
    {"account": "driver-vikram", "name": "Vikram Singh", "verified": True},
    {"account": "driver-meera", "name": "Meera Nair", "verified": False},
]

AIRPORT = Location("19.0896", "72.8656", "Airport T2")
ANDHERI = Location("19.0760", "72.8777", "Andheri")
POWAI = Location("19.1176", "72.9060", "Powai")
BANDRA = Location("19.0540", "72.8400", "Bandra")


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        clock = SystemClock()
        events = SqlEventSink(session)
        wallet = WalletLedger(session)
        registry = DriverRegistry(session, clock, events)
        rides = RideEngine(session, clock, wallet, events, registry)
        ratings = RatingLedger(session, clock, events, registry)

        # ── Wallets ───────────────────────────────────────────────────
        for account in RIDERS + [d["account"] for d in DRIVERS]:
            await wallet.deposit(account, Decimal("500"))
        print(f"  Funded {len(RIDERS) + len(DRIVERS)} wallets")

        # ── Drivers ───────────────────────────────────────────────────
        for d in DRIVERS:
            await registry.register_driver(d["account"], d["name"])
            if d["verified"]:
                await registry.verify_identity(d["account"])
        print(f"  Registered {len(DRIVERS)} drivers")

        # ── Rides ─────────────────────────────────────────────────────
        aarav, priya, rohan = RIDERS
        sneha, vikram = DRIVERS[0]["account"], DRIVERS[1]["account"]

        await rides.request_ride(aarav, AIRPORT, ANDHERI, Decimal("120.50"))

        accepted = await rides.request_ride(priya, AIRPORT, POWAI, Decimal("180"))
        await rides.accept_ride(sneha, accepted.id)

        funded = await rides.request_ride(rohan, AIRPORT, BANDRA, Decimal("95"))
        await rides.accept_ride(vikram, funded.id)
        await rides.fund_ride(rohan, funded.id, Decimal("95"))

        done = await rides.request_ride(aarav, ANDHERI, AIRPORT, Decimal("250"))
        await rides.accept_ride(sneha, done.id)
        await rides.fund_ride(aarav, done.id, Decimal("250"))
        await rides.start_ride(sneha, done.id)
        await rides.complete_ride(sneha, done.id)
        await rides.confirm_arrival(aarav, done.id)
        await ratings.rate_driver(aarav, done.id, 5)
        await ratings.rate_rider(sneha, done.id, 4)

        cancelled = await rides.request_ride(priya, POWAI, BANDRA, Decimal("140"))
        await rides.accept_ride(vikram, cancelled.id)
        await rides.cancel_ride(priya, cancelled.id, "Plans changed")
        print("  Created 5 rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
