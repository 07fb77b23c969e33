"""
Event sinks.

* ``SqlEventSink``    -- durable: one ``ride_events`` row per transition,
  written in the command's own transaction.
* ``RedisEventSink``  -- fan-out for external indexers over pub/sub.
  Events are buffered and only published by ``flush``, which the API calls
  once the command's transaction has committed; a rolled-back command
  calls ``discard`` instead.  A publish failure is logged, never raised,
  so a committed transition is not undone by a broker outage.
* ``FanoutEventSink`` -- forwards to several sinks in order.
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import EventRepository
from ride_escrow.domain.entities import RideEvent
from ride_escrow.domain.ports import EventSink

logger = logging.getLogger(__name__)


def event_to_json(event: RideEvent) -> str:
    return json.dumps(
        {
            "name": event.name,
            "ride_id": event.ride_id,
            "account": event.account,
            "occurred_at": event.occurred_at,
            "payload": event.payload,
        }
    )


class SqlEventSink(EventSink):
    def __init__(self, session: AsyncSession):
        self.events = EventRepository(session)

    async def emit(self, event: RideEvent) -> None:
        await self.events.add(event)


class RedisEventSink(EventSink):
    def __init__(self, client: aioredis.Redis, channel: str):
        self.redis = client
        self.channel = channel
        self.pending: list[RideEvent] = []

    async def emit(self, event: RideEvent) -> None:
        self.pending.append(event)

    async def flush(self) -> None:
        """Publish buffered events in emission order."""
        pending, self.pending = self.pending, []
        for event in pending:
            try:
                await self.redis.publish(self.channel, event_to_json(event))
            except (RedisError, OSError) as exc:
                logger.warning(
                    "Could not publish %s for ride %s: %s",
                    event.name, event.ride_id, exc,
                )

    def discard(self) -> None:
        if self.pending:
            logger.debug("Dropping %d unpublished events", len(self.pending))
        self.pending = []


class FanoutEventSink(EventSink):
    def __init__(self, *sinks: EventSink):
        self.sinks = sinks

    async def emit(self, event: RideEvent) -> None:
        for sink in self.sinks:
            await sink.emit(event)
