"""
Tournament Event Bus.

Every timer and ledger mutation is announced here after it commits.

Design:
1. Fire-and-forget: handlers run as detached tasks, so a slow or failing
   observer never delays or fails the mutation that produced the event.
   Inline subscriptions are awaited in order for cheap in-process observers.
2. Fan-out: one event goes to every matching local subscription.
3. Durable mirror: when a Redis client is configured, events are appended
   to a Redis Stream so other processes can replay them.
"""

import asyncio
import json
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union
from uuid import uuid4

import redis.asyncio as redis

from championship.logging_config import get_logger
from championship.tournament.models import TournamentEvent, TournamentEventType

logger = get_logger(__name__)


EventHandler = Callable[[TournamentEvent], Awaitable[None]]


@dataclass
class Subscription:
    """One observer registration."""

    subscription_id: str
    event_types: Set[TournamentEventType]
    handler: EventHandler
    tournament_id: Optional[str] = None  # None = all tournaments
    inline: bool = False
    is_active: bool = True


@dataclass
class EventMetrics:
    """Counters for observers and health checks."""

    events_published: int = 0
    events_processed: int = 0
    events_failed: int = 0
    stream_failures: int = 0
    last_event_time: Optional[datetime] = None


class TournamentEventBus:
    """
    In-process event bus with optional Redis Stream mirroring.

    [Timer / Ledger] -> publish() -> [local handlers]
                                  -> [Redis Stream] (XADD, if configured)
    """

    STREAM_KEY = "tournament:events:all"

    STREAM_MAX_LEN = 10000

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        stream_max_len: Optional[int] = None,
    ):
        self.redis = redis_client
        self.stream_max_len = stream_max_len or self.STREAM_MAX_LEN

        self._subscriptions: Dict[str, Subscription] = {}
        self._handlers_by_type: Dict[TournamentEventType, List[Subscription]] = (
            defaultdict(list)
        )
        self._metrics = EventMetrics()
        self._pending: Set[asyncio.Task] = set()

    def subscribe(
        self,
        event_types: Set[TournamentEventType],
        handler: EventHandler,
        tournament_id: Optional[str] = None,
        inline: bool = False,
    ) -> str:
        """
        Subscribe to tournament events.

        Args:
            event_types: Set of event types to listen for
            handler: Async function to call on event
            tournament_id: Filter for specific tournament (None = all)
            inline: Await the handler inside publish() instead of detaching it

        Returns:
            Subscription ID for unsubscribe
        """
        subscription_id = str(uuid4())
        subscription = Subscription(
            subscription_id=subscription_id,
            event_types=set(event_types),
            handler=handler,
            tournament_id=tournament_id,
            inline=inline,
        )

        self._subscriptions[subscription_id] = subscription

        for event_type in subscription.event_types:
            self._handlers_by_type[event_type].append(subscription)

        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Drop a subscription. Returns False if it was already gone."""
        subscription = self._subscriptions.pop(subscription_id, None)
        if not subscription:
            return False

        subscription.is_active = False

        for event_type in subscription.event_types:
            handlers = self._handlers_by_type[event_type]
            self._handlers_by_type[event_type] = [
                h for h in handlers if h.subscription_id != subscription_id
            ]

        return True

    async def emit(
        self,
        tournament_id: str,
        event_type: Union[TournamentEventType, str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> TournamentEvent:
        """Build and publish an event. Unknown event names raise ValueError."""
        event = TournamentEvent(
            event_type=TournamentEventType(event_type),
            tournament_id=tournament_id,
            data=payload or {},
        )
        await self.publish(event)
        return event

    async def publish(self, event: TournamentEvent) -> None:
        """Dispatch locally, then mirror to the stream. Never raises."""
        await self._dispatch_local(event)

        if self.redis is not None:
            await self._publish_to_stream(event)

        self._metrics.events_published += 1
        self._metrics.last_event_time = datetime.now(timezone.utc)

        logger.debug(
            "tournament_event_published",
            event_type=event.event_type.value,
            tournament_id=event.tournament_id,
        )

    async def _publish_to_stream(self, event: TournamentEvent) -> Optional[str]:
        """
        Append a single event to the Redis Stream.

        Returns stream entry ID, or None when the write failed.
        """
        data = {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "tournament_id": event.tournament_id,
            "timestamp": event.timestamp.isoformat(),
            "data": json.dumps(event.data, default=str),
        }

        try:
            return await self.redis.xadd(
                self.STREAM_KEY,
                data,
                maxlen=self.stream_max_len,
                approximate=True,
            )
        except Exception as e:
            self._metrics.stream_failures += 1
            logger.warning(
                "event_stream_write_failed",
                event_type=event.event_type.value,
                tournament_id=event.tournament_id,
                error=str(e),
            )
            return None

    async def _dispatch_local(self, event: TournamentEvent) -> None:
        """Await inline handlers in order, detach the rest. Failures are isolated."""
        handlers = self._handlers_by_type.get(event.event_type, [])

        for subscription in list(handlers):
            if not subscription.is_active:
                continue

            if (
                subscription.tournament_id
                and subscription.tournament_id != event.tournament_id
            ):
                continue

            if subscription.inline:
                await self._safe_handler_call(subscription.handler, event)
                continue

            task = asyncio.create_task(
                self._safe_handler_call(subscription.handler, event)
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _safe_handler_call(
        self,
        handler: EventHandler,
        event: TournamentEvent,
    ) -> None:
        """Run one observer; its failure is counted and logged only."""
        try:
            await handler(event)
        except Exception as e:
            self._metrics.events_failed += 1
            logger.error(
                "event_handler_failed",
                event_type=event.event_type.value,
                tournament_id=event.tournament_id,
                error=str(e),
                exc_info=True,
            )
        else:
            self._metrics.events_processed += 1

    def get_metrics(self) -> EventMetrics:
        """Counters since the bus was created."""
        return self._metrics

    @property
    def pending_handlers(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for detached handlers, including ones they schedule."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self.redis is not None:
            await self.redis.aclose()
