"""
Event Store - Append-Only Streams of Shop Item Events

What it does:
1. Stores every event of an item, in append order (append-only, immutable)
2. Hands the ordered history back so the aggregate can replay it
3. Publishes appended events to subscribers (read models, timeout checks)
4. Optionally rejects appends made against a stale version

The aggregate never talks to the store. The repository loads a history,
the aggregate produces new events, and the repository appends them here as
one batch: either the whole batch lands, in order, or none of it does.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Protocol, Sequence
from uuid import UUID

import structlog

from shop_system.domain.events import DomainEvent, ensure_utc
from shop_system.infrastructure.serialization import EventSerializer

logger = structlog.get_logger()

DEFAULT_TOPIC = "events.shop_item"

EventHandler = Callable[[DomainEvent], Awaitable[None]]


class EventStream(Protocol):
    """Interface for event streaming (Kafka, Redis Streams, etc.)."""

    async def publish(self, topic: str, event: DomainEvent) -> None:
        """Publish event to stream."""
        ...

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Subscribe to events on topic."""
        ...


class EventStorageBackend(Protocol):
    """Interface for event storage (PostgreSQL, etc.)."""

    async def append_events(
        self,
        aggregate_id: UUID,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> int:
        """
        Append events to the aggregate's stream and return the new version.

        When expected_version is given and the stream has moved on, nothing is
        written and ConcurrencyError is raised.
        """
        ...

    async def get_events(
        self,
        aggregate_id: UUID,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        """Get events for aggregate (for rebuilding state)."""
        ...

    async def get_all_events(
        self, from_timestamp: datetime | None = None, limit: int | None = 1000
    ) -> list[DomainEvent]:
        """Get all events across aggregates, in global append order (no limit when None)."""
        ...


class EventStore:
    """
    Gateway to all event operations.

    Storage is the source of truth; the stream is best-effort notification.
    """

    def __init__(
        self,
        storage: EventStorageBackend,
        stream: EventStream | None = None,
        topic: str = DEFAULT_TOPIC,
    ):
        self.storage = storage
        self.stream = stream
        self.topic = topic

    async def append(
        self,
        aggregate_id: UUID,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> int:
        """Append a batch of new events to the aggregate's stream."""
        logger.info(
            "event_store.append",
            aggregate_id=str(aggregate_id),
            event_types=[type(event).__name__ for event in events],
            expected_version=expected_version,
        )

        try:
            version = await self.storage.append_events(
                aggregate_id, events, expected_version
            )
        except ConcurrencyError as e:
            logger.warning(
                "event_store.concurrency_conflict",
                aggregate_id=str(aggregate_id),
                expected_version=e.expected_version,
                actual_version=e.current_version,
            )
            raise

        if self.stream:
            for event in events:
                try:
                    await self.stream.publish(self.topic, event)
                except Exception as e:
                    # Log but don't fail - storage is source of truth
                    logger.error(
                        "event_store.stream_publish_failed",
                        error=str(e),
                        topic=self.topic,
                        event_type=type(event).__name__,
                    )

        return version

    async def get_aggregate_events(
        self,
        aggregate_id: UUID,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        """
        Get the ordered history of an aggregate.

        An identity that was never bought simply has no events.
        """
        return await self.storage.get_events(aggregate_id, from_version, to_version)

    async def rebuild_aggregate_state(
        self,
        aggregate_id: UUID,
        up_to_version: int | None = None,
        up_to_timestamp: datetime | None = None,
    ) -> list[DomainEvent]:
        """
        Time-travel: the prefix of an aggregate's history.

        Replaying the result answers "what state was the item in at 3pm yesterday?"
        Versions are zero-based positions in the stream; a negative version
        raises ValueError.
        """
        all_events = await self.get_aggregate_events(aggregate_id)

        if up_to_version is not None:
            if up_to_version < 0:
                raise ValueError(f"up_to_version must not be negative, got {up_to_version}")
            all_events = all_events[: up_to_version + 1]

        if up_to_timestamp is not None:
            cutoff = ensure_utc(up_to_timestamp)
            all_events = [e for e in all_events if e.occurred_at <= cutoff]

        logger.info(
            "event_store.time_travel",
            aggregate_id=str(aggregate_id),
            up_to_version=up_to_version,
            up_to_timestamp=up_to_timestamp,
            events_found=len(all_events),
        )

        return all_events

    async def get_events_by_type(
        self,
        event_type: str,
        from_timestamp: datetime | None = None,
        limit: int = 1000,
    ) -> list[DomainEvent]:
        """
        Get all events of a specific type.

        Example: "Show me all ItemPaymentTimeout events today"
        """
        all_events = await self.storage.get_all_events(from_timestamp, limit=None)
        matching = [e for e in all_events if e.event_type == event_type]
        return matching[:limit]


class ConcurrencyError(Exception):
    """Raised when an append is made against a stale stream version."""

    def __init__(self, aggregate_id: UUID, expected: int, current: int):
        self.aggregate_id = aggregate_id
        self.expected_version = expected
        self.current_version = current
        super().__init__(
            f"Concurrency conflict for {aggregate_id}: "
            f"expected version {expected}, current version {current}"
        )


# ============================================================================
# IN-MEMORY IMPLEMENTATIONS (for testing and local development)
# ============================================================================


class InMemoryEventStorage:
    """
    In-memory event storage for testing.

    Events are kept as JSON, the same way a database would hold them, so every
    read goes through the codec.
    """

    def __init__(self, serializer: EventSerializer | None = None):
        self.serializer = serializer or EventSerializer()
        self._streams: dict[UUID, list[str]] = {}
        self._global_events: list[str] = []

    async def append_events(
        self,
        aggregate_id: UUID,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> int:
        stream = self._streams.setdefault(aggregate_id, [])
        current_version = len(stream)

        if expected_version is not None and current_version != expected_version:
            raise ConcurrencyError(aggregate_id, expected_version, current_version)

        # Encode everything first so a bad event leaves the stream untouched
        payloads = [self.serializer.serialize(event) for event in events]
        stream.extend(payloads)
        self._global_events.extend(payloads)
        return len(stream)

    async def get_events(
        self,
        aggregate_id: UUID,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        payloads = self._streams.get(aggregate_id, [])
        return [
            self.serializer.deserialize(payload)
            for version, payload in enumerate(payloads)
            if version >= from_version and (to_version is None or version <= to_version)
        ]

    async def get_all_events(
        self, from_timestamp: datetime | None = None, limit: int | None = 1000
    ) -> list[DomainEvent]:
        events = [self.serializer.deserialize(p) for p in self._global_events]

        if from_timestamp:
            cutoff = ensure_utc(from_timestamp)
            events = [e for e in events if e.occurred_at >= cutoff]

        return events[:limit]


class InMemoryEventStream:
    """In-memory event stream for testing."""

    def __init__(self):
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._published_events: list[tuple[str, DomainEvent]] = []

    async def publish(self, topic: str, event: DomainEvent) -> None:
        self._published_events.append((topic, event))

        for handler in self._subscribers.get(topic, []):
            await handler(event)

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._subscribers.setdefault(topic, []).append(handler)

    def get_published_events(self, topic: str | None = None) -> list[DomainEvent]:
        """Helper for testing: Get all published events."""
        if topic is None:
            return [e for _, e in self._published_events]
        return [e for t, e in self._published_events if t == topic]
