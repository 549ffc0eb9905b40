"""Repository for ShopItem aggregates backed by the event store."""

from __future__ import annotations

from uuid import UUID

import structlog

from shop_system.domain.aggregates import ShopItem
from shop_system.infrastructure.event_store import EventStore

logger = structlog.get_logger()


class ShopItemRepository:
    """
    Loads items by replaying their streams and saves their new events.

    The only place where uncommitted events become committed ones.
    """

    def __init__(self, event_store: EventStore):
        self.event_store = event_store

    async def load(self, uuid: UUID) -> ShopItem:
        history = await self.event_store.get_aggregate_events(uuid)
        item = ShopItem.from_history(uuid, history)
        logger.debug(
            "shop_item_repository.loaded",
            item_id=str(uuid),
            events_replayed=len(history),
            state=item.state.value,
        )
        return item

    async def save(self, item: ShopItem) -> ShopItem:
        """Append the item's uncommitted events, then mark them committed."""
        events = item.get_uncommitted_events()
        if not events:
            return item

        await self.event_store.append(item.uuid, events)
        return item.mark_events_committed()
