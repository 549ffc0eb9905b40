"""
Payment Timeouts - Read Model and Checker

Bought items have a payment deadline. Something has to notice when it passes
and send the mark_payment_timeout command; the aggregate itself never looks
at the clock.

PaymentTimeoutsProjection follows the event stream and remembers which items
are still waiting for payment. PaymentTimeoutChecker asks it which of them are
overdue and times them out.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog

from shop_system.application.shop_items import ShopItems
from shop_system.domain.aggregates import IllegalStateError
from shop_system.domain.events import (
    DomainEvent,
    ItemBought,
    ItemPaid,
    ItemPaymentTimeout,
    ensure_utc,
)
from shop_system.infrastructure.event_store import DEFAULT_TOPIC, EventStream

logger = structlog.get_logger()


class PaymentTimeoutsProjection:
    """Items that are bought but neither paid nor timed out yet."""

    def __init__(self):
        self._awaiting_payment: dict[UUID, datetime] = {}

    async def attach(self, stream: EventStream, topic: str = DEFAULT_TOPIC) -> None:
        await stream.subscribe(topic, self.handle)

    async def handle(self, event: DomainEvent) -> None:
        if isinstance(event, ItemBought):
            self._awaiting_payment[event.item_id] = event.payment_timeout
        elif isinstance(event, (ItemPaid, ItemPaymentTimeout)):
            self._awaiting_payment.pop(event.item_id, None)

    def due(self, now: datetime) -> list[UUID]:
        """Identities whose payment timeout is at or before now, oldest first."""
        now = ensure_utc(now)
        overdue = [
            (timeout, item_id)
            for item_id, timeout in self._awaiting_payment.items()
            if timeout <= now
        ]
        return [item_id for _, item_id in sorted(overdue, key=lambda pair: pair[0])]

    def forget(self, item_id: UUID) -> None:
        """Drop an item the stream never reported as settled."""
        self._awaiting_payment.pop(item_id, None)

    def __len__(self) -> int:
        return len(self._awaiting_payment)


class PaymentTimeoutChecker:
    """Marks every overdue item as PAYMENT_MISSING."""

    def __init__(self, shop_items: ShopItems, projection: PaymentTimeoutsProjection):
        self.shop_items = shop_items
        self.projection = projection

    async def check(self, now: datetime) -> list[UUID]:
        """Time out the overdue items and return the ones that are now missing payment."""
        timed_out: list[UUID] = []
        for item_id in self.projection.due(now):
            try:
                await self.shop_items.mark_payment_timeout(item_id, now)
            except IllegalStateError as e:
                # The read model missed the event that settled this item
                logger.warning(
                    "payment_timeouts.stale_entry_dropped",
                    item_id=str(item_id),
                    error=str(e),
                )
                self.projection.forget(item_id)
                continue

            self.projection.forget(item_id)
            timed_out.append(item_id)

        if timed_out:
            logger.info(
                "payment_timeouts.marked",
                count=len(timed_out),
                item_ids=[str(item_id) for item_id in timed_out],
            )
        return timed_out
