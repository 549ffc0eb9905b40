"""
Shop Items - Command Handling

Every command follows the same flow:
1. Load the item's history and replay it
2. Run the command on the aggregate
3. Persist whatever events it produced
4. Return the committed item

Redundant commands produce no events and therefore write nothing.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable
from uuid import UUID

import structlog

from shop_system.config import Settings, get_settings
from shop_system.domain.aggregates import ShopItem, ShopItemError
from shop_system.infrastructure.repository import ShopItemRepository

logger = structlog.get_logger()


class ShopItems:
    """Application service for shop item commands."""

    def __init__(
        self,
        repository: ShopItemRepository,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()

    async def buy(self, uuid: UUID, when: datetime, price: Decimal) -> ShopItem:
        hours = self.settings.hours_to_payment_timeout
        return await self._handle(
            "buy",
            uuid,
            lambda item: item.buy(uuid, when, hours, price),
        )

    async def pay(self, uuid: UUID, when: datetime) -> ShopItem:
        return await self._handle("pay", uuid, lambda item: item.pay(when))

    async def mark_payment_timeout(self, uuid: UUID, when: datetime) -> ShopItem:
        return await self._handle(
            "mark_payment_timeout", uuid, lambda item: item.mark_timeout(when)
        )

    async def _handle(
        self,
        command: str,
        uuid: UUID,
        action: Callable[[ShopItem], ShopItem],
    ) -> ShopItem:
        item = await self.repository.load(uuid)

        try:
            changed = action(item)
        except ShopItemError as e:
            logger.warning(
                "shop_items.command_rejected",
                command=command,
                item_id=str(uuid),
                state=item.state.value,
                error=str(e),
            )
            raise

        produced = changed.get_uncommitted_events()
        if not produced:
            logger.info(
                "shop_items.command_ignored",
                command=command,
                item_id=str(uuid),
                state=item.state.value,
            )
            return changed

        saved = await self.repository.save(changed)
        logger.info(
            "shop_items.command_handled",
            command=command,
            item_id=str(uuid),
            events_produced=[type(event).__name__ for event in produced],
            state=saved.state.value,
        )
        return saved
