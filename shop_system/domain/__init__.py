"""
Domain Layer - Pure Business Logic

This layer contains:
- Domain events (immutable facts about what happened to an item)
- The ShopItem aggregate (validates commands, produces events, replays history)

Key principle: ZERO dependencies on infrastructure
The aggregate does no I/O and no logging, so it is tested with plain values.
"""

from shop_system.domain.aggregates import (
    IllegalStateError,
    InvalidArgumentError,
    ShopItem,
    ShopItemError,
    ShopItemState,
)
from shop_system.domain.events import (
    SHOP_ITEM_EVENTS,
    DomainEvent,
    ItemBought,
    ItemPaid,
    ItemPaymentTimeout,
    ShopItemEvent,
)

__all__ = [
    "DomainEvent",
    "IllegalStateError",
    "InvalidArgumentError",
    "ItemBought",
    "ItemPaid",
    "ItemPaymentTimeout",
    "SHOP_ITEM_EVENTS",
    "ShopItem",
    "ShopItemError",
    "ShopItemEvent",
    "ShopItemState",
]
