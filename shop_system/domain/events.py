"""
Domain Events - Immutable Facts About a Shop Item

Events are the source of truth. The current state of an item is never stored,
it is derived by replaying these facts in the order they were appended.

The set of events is CLOSED:
- ItemBought
- ItemPaid
- ItemPaymentTimeout

Anything else showing up in a history is corrupted data, not something to skip.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a timestamp to an aware UTC instant.

    Naive datetimes are taken to already be UTC. Timeout comparisons must not
    depend on the timezone of whoever produced the event.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DomainEvent(BaseModel):
    """
    Base class for all shop item events.

    Design principle: Events are IMMUTABLE and describe PAST FACTS.
    - Good: ItemBought (past tense, immutable fact)
    - Bad: BuyItem (command, not event)
    """

    model_config = ConfigDict(frozen=True)

    item_id: UUID
    occurred_at: datetime

    @field_validator("occurred_at")
    @classmethod
    def normalize_occurred_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ItemBought(DomainEvent):
    """
    Item was bought and is now awaiting payment.

    payment_timeout is the instant after which a missing payment may be
    recorded. It is always strictly after occurred_at.
    """

    event_type: Literal["ItemBought"] = "ItemBought"
    payment_timeout: datetime
    price: Decimal

    @field_validator("payment_timeout")
    @classmethod
    def normalize_payment_timeout(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"Item price must not be negative, got {v}")
        return v

    @model_validator(mode="after")
    def validate_payment_timeout(self) -> ItemBought:
        if self.payment_timeout <= self.occurred_at:
            raise ValueError(
                f"Payment timeout {self.payment_timeout.isoformat()} must be after "
                f"purchase time {self.occurred_at.isoformat()}"
            )
        return self


class ItemPaid(DomainEvent):
    """Payment for a bought item was received (possibly after its timeout)."""

    event_type: Literal["ItemPaid"] = "ItemPaid"


class ItemPaymentTimeout(DomainEvent):
    """Payment did not arrive before the payment timeout."""

    event_type: Literal["ItemPaymentTimeout"] = "ItemPaymentTimeout"


SHOP_ITEM_EVENTS = (ItemBought, ItemPaid, ItemPaymentTimeout)

ShopItemEvent = Annotated[
    Union[ItemBought, ItemPaid, ItemPaymentTimeout],
    Field(discriminator="event_type"),
]
