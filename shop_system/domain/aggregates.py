"""
Aggregates - Consistency Boundaries

ShopItem is the aggregate root for a single purchasable item.

Key concepts:
1. Commands (buy, pay, mark_timeout) validate against the current state
2. A successful command only produces events; state follows from them
3. The same transition function is used for live commands and for replay
4. Every call returns a NEW ShopItem; nothing is mutated in place

State machine:
    INITIALIZED → BOUGHT → PAID
                     ↓       ↑
               PAYMENT_MISSING (late payment still accepted)

Redundant commands (double buy, double pay, double timeout) are absorbed as
no-ops so that at-least-once delivery is harmless. Commands that make no sense
for the current state (pay before buy) are caller bugs and raise.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from pydantic import ValidationError

from shop_system.domain.events import (
    DomainEvent,
    ItemBought,
    ItemPaid,
    ItemPaymentTimeout,
    ensure_utc,
)


class ShopItemState(str, Enum):
    """Shop item lifecycle states. PAID and PAYMENT_MISSING end the purchase."""

    INITIALIZED = "initialized"
    BOUGHT = "bought"
    PAID = "paid"
    PAYMENT_MISSING = "payment_missing"


@dataclass(frozen=True)
class ShopItem:
    """
    Shop Item Aggregate Root.

    Holds the identity, the state derived from events and the events produced
    since the last commit. Persisting those events is somebody else's job: the
    store appends them and then calls mark_events_committed().
    """

    uuid: UUID
    state: ShopItemState = ShopItemState.INITIALIZED
    changes: tuple[DomainEvent, ...] = ()

    @classmethod
    def initialized(cls, uuid: UUID) -> ShopItem:
        """Fresh item: identity only, nothing has happened yet."""
        return cls(uuid=uuid)

    def buy(
        self,
        uuid: UUID,
        when: datetime,
        hours_to_payment_timeout: int,
        price: Decimal,
    ) -> ShopItem:
        """
        Buy the item.

        Already bought (or paid, or timed out) items ignore the command.
        """
        if self.state != ShopItemState.INITIALIZED:
            return self

        when = ensure_utc(when)
        payment_timeout = self._calculate_payment_timeout(
            uuid, when, hours_to_payment_timeout
        )
        try:
            event = ItemBought(
                item_id=uuid,
                occurred_at=when,
                payment_timeout=payment_timeout,
                price=price,
            )
        except ValidationError as exc:
            raise InvalidArgumentError(
                f"Cannot buy item: {exc.errors()[0]['msg']}", item_id=uuid
            ) from exc

        return self._apply_change(event)

    @staticmethod
    def _calculate_payment_timeout(
        uuid: UUID, bought_at: datetime, hours_to_payment_timeout: int
    ) -> datetime:
        try:
            payment_timeout = bought_at + timedelta(hours=hours_to_payment_timeout)
        except OverflowError as exc:
            raise InvalidArgumentError(
                f"Payment timeout of {hours_to_payment_timeout} hours is out of range",
                item_id=uuid,
            ) from exc

        if payment_timeout <= bought_at:
            raise InvalidArgumentError(
                "Payment timeout day is not after buying date", item_id=uuid
            )
        return payment_timeout

    def pay(self, when: datetime) -> ShopItem:
        """
        Record payment.

        Paying after a recorded timeout is allowed and turns the item PAID.
        """
        self._raise_if_state_is(ShopItemState.INITIALIZED, "Cannot pay for not bought item")
        if self.state == ShopItemState.PAID:
            return self
        return self._apply_change(ItemPaid(item_id=self.uuid, occurred_at=when))

    def mark_timeout(self, when: datetime) -> ShopItem:
        """Record that the payment did not arrive in time."""
        self._raise_if_state_is(ShopItemState.INITIALIZED, "Payment is not missing yet")
        self._raise_if_state_is(ShopItemState.PAID, "Item already paid")
        if self.state == ShopItemState.BOUGHT:
            return self._apply_change(
                ItemPaymentTimeout(item_id=self.uuid, occurred_at=when)
            )
        return self

    def _raise_if_state_is(self, unexpected: ShopItemState, message: str) -> None:
        if self.state == unexpected:
            raise IllegalStateError(message, item_id=self.uuid)

    @classmethod
    def from_history(cls, uuid: UUID, history: Iterable[DomainEvent]) -> ShopItem:
        """
        Rebuild an item by replaying its events in append order.

        Replayed events are facts that are already stored, so none of them is
        recorded as uncommitted.
        """
        item = cls.initialized(uuid)
        for event in history:
            item = item._apply_change(event, is_new=False)
        return item

    def _apply_change(self, event: DomainEvent, is_new: bool = True) -> ShopItem:
        item = self._mutate(event)
        if is_new:
            return replace(item, changes=item.changes + (event,))
        return item

    def _mutate(self, event: DomainEvent) -> ShopItem:
        """
        State transition for a single event.

        CRITICAL: This must be DETERMINISTIC and independent of the prior state.
        The command guards above keep illegal sequences out of live handling.
        """
        if isinstance(event, ItemBought):
            return replace(self, uuid=event.item_id, state=ShopItemState.BOUGHT)

        elif isinstance(event, ItemPaid):
            return replace(self, uuid=event.item_id, state=ShopItemState.PAID)

        elif isinstance(event, ItemPaymentTimeout):
            return replace(
                self, uuid=event.item_id, state=ShopItemState.PAYMENT_MISSING
            )

        raise InvalidArgumentError(
            f"Cannot handle event {type(event).__name__}", item_id=self.uuid
        )

    def get_uncommitted_events(self) -> list[DomainEvent]:
        """Get events that haven't been persisted yet."""
        return list(self.changes)

    def mark_events_committed(self) -> ShopItem:
        """Clear uncommitted events after persistence."""
        return replace(self, changes=())


class ShopItemError(Exception):
    """Domain error for shop item operations."""

    def __init__(self, message: str, item_id: UUID | None = None):
        self.item_id = item_id
        if item_id is not None:
            message = f"{message} (item {item_id})"
        super().__init__(message)


class InvalidArgumentError(ShopItemError, ValueError):
    """Malformed command input or an event the aggregate does not know."""


class IllegalStateError(ShopItemError):
    """Command is not allowed in the item's current state."""
