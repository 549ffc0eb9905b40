"""
Event Serialization - JSON Codec for Shop Item Events

Events leave the process as JSON:
    {"item_id": "...", "occurred_at": "2024-01-15T10:00:00Z",
     "event_type": "ItemBought", "payment_timeout": "...", "price": "9.99"}

Timestamps are UTC instants and prices are decimal strings, so a timeout
computed in one place compares the same everywhere else.

Decoding goes through the discriminated union of the closed event set. An
unknown event_type is corrupted or foreign data and is rejected, never skipped.
"""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError

from shop_system.domain.aggregates import InvalidArgumentError
from shop_system.domain.events import SHOP_ITEM_EVENTS, DomainEvent, ShopItemEvent

_event_adapter: TypeAdapter[DomainEvent] = TypeAdapter(ShopItemEvent)


class EventSerializer:
    """Encodes and decodes the closed set of shop item events."""

    def serialize(self, event: DomainEvent) -> str:
        self._ensure_known(event)
        return event.model_dump_json()

    def deserialize(self, payload: str | bytes) -> DomainEvent:
        try:
            return _event_adapter.validate_json(payload)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Cannot decode event: {exc}") from exc

    def to_dict(self, event: DomainEvent) -> dict[str, Any]:
        self._ensure_known(event)
        return event.model_dump(mode="json")

    def from_dict(self, data: dict[str, Any]) -> DomainEvent:
        try:
            return _event_adapter.validate_python(data)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Cannot decode event: {exc}") from exc

    @staticmethod
    def _ensure_known(event: DomainEvent) -> None:
        if not isinstance(event, SHOP_ITEM_EVENTS):
            raise InvalidArgumentError(
                f"Cannot serialize event {type(event).__name__}",
                item_id=event.item_id,
            )
