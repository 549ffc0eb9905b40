"""
Payment timeout background worker.

Wires the shop around an event store, keeps the unpaid-items read model
attached to the stream, and sweeps it for overdue items at a fixed interval.
"""
import asyncio
import signal
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from shop_system.application import (
    PaymentTimeoutChecker,
    PaymentTimeoutsProjection,
    ShopItems,
)
from shop_system.config import Settings, get_settings
from shop_system.infrastructure.event_store import (
    EventStore,
    InMemoryEventStorage,
    InMemoryEventStream,
)
from shop_system.infrastructure.repository import ShopItemRepository
from shop_system.monitoring import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class ShopServices:
    event_store: EventStore
    shop_items: ShopItems
    projection: PaymentTimeoutsProjection
    checker: PaymentTimeoutChecker


async def build_services(
    settings: Settings | None = None, event_store: EventStore | None = None
) -> ShopServices:
    """
    Wire the command service and the timeout checker.

    Args:
        settings: Settings (cached settings when omitted)
        event_store: Store to use (in-memory store and stream when omitted)

    Returns:
        ShopServices: The wired services
    """
    settings = settings or get_settings()
    if event_store is None:
        event_store = EventStore(InMemoryEventStorage(), InMemoryEventStream())

    shop_items = ShopItems(ShopItemRepository(event_store), settings)
    projection = PaymentTimeoutsProjection()
    if event_store.stream is not None:
        await projection.attach(event_store.stream, event_store.topic)

    return ShopServices(
        event_store=event_store,
        shop_items=shop_items,
        projection=projection,
        checker=PaymentTimeoutChecker(shop_items, projection),
    )


async def run_payment_timeout_sweep(
    services: ShopServices, now: datetime | None = None
) -> list[UUID]:
    """Run one sweep and return the items that were timed out."""
    now = now or datetime.now(timezone.utc)
    timed_out = await services.checker.check(now)
    logger.info(
        "payment_timeout_sweep_completed",
        timed_out=len(timed_out),
        awaiting_payment=len(services.projection),
    )
    return timed_out


async def start_payment_timeout_worker(
    settings: Settings | None = None, services: ShopServices | None = None
) -> None:
    """
    Start the payment timeout worker.

    Sweeps every settings.payment_timeout_check_interval_seconds until
    SIGINT or SIGTERM.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    services = services or await build_services(settings)
    interval = settings.payment_timeout_check_interval_seconds

    logger.info("payment_timeout_worker_starting", interval_seconds=interval)

    running = True

    def signal_handler(sig: int, frame: Any) -> None:
        nonlocal running
        logger.info("payment_timeout_worker_shutdown_signal_received", signal=sig)
        running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        while running:
            try:
                await run_payment_timeout_sweep(services)
            except Exception as e:
                logger.error("payment_timeout_sweep_error", error=str(e))
                # Keep sweeping; the next run retries the same items

            await asyncio.sleep(interval)
    finally:
        logger.info("payment_timeout_worker_stopped")


if __name__ == "__main__":
    asyncio.run(start_payment_timeout_worker())
