"""Application Layer - command handling and payment timeout checks."""

from shop_system.application.payment_timeouts import (
    PaymentTimeoutChecker,
    PaymentTimeoutsProjection,
)
from shop_system.application.shop_items import ShopItems

__all__ = ["PaymentTimeoutChecker", "PaymentTimeoutsProjection", "ShopItems"]
