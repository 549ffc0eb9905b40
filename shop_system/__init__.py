"""
Shop System - Event-Sourced Shop Items

An item's lifecycle (bought, paid, payment missing) is never stored as a row.
It is derived by replaying the item's domain events:
1. Domain: the ShopItem aggregate and its closed set of events
2. Infrastructure: event store, JSON codec and repository
3. Application: command handling and payment timeout checks
"""

__version__ = "1.0.0"
