"""
Tests for the ShopItem aggregate.

Given a history, when a command runs, expect these events and this state.
"""

from dataclasses import FrozenInstanceError
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from shop_system.domain.aggregates import (
    IllegalStateError,
    InvalidArgumentError,
    ShopItem,
    ShopItemState,
)
from shop_system.domain.events import (
    DomainEvent,
    ItemBought,
    ItemPaid,
    ItemPaymentTimeout,
)


class ItemReturned(DomainEvent):
    """An event the aggregate has never heard of."""


@pytest.fixture
def fresh(item_id):
    return ShopItem.initialized(item_id)


@pytest.fixture
def bought(fresh, item_id, t0, price):
    return fresh.buy(item_id, t0, 24, price).mark_events_committed()


@pytest.fixture
def paid(bought, t0):
    return bought.pay(t0 + timedelta(hours=1)).mark_events_committed()


@pytest.fixture
def payment_missing(bought, t0):
    return bought.mark_timeout(t0 + timedelta(hours=25)).mark_events_committed()


class TestBuy:
    def test_buy_fresh_item(self, fresh, item_id, t0, price):
        item = fresh.buy(item_id, t0, 24, price)

        assert item.state == ShopItemState.BOUGHT
        events = item.get_uncommitted_events()
        assert len(events) == 1
        bought_event = events[0]
        assert isinstance(bought_event, ItemBought)
        assert bought_event.item_id == item_id
        assert bought_event.occurred_at == t0
        assert bought_event.payment_timeout == t0 + timedelta(hours=24)
        assert bought_event.price == Decimal("9.99")

    def test_buy_returns_new_item(self, fresh, item_id, t0, price):
        item = fresh.buy(item_id, t0, 24, price)

        assert item is not fresh
        assert fresh.state == ShopItemState.INITIALIZED
        assert fresh.get_uncommitted_events() == []

    def test_buy_assigns_identity(self, t0, price):
        placeholder = ShopItem.initialized(uuid4())
        real_id = uuid4()

        item = placeholder.buy(real_id, t0, 24, price)

        assert item.uuid == real_id

    @pytest.mark.parametrize("hours", [0, -1, -48])
    def test_non_positive_timeout_rejected(self, fresh, item_id, t0, price, hours):
        with pytest.raises(InvalidArgumentError):
            fresh.buy(item_id, t0, hours, price)

    def test_overflowing_timeout_rejected(self, fresh, item_id, t0, price):
        with pytest.raises(InvalidArgumentError, match="out of range"):
            fresh.buy(item_id, t0, 10**12, price)

    def test_negative_price_rejected(self, fresh, item_id, t0):
        with pytest.raises(InvalidArgumentError, match="must not be negative"):
            fresh.buy(item_id, t0, 24, Decimal("-0.01"))

    def test_free_item_allowed(self, fresh, item_id, t0):
        item = fresh.buy(item_id, t0, 24, Decimal("0"))

        assert item.state == ShopItemState.BOUGHT

    def test_invalid_argument_is_value_error(self, fresh, item_id, t0, price):
        with pytest.raises(ValueError):
            fresh.buy(item_id, t0, 0, price)

    @pytest.mark.parametrize("state", ["bought", "paid", "payment_missing"])
    def test_buy_again_is_ignored(self, request, item_id, t0, price, state):
        item = request.getfixturevalue(state)

        again = item.buy(item_id, t0 + timedelta(hours=30), 24, price)

        assert again is item
        assert again.get_uncommitted_events() == []


class TestPay:
    def test_pay_bought_item(self, bought, t0):
        item = bought.pay(t0 + timedelta(hours=1))

        assert item.state == ShopItemState.PAID
        [event] = item.get_uncommitted_events()
        assert isinstance(event, ItemPaid)
        assert event.item_id == bought.uuid

    def test_pay_not_bought_item_raises(self, fresh, t0):
        with pytest.raises(IllegalStateError, match="Cannot pay for not bought item"):
            fresh.pay(t0)

    def test_error_carries_item_id(self, fresh, item_id, t0):
        with pytest.raises(IllegalStateError) as exc_info:
            fresh.pay(t0)

        assert exc_info.value.item_id == item_id
        assert str(item_id) in str(exc_info.value)

    def test_pay_twice_is_ignored(self, paid, t0):
        again = paid.pay(t0 + timedelta(hours=2))

        assert again is paid
        assert again.state == ShopItemState.PAID
        assert again.get_uncommitted_events() == []

    def test_late_payment_accepted(self, payment_missing, t0):
        item = payment_missing.pay(t0 + timedelta(hours=26))

        assert item.state == ShopItemState.PAID
        [event] = item.get_uncommitted_events()
        assert isinstance(event, ItemPaid)


class TestMarkTimeout:
    def test_timeout_bought_item(self, bought, t0):
        item = bought.mark_timeout(t0 + timedelta(hours=25))

        assert item.state == ShopItemState.PAYMENT_MISSING
        [event] = item.get_uncommitted_events()
        assert isinstance(event, ItemPaymentTimeout)

    def test_timeout_not_bought_item_raises(self, fresh, t0):
        with pytest.raises(IllegalStateError, match="Payment is not missing yet"):
            fresh.mark_timeout(t0)

    def test_timeout_paid_item_raises(self, paid, t0):
        with pytest.raises(IllegalStateError, match="Item already paid"):
            paid.mark_timeout(t0 + timedelta(hours=25))

    def test_timeout_twice_is_ignored(self, payment_missing, t0):
        again = payment_missing.mark_timeout(t0 + timedelta(hours=30))

        assert again is payment_missing
        assert again.get_uncommitted_events() == []


class TestReplay:
    def test_empty_history_is_initialized(self, item_id):
        item = ShopItem.from_history(item_id, [])

        assert item.state == ShopItemState.INITIALIZED
        assert item.uuid == item_id
        assert item.get_uncommitted_events() == []

    def test_replay_records_nothing_uncommitted(self, fresh, item_id, t0, price):
        history = fresh.buy(item_id, t0, 24, price).pay(t0).get_uncommitted_events()

        item = ShopItem.from_history(item_id, history)

        assert item.state == ShopItemState.PAID
        assert item.get_uncommitted_events() == []

    def test_replay_is_deterministic(self, fresh, item_id, t0, price):
        history = (
            fresh.buy(item_id, t0, 24, price)
            .mark_timeout(t0 + timedelta(hours=25))
            .pay(t0 + timedelta(hours=26))
            .get_uncommitted_events()
        )

        first = ShopItem.from_history(item_id, history)
        second = ShopItem.from_history(item_id, history)

        assert first == second
        assert first.state == ShopItemState.PAID

    @pytest.mark.parametrize(
        "command",
        [
            lambda item, t0, price: item.buy(item.uuid, t0, 24, price),
            lambda item, t0, price: item.buy(item.uuid, t0, 24, price).pay(t0),
            lambda item, t0, price: item.buy(item.uuid, t0, 24, price).mark_timeout(t0),
        ],
        ids=["buy", "buy-pay", "buy-timeout"],
    )
    def test_replay_matches_live_state(self, fresh, t0, price, command):
        live = command(fresh, t0, price)

        replayed = ShopItem.from_history(fresh.uuid, live.get_uncommitted_events())

        assert replayed.state == live.state
        assert replayed.uuid == live.uuid

    def test_replay_applies_transitions_unconditionally(self, item_id, t0):
        # Stored history is trusted: a payment alone still means PAID
        item = ShopItem.from_history(item_id, [ItemPaid(item_id=item_id, occurred_at=t0)])

        assert item.state == ShopItemState.PAID

    def test_unknown_event_rejected(self, item_id, t0):
        with pytest.raises(InvalidArgumentError, match="Cannot handle event ItemReturned"):
            ShopItem.from_history(item_id, [ItemReturned(item_id=item_id, occurred_at=t0)])


class TestCommit:
    def test_mark_committed_clears_buffer(self, fresh, item_id, t0, price):
        item = fresh.buy(item_id, t0, 24, price)

        committed = item.mark_events_committed()

        assert committed.get_uncommitted_events() == []
        assert committed.state == ShopItemState.BOUGHT
        assert committed.uuid == item_id
        assert len(item.get_uncommitted_events()) == 1

    def test_uncommitted_events_is_a_copy(self, fresh, item_id, t0, price):
        item = fresh.buy(item_id, t0, 24, price)

        item.get_uncommitted_events().clear()

        assert len(item.get_uncommitted_events()) == 1

    def test_item_is_immutable(self, fresh):
        with pytest.raises(FrozenInstanceError):
            fresh.state = ShopItemState.PAID


class TestScenarios:
    def test_buy_then_pay(self, fresh, item_id, t0, price):
        item = fresh.buy(item_id, t0, 24, price).pay(t0 + timedelta(hours=1))

        assert item.state == ShopItemState.PAID
        assert [type(e) for e in item.get_uncommitted_events()] == [ItemBought, ItemPaid]

    def test_buy_timeout_then_late_pay(self, fresh, item_id, t0, price):
        timed_out = fresh.buy(item_id, t0, 24, price).mark_timeout(t0 + timedelta(hours=25))

        assert timed_out.state == ShopItemState.PAYMENT_MISSING
        assert [type(e) for e in timed_out.get_uncommitted_events()] == [
            ItemBought,
            ItemPaymentTimeout,
        ]

        late = timed_out.pay(t0 + timedelta(hours=26))

        assert late.state == ShopItemState.PAID
        assert [type(e) for e in late.get_uncommitted_events()] == [
            ItemBought,
            ItemPaymentTimeout,
            ItemPaid,
        ]
