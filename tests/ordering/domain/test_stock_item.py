"""Tests for the StockItem ledger entry."""

import pytest
from ordering.exceptions import InsufficientStock
from ordering.stock.events import StockDecreased, StockIncreased, StockInitialized, StockUpdated
from ordering.stock.stock import StockItem, stock_key
from protean.exceptions import ValidationError


def _make_item(stock=10, option_id="opt-001"):
    item = StockItem.register(product_id="prod-001", option_id=option_id, stock=stock)
    item._events.clear()
    return item


class TestRegister:
    def test_register(self):
        item = StockItem.register(product_id="prod-001", option_id="opt-001", stock=5)
        assert item.stock == 5
        assert any(isinstance(e, StockInitialized) for e in item._events)

    def test_register_product_level_stock(self):
        item = StockItem.register(product_id="prod-001", stock=5)
        assert item.option_id is None
        assert item.key == ("stock", "prod-001", "-")

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            StockItem.register(product_id="prod-001", stock=-1)


class TestDecreaseStock:
    def test_decrease(self):
        item = _make_item(stock=10)
        item.decrease_stock(3)
        assert item.stock == 7

    def test_decrease_raises_event(self):
        item = _make_item(stock=10)
        item.decrease_stock(3)
        event = next(e for e in item._events if isinstance(e, StockDecreased))
        assert event.previous_stock == 10
        assert event.new_stock == 7

    def test_decrease_to_zero(self):
        item = _make_item(stock=1)
        item.decrease_stock(1)
        assert item.stock == 0
        assert not item.is_in_stock()

    def test_insufficient_stock(self):
        item = _make_item(stock=2)
        with pytest.raises(InsufficientStock):
            item.decrease_stock(3)
        assert item.stock == 2

    def test_quantity_must_be_positive(self):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.decrease_stock(0)


class TestIncreaseStock:
    def test_increase(self):
        item = _make_item(stock=10)
        item.increase_stock(5)
        assert item.stock == 15
        assert any(isinstance(e, StockIncreased) for e in item._events)

    def test_round_trip_restores_stock(self):
        item = _make_item(stock=10)
        item.decrease_stock(4)
        item.increase_stock(4)
        assert item.stock == 10

    def test_quantity_must_be_positive(self):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.increase_stock(-2)


class TestUpdateStock:
    def test_update(self):
        item = _make_item(stock=10)
        item.update_stock(42)
        assert item.stock == 42
        event = next(e for e in item._events if isinstance(e, StockUpdated))
        assert event.previous_stock == 10

    def test_update_to_negative_rejected(self):
        item = _make_item(stock=10)
        with pytest.raises(ValidationError):
            item.update_stock(-1)


class TestStockKey:
    def test_option_key(self):
        assert stock_key("prod-001", "opt-001") == ("stock", "prod-001", "opt-001")

    def test_keys_sort_consistently(self):
        keys = [stock_key("prod-002"), stock_key("prod-001", "opt-002"), stock_key("prod-001", "opt-001")]
        assert sorted(keys)[0] == ("stock", "prod-001", "opt-001")
