"""Shared BDD fixtures for the ordering domain."""

import pytest
from ordering.exceptions import InvalidStateError
from ordering.order.order import Order
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured state errors."""
    return {"exc": None}


@given(parsers.cfparse("a placed order with a total of {total:d}"), target_fixture="order")
def placed_order(total):
    order = Order.create(
        member_id="mem-001",
        shipping_address={
            "recipient_name": "Kim Minsu",
            "recipient_phone": "010-1234-5678",
            "zip_code": "06236",
            "address": "123 Teheran-ro, Gangnam-gu",
        },
        shipping_fee=3000,
        discount_amount=1000,
    )
    order.add_item("prod-001", "Linen Shirt", 10000, 2)
    order.add_item("prod-002", "Cotton Socks", 5000, 3)
    order.place()
    assert order.total_amount == total
    order._events.clear()
    return order


@then("the transition is rejected")
def transition_rejected(error):
    assert isinstance(error["exc"], InvalidStateError)
