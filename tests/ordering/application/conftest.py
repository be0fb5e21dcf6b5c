"""Shared fixtures for ordering application tests."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.coupon.coupon import CouponType
from ordering.workflow import service


@pytest.fixture()
def shipping_address():
    return {
        "recipient_name": "Kim Minsu",
        "recipient_phone": "010-1234-5678",
        "zip_code": "06236",
        "address": "123 Teheran-ro, Gangnam-gu",
        "address_detail": "Apt 501",
    }


@pytest.fixture()
def stocked():
    """Two product options with 10 units each."""
    service.initialize_stock("prod-shirt", "opt-m", 10)
    service.initialize_stock("prod-socks", "opt-black", 10)


@pytest.fixture()
def order_items():
    return [
        {
            "product_id": "prod-shirt",
            "product_option_id": "opt-m",
            "product_name": "Linen Shirt",
            "option_name": "M",
            "unit_price": 10000,
            "quantity": 2,
        },
        {
            "product_id": "prod-socks",
            "product_option_id": "opt-black",
            "product_name": "Cotton Socks",
            "option_name": "Black",
            "unit_price": 5000,
            "quantity": 3,
        },
    ]


@pytest.fixture()
def place(stocked, shipping_address, order_items):
    """Place an order for mem-001 with the default items."""

    def _place(**overrides):
        params = {
            "member_id": "mem-001",
            "shipping_address": shipping_address,
            "items": order_items,
            "shipping_fee": 3000,
            "discount_amount": 1000,
        }
        params.update(overrides)
        return service.place_order(**params)

    return _place


@pytest.fixture()
def coupon_factory():
    def _create(**overrides):
        now = datetime.now(UTC)
        fields = {
            "code": "WELCOME",
            "name": "Welcome coupon",
            "coupon_type": CouponType.FIXED_AMOUNT.value,
            "discount_value": 1000,
            "valid_from": now - timedelta(days=1),
            "valid_to": now + timedelta(days=30),
            "total_quantity": 100,
        }
        fields.update(overrides)
        return service.create_coupon(**fields)

    return _create
