"""Application tests for the seller-side transitions."""

import pytest
from ordering.exceptions import InvalidOrderState
from ordering.order.fulfillment import ShipOrder
from ordering.order.order import OrderStatus
from ordering.workflow import service
from protean import current_domain
from protean.exceptions import ValidationError


def _paid_order(place):
    order = place()
    payment = service.request_payment(order.id, "BANK_TRANSFER")
    service.confirm_payment(payment.transaction_id, payment.amount)
    return order


class TestFulfillment:
    def test_full_lifecycle(self, place):
        order = _paid_order(place)

        assert service.start_preparing(order.id).status == OrderStatus.PREPARING.value
        shipped = service.ship_order(order.id, "TRACK-001")
        assert shipped.status == OrderStatus.SHIPPED.value
        assert shipped.tracking_number == "TRACK-001"
        delivered = service.deliver_order(order.id)
        assert delivered.status == OrderStatus.DELIVERED.value
        assert delivered.paid_at is not None
        assert delivered.shipped_at is not None
        assert delivered.delivered_at is not None

    def test_cannot_prepare_unpaid_order(self, place):
        order = place()
        with pytest.raises(InvalidOrderState):
            service.start_preparing(order.id)

    def test_cannot_ship_unpaid_order(self, place):
        order = place()
        with pytest.raises(InvalidOrderState):
            service.ship_order(order.id, "TRACK-001")

    def test_ship_requires_tracking_number(self, place):
        order = _paid_order(place)
        service.start_preparing(order.id)
        with pytest.raises(ValidationError):
            current_domain.process(ShipOrder(order_id=order.id, tracking_number="  "), asynchronous=False)
        assert service.get_order(order.id, "mem-001").status == OrderStatus.PREPARING.value
