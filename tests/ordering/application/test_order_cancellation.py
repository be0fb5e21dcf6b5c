"""Application tests for cancelling orders and single order items."""

import pytest
from ordering.coupon.coupon import Coupon
from ordering.coupon.member_coupon import MemberCoupon
from ordering.exceptions import AuthorizationError, InvalidOrderState, PaymentAlreadyProcessed, RefundFailed
from ordering.order.order import Order, OrderItemStatus, OrderStatus
from ordering.payment.payment import Payment, PaymentStatus
from ordering.workflow import service
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


def _pay(order):
    payment = service.request_payment(order.id, "CREDIT_CARD")
    return service.confirm_payment(payment.transaction_id, payment.amount)


class TestCancelOrder:
    def test_cancel_restores_stock(self, place):
        order = place()
        service.cancel_order(order.id, "mem-001", "Changed my mind")

        assert service.current_stock("prod-shirt", "opt-m") == 10
        assert service.current_stock("prod-socks", "opt-black") == 10

    def test_cancel_updates_order(self, place):
        order = place()
        cancelled = service.cancel_order(order.id, "mem-001", "Changed my mind")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancel_reason == "Changed my mind"
        assert cancelled.cancelled_at is not None

    def test_cancel_restores_coupon(self, place, coupon_factory):
        coupon = coupon_factory()
        member_coupon = service.issue_coupon(coupon.id, "mem-001")
        order = place(member_coupon_id=member_coupon.id)

        service.cancel_order(order.id, "mem-001", "Changed my mind")

        stored = current_domain.repository_for(MemberCoupon).get(member_coupon.id)
        assert stored.used is False
        assert stored.order_id is None
        assert current_domain.repository_for(Coupon).get(coupon.id).used_quantity == 0

    def test_restored_coupon_can_be_reused(self, place, coupon_factory):
        coupon = coupon_factory()
        member_coupon = service.issue_coupon(coupon.id, "mem-001")
        order = place(member_coupon_id=member_coupon.id)
        service.cancel_order(order.id, "mem-001", "Changed my mind")

        second = place(member_coupon_id=member_coupon.id)
        assert second.discount_amount == 2000

    def test_cancel_paid_order_refunds_payment(self, place, fake_gateway):
        order = place()
        payment = _pay(order)

        service.cancel_order(order.id, "mem-001", "Found it cheaper")

        stored = current_domain.repository_for(Payment).get(payment.id)
        assert stored.status == PaymentStatus.CANCELLED.value
        assert any(c["method"] == "cancel_payment" for c in fake_gateway.calls)

    def test_refused_refund_aborts_cancellation(self, place, fake_gateway):
        order = place()
        payment = _pay(order)
        fake_gateway.configure(refunds_succeed=False, refund_failure_reason="Settlement closed")

        with pytest.raises(RefundFailed) as exc_info:
            service.cancel_order(order.id, "mem-001", "Found it cheaper")

        assert exc_info.value.reason == "Settlement closed"
        assert current_domain.repository_for(Order).get(order.id).status == OrderStatus.PAID.value
        assert current_domain.repository_for(Payment).get(payment.id).status == PaymentStatus.COMPLETED.value
        assert service.current_stock("prod-shirt", "opt-m") == 8

    def test_other_member_cannot_cancel(self, place):
        order = place()
        with pytest.raises(AuthorizationError):
            service.cancel_order(order.id, "mem-999", "Not mine")
        assert service.current_stock("prod-shirt", "opt-m") == 8

    def test_cannot_cancel_shipped_order(self, place):
        order = place()
        _pay(order)
        service.start_preparing(order.id)
        service.ship_order(order.id, "TRACK-001")

        with pytest.raises(InvalidOrderState):
            service.cancel_order(order.id, "mem-001", "Too late")
        assert service.current_stock("prod-shirt", "opt-m") == 8

    def test_cancel_after_item_cancel_restores_remaining_stock_only(self, place):
        order = place()
        shirt = next(i for i in order.items if str(i.product_id) == "prod-shirt")
        service.cancel_order_item(order.id, shirt.id, "mem-001")

        service.cancel_order(order.id, "mem-001", "Changed my mind")

        assert service.current_stock("prod-shirt", "opt-m") == 10
        assert service.current_stock("prod-socks", "opt-black") == 10


class TestCancelOrderItem:
    def test_cancel_item(self, place):
        order = place()
        socks = next(i for i in order.items if str(i.product_id) == "prod-socks")

        updated = service.cancel_order_item(order.id, socks.id, "mem-001", "Wrong colour")

        item = next(i for i in updated.items if str(i.id) == str(socks.id))
        assert item.status == OrderItemStatus.CANCELLED.value
        assert updated.status == OrderStatus.PENDING_PAYMENT.value
        assert updated.total_amount == 22000
        assert service.current_stock("prod-socks", "opt-black") == 10
        assert service.current_stock("prod-shirt", "opt-m") == 8

    def test_cancel_item_keeps_coupon(self, place, coupon_factory):
        coupon = coupon_factory()
        member_coupon = service.issue_coupon(coupon.id, "mem-001")
        order = place(member_coupon_id=member_coupon.id)

        service.cancel_order_item(order.id, order.items[0].id, "mem-001")

        assert current_domain.repository_for(MemberCoupon).get(member_coupon.id).used is True

    def test_cancel_item_twice(self, place):
        order = place()
        item_id = next(i.id for i in order.items if str(i.product_id) == "prod-shirt")
        service.cancel_order_item(order.id, item_id, "mem-001")

        with pytest.raises(InvalidOrderState):
            service.cancel_order_item(order.id, item_id, "mem-001")
        assert service.current_stock("prod-shirt", "opt-m") == 10

    def test_unknown_item(self, place):
        order = place()
        with pytest.raises(ObjectNotFoundError):
            service.cancel_order_item(order.id, "no-such-item", "mem-001")

    def test_other_member_cannot_cancel_item(self, place):
        order = place()
        with pytest.raises(AuthorizationError):
            service.cancel_order_item(order.id, order.items[0].id, "mem-999")

    def test_cancel_item_rejected_when_discount_exceeds_remaining_total(self, place):
        order = place(shipping_fee=0, discount_amount=1000)
        shirt = next(i for i in order.items if str(i.product_id) == "prod-shirt")
        socks = next(i for i in order.items if str(i.product_id) == "prod-socks")
        service.cancel_order_item(order.id, shirt.id, "mem-001")

        with pytest.raises(InvalidOrderState):
            service.cancel_order_item(order.id, socks.id, "mem-001")

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.total_amount == 14000
        assert service.current_stock("prod-socks", "opt-black") == 7

    def test_order_with_every_item_cancelled_cannot_be_paid(self, place):
        order = place()
        for item in order.items:
            service.cancel_order_item(order.id, item.id, "mem-001")

        with pytest.raises(InvalidOrderState):
            service.request_payment(order.id, "CREDIT_CARD")
        assert current_domain.repository_for(Payment).for_order(order.id) == []


class TestCancelOrderWithPendingPayment:
    def test_pending_payment_is_failed(self, place):
        order = place()
        payment = service.request_payment(order.id, "CREDIT_CARD")

        service.cancel_order(order.id, "mem-001", "Changed my mind")

        stored = current_domain.repository_for(Payment).get(payment.id)
        assert stored.status == PaymentStatus.FAILED.value
        assert stored.fail_reason == "Order cancelled"

    def test_late_confirmation_is_rejected(self, place, fake_gateway):
        order = place()
        payment = service.request_payment(order.id, "CREDIT_CARD")
        service.cancel_order(order.id, "mem-001", "Changed my mind")

        with pytest.raises(PaymentAlreadyProcessed):
            service.confirm_payment(payment.transaction_id, payment.amount)
        assert not any(c["method"] == "confirm_payment" for c in fake_gateway.calls)
        assert current_domain.repository_for(Order).get(order.id).status == OrderStatus.CANCELLED.value
