"""Order cancellation — commands and handler.

Cancelling an order puts the reserved stock back, hands the redeemed coupon
back to the member, fails payments still awaiting confirmation and refunds a
completed payment, all in the unit of work that cancels the order. A refused
refund aborts the whole cancellation.

Cancelling a single line only puts that line's stock back; the order keeps
its status and its coupon.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon
from ordering.coupon.member_coupon import MemberCoupon
from ordering.domain import logger, ordering
from ordering.exceptions import AuthorizationError
from ordering.order.order import Order
from ordering.payment.cancellation import refund
from ordering.payment.payment import Payment
from ordering.stock.stock import StockItem, stock_key


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    member_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class CancelOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    member_id = Identifier(required=True)
    reason = String(max_length=500)


def _load_owned_order(order_id, member_id):
    order = current_domain.repository_for(Order).get(order_id)
    if not order.is_owned_by(member_id):
        raise AuthorizationError("Not authorized to access this order")
    return order


def _restock(items):
    """Increase stock for ``items``, loading each ledger entry once."""
    repo = current_domain.repository_for(StockItem)
    loaded = {}
    for item in items:
        key = stock_key(item.product_id, item.product_option_id)
        if key not in loaded:
            loaded[key] = repo.get_for(item.product_id, item.product_option_id)
        loaded[key].increase_stock(item.quantity)
    return list(loaded.values())


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = _load_owned_order(command.order_id, command.member_id)

        items_to_restock = order.active_items
        order.cancel(command.reason)
        stock_items = _restock(items_to_restock)

        restored = None
        if order.member_coupon_id:
            member_coupon = current_domain.repository_for(MemberCoupon).get(order.member_coupon_id)
            coupon = current_domain.repository_for(Coupon).get(member_coupon.coupon_id)
            member_coupon.restore(coupon)
            restored = (member_coupon, coupon)

        payment_repo = current_domain.repository_for(Payment)
        pending_payments = payment_repo.pending_for_order(order.id)
        for pending in pending_payments:
            pending.fail("Order cancelled")

        # Refund last: it is the only step with an effect outside this unit of work
        payment = payment_repo.completed_for_order(order.id)
        if payment is not None:
            refund(payment)

        stock_repo = current_domain.repository_for(StockItem)
        for stock_item in stock_items:
            stock_repo.add(stock_item)
        if restored:
            member_coupon, coupon = restored
            current_domain.repository_for(Coupon).add(coupon)
            current_domain.repository_for(MemberCoupon).add(member_coupon)
        for pending in pending_payments:
            payment_repo.add(pending)
        if payment is not None:
            payment_repo.add(payment)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order_cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            refunded=payment is not None,
        )

    @handle(CancelOrderItem)
    def cancel_order_item(self, command):
        order = _load_owned_order(command.order_id, command.member_id)

        item = order.cancel_item(command.item_id)
        stock_repo = current_domain.repository_for(StockItem)
        for stock_item in _restock([item]):
            stock_repo.add(stock_item)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order_item_cancelled",
            order_id=str(order.id),
            item_id=str(item.id),
            reason=command.reason,
        )
