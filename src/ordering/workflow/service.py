"""Order workflow service — the entry points callers use.

Every write goes through ``current_domain.process`` so that Protean runs the
command handler inside its own unit of work. Commands that touch a stock or
coupon counter are processed while holding that counter's lock, which keeps
the lock in place until the unit of work has committed. Writes that change
an order's status or its payments also hold that order's lock.

Reads check ownership: a member sees their own orders and payments, an
admin sees all of them.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon
from ordering.coupon.management import (
    CreateCoupon,
    DeactivateCoupon,
    DeleteCoupon,
    IssueCoupon,
    UpdateCouponValidPeriod,
)
from ordering.coupon.member_coupon import MemberCoupon
from ordering.exceptions import AuthorizationError
from ordering.order.cancellation import CancelOrder, CancelOrderItem
from ordering.order.fulfillment import DeliverOrder, ShipOrder, StartPreparing
from ordering.order.order import Order
from ordering.order.placement import PlaceOrder
from ordering.payment.cancellation import CancelPayment
from ordering.payment.confirmation import ConfirmPayment
from ordering.payment.payment import Payment
from ordering.payment.request import RequestPayment
from ordering.stock.ledger import DecreaseStock, IncreaseStock, InitializeStock, UpdateStock
from ordering.stock.stock import StockItem, stock_key
from ordering.utils.logging import add_context, clear_context
from ordering.workflow.locks import coupon_key, order_key, stock_locks


def _process(command, keys=()):
    add_context(command=command.__class__.__name__)
    try:
        with stock_locks.hold(keys):
            return current_domain.process(command, asynchronous=False)
    finally:
        clear_context()


def _member_coupon_keys(member_coupon_id):
    if not member_coupon_id:
        return []
    try:
        member_coupon = current_domain.repository_for(MemberCoupon).get(member_coupon_id)
    except ObjectNotFoundError:
        return []  # The handler reports the missing coupon
    return [coupon_key(member_coupon.coupon_id)]


def _check_access(order, member_id, is_admin):
    if not is_admin and not order.is_owned_by(member_id):
        raise AuthorizationError("Not authorized to access this order")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def place_order(member_id, shipping_address, items, shipping_fee=0, discount_amount=0, member_coupon_id=None):
    """Place an order and return it.

    Args:
        member_id: The member placing the order.
        shipping_address: Dict with the ShippingAddress fields.
        items: List of dicts with product_id, product_option_id,
            product_name, option_name, unit_price and quantity.
        shipping_fee: Delivery charge.
        discount_amount: Discount on top of any coupon discount.
        member_coupon_id: Coupon of the member to redeem on this order.
    """
    # Malformed items are rejected by the handler; they need no lock
    keys = [
        stock_key(item["product_id"], item.get("product_option_id"))
        for item in items
        if isinstance(item, dict) and item.get("product_id")
    ]
    keys += _member_coupon_keys(member_coupon_id)

    order_id = _process(
        PlaceOrder(
            member_id=member_id,
            shipping_address=json.dumps(shipping_address),
            items=json.dumps(items),
            shipping_fee=shipping_fee,
            discount_amount=discount_amount,
            member_coupon_id=member_coupon_id,
        ),
        keys,
    )
    return current_domain.repository_for(Order).get(order_id)


def cancel_order(order_id, member_id, reason=None):
    order = current_domain.repository_for(Order).get(order_id)
    keys = [stock_key(item.product_id, item.product_option_id) for item in order.active_items]
    keys += _member_coupon_keys(order.member_coupon_id)
    keys.append(order_key(order_id))

    _process(CancelOrder(order_id=order_id, member_id=member_id, reason=reason), keys)
    return current_domain.repository_for(Order).get(order_id)


def cancel_order_item(order_id, item_id, member_id, reason=None):
    order = current_domain.repository_for(Order).get(order_id)
    keys = [
        stock_key(item.product_id, item.product_option_id) for item in order.items if str(item.id) == str(item_id)
    ]
    keys.append(order_key(order_id))

    _process(CancelOrderItem(order_id=order_id, item_id=item_id, member_id=member_id, reason=reason), keys)
    return current_domain.repository_for(Order).get(order_id)


def start_preparing(order_id):
    _process(StartPreparing(order_id=order_id), [order_key(order_id)])
    return current_domain.repository_for(Order).get(order_id)


def ship_order(order_id, tracking_number):
    _process(ShipOrder(order_id=order_id, tracking_number=tracking_number), [order_key(order_id)])
    return current_domain.repository_for(Order).get(order_id)


def deliver_order(order_id):
    _process(DeliverOrder(order_id=order_id), [order_key(order_id)])
    return current_domain.repository_for(Order).get(order_id)


def get_order(order_id, member_id, is_admin=False):
    order = current_domain.repository_for(Order).get(order_id)
    _check_access(order, member_id, is_admin)
    return order


def get_order_by_number(order_number, member_id, is_admin=False):
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise ObjectNotFoundError(f"Order {order_number} does not exist")
    _check_access(order, member_id, is_admin)
    return order


def member_orders(member_id):
    """Orders of a member, newest first."""
    return current_domain.repository_for(Order).for_member(member_id)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
def request_payment(order_id, method):
    payment_id = _process(RequestPayment(order_id=order_id, method=method))
    return current_domain.repository_for(Payment).get(payment_id)


def confirm_payment(transaction_id, amount):
    """Confirm a payment; returns the payment, COMPLETED or FAILED."""
    payment = current_domain.repository_for(Payment).get_by_transaction_id(transaction_id)

    # Serialize confirmations per order so only one payment can complete
    payment_id = _process(
        ConfirmPayment(transaction_id=transaction_id, amount=amount),
        [order_key(payment.order_id)],
    )
    return current_domain.repository_for(Payment).get(payment_id)


def cancel_payment(payment_id, member_id, is_admin=False):
    payment = current_domain.repository_for(Payment).get(payment_id)
    _process(
        CancelPayment(payment_id=payment_id, member_id=member_id, is_admin=is_admin),
        [order_key(payment.order_id)],
    )
    return current_domain.repository_for(Payment).get(payment_id)


def get_payment(payment_id, member_id, is_admin=False):
    payment = current_domain.repository_for(Payment).get(payment_id)
    if not is_admin:
        _check_access(current_domain.repository_for(Order).get(payment.order_id), member_id, is_admin)
    return payment


def payments_for_order(order_id, member_id, is_admin=False):
    """Payments of an order, newest first."""
    order = current_domain.repository_for(Order).get(order_id)
    _check_access(order, member_id, is_admin)
    return current_domain.repository_for(Payment).for_order(order_id)


# ---------------------------------------------------------------------------
# Stock ledger
# ---------------------------------------------------------------------------
def initialize_stock(product_id, option_id=None, stock=0):
    stock_item_id = _process(
        InitializeStock(product_id=product_id, option_id=option_id, stock=stock),
        [stock_key(product_id, option_id)],
    )
    return current_domain.repository_for(StockItem).get(stock_item_id)


def decrease_stock(product_id, option_id, quantity):
    """Returns the stock left after the decrease."""
    return _process(
        DecreaseStock(product_id=product_id, option_id=option_id, quantity=quantity),
        [stock_key(product_id, option_id)],
    )


def increase_stock(product_id, option_id, quantity):
    return _process(
        IncreaseStock(product_id=product_id, option_id=option_id, quantity=quantity),
        [stock_key(product_id, option_id)],
    )


def update_stock(product_id, option_id, stock):
    return _process(
        UpdateStock(product_id=product_id, option_id=option_id, stock=stock),
        [stock_key(product_id, option_id)],
    )


def current_stock(product_id, option_id=None):
    return current_domain.repository_for(StockItem).get_for(product_id, option_id).stock


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
def create_coupon(**fields):
    """Create a coupon from CreateCoupon fields and return it."""
    coupon_id = _process(CreateCoupon(**fields))
    return current_domain.repository_for(Coupon).get(coupon_id)


def issue_coupon(coupon_id, member_id):
    member_coupon_id = _process(
        IssueCoupon(coupon_id=coupon_id, member_id=member_id),
        [coupon_key(coupon_id)],
    )
    return current_domain.repository_for(MemberCoupon).get(member_coupon_id)


def deactivate_coupon(coupon_id):
    _process(DeactivateCoupon(coupon_id=coupon_id), [coupon_key(coupon_id)])


def update_coupon_valid_period(coupon_id, valid_from, valid_to):
    _process(
        UpdateCouponValidPeriod(coupon_id=coupon_id, valid_from=valid_from, valid_to=valid_to),
        [coupon_key(coupon_id)],
    )
    return current_domain.repository_for(Coupon).get(coupon_id)


def delete_coupon(coupon_id):
    _process(DeleteCoupon(coupon_id=coupon_id), [coupon_key(coupon_id)])


def preview_discount(coupon_id, order_amount):
    """Discount ``coupon_id`` would give on ``order_amount`` right now."""
    coupon = current_domain.repository_for(Coupon).get_active(coupon_id)
    return coupon.calculate_discount(order_amount)
