"""Order placement — command and handler.

Placing an order reserves stock for every line and redeems the member's
coupon in the same unit of work as the order itself. Every aggregate is
loaded and changed in memory first and only handed to its repository once
all reservations have succeeded, so a failure anywhere leaves nothing behind.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon
from ordering.coupon.member_coupon import MemberCoupon
from ordering.domain import logger, ordering
from ordering.exceptions import AuthorizationError
from ordering.order.order import Order
from ordering.stock.stock import StockItem, stock_key


@ordering.command(part_of="Order")
class PlaceOrder:
    """Place an order for a member.

    ``items`` is a JSON list of {product_id, product_option_id, product_name,
    option_name, unit_price, quantity}; ``shipping_address`` is a JSON object
    with the ShippingAddress fields.
    """

    member_id = Identifier(required=True)
    shipping_address = Text(required=True)
    items = Text(required=True)
    shipping_fee = Integer(default=0)
    discount_amount = Integer(default=0)
    member_coupon_id = Identifier()


_REQUIRED_ITEM_FIELDS = ("product_id", "product_name", "unit_price", "quantity")


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


def _check_item(position, data):
    if not isinstance(data, dict):
        raise ValidationError({"items": [f"Item {position} must be an object"]})
    missing = [field for field in _REQUIRED_ITEM_FIELDS if data.get(field) is None]
    if missing:
        raise ValidationError({"items": [f"Item {position} is missing {', '.join(missing)}"]})


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.create(
            member_id=command.member_id,
            shipping_address=_loads(command.shipping_address),
            shipping_fee=command.shipping_fee or 0,
            discount_amount=command.discount_amount or 0,
        )
        for position, data in enumerate(_loads(command.items) or [], start=1):
            _check_item(position, data)
            order.add_item(
                product_id=data["product_id"],
                product_option_id=data.get("product_option_id"),
                product_name=data["product_name"],
                option_name=data.get("option_name"),
                unit_price=data["unit_price"],
                quantity=data["quantity"],
            )

        redeemed = None
        if command.member_coupon_id:
            redeemed = self._redeem_coupon(order, command.member_id, command.member_coupon_id)

        order.place()
        stock_items = self._reserve_stock(order)

        # Everything checked out; hand the changes to the unit of work.
        stock_repo = current_domain.repository_for(StockItem)
        for stock_item in stock_items:
            stock_repo.add(stock_item)
        if redeemed:
            member_coupon, coupon = redeemed
            current_domain.repository_for(Coupon).add(coupon)
            current_domain.repository_for(MemberCoupon).add(member_coupon)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            member_id=str(order.member_id),
            total_amount=order.total_amount,
        )
        return str(order.id)

    def _redeem_coupon(self, order, member_id, member_coupon_id):
        member_coupon = current_domain.repository_for(MemberCoupon).get(member_coupon_id)
        if str(member_coupon.member_id) != str(member_id):
            raise AuthorizationError("Member coupon belongs to another member")

        coupon = current_domain.repository_for(Coupon).get(member_coupon.coupon_id)

        # Decide applicability before redeeming: redemption may use up the last unit
        applicable = coupon.is_applicable(order.subtotal)
        discount = coupon.calculate_discount(order.subtotal)

        member_coupon.use(coupon, order.id)
        if not applicable:
            raise ValidationError({"member_coupon_id": ["Order amount does not meet the coupon minimum"]})

        order.apply_discount(discount, member_coupon_id=member_coupon.id)
        return member_coupon, coupon

    def _reserve_stock(self, order):
        """Decrease stock for every line, loading each ledger entry once."""
        repo = current_domain.repository_for(StockItem)
        loaded = {}
        for item in order.active_items:
            key = stock_key(item.product_id, item.product_option_id)
            if key not in loaded:
                loaded[key] = repo.get_for(item.product_id, item.product_option_id)
            loaded[key].decrease_stock(item.quantity)
        return list(loaded.values())
