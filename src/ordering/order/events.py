"""Domain events for the Order aggregate.

Events are immutable facts raised by the state machine. They are stored in
the event store alongside the aggregate change that produced them.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A member placed an order; its stock is already reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    member_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Integer(required=True)
    shipping_fee = Integer()
    discount_amount = Integer()
    total_amount = Integer(required=True)
    member_coupon_id = Identifier()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """Payment for the order was confirmed by the gateway."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_method = String(required=True)
    transaction_id = String(required=True)
    amount = Integer(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPreparing:
    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before it was prepared."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderItemCancelled:
    """A single line was cancelled; the order itself stays in its status."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_option_id = Identifier()
    quantity = Integer(required=True)
    new_total_amount = Integer(required=True)
