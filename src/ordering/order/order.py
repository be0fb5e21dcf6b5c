"""Order aggregate (CQRS) — the core of the ordering domain.

An order is placed in PENDING_PAYMENT with its stock already reserved, then
moves forward one step at a time:

    PENDING_PAYMENT → PAID → PREPARING → SHIPPED → DELIVERED
    PENDING_PAYMENT | PAID → CANCELLED

Each transition stamps its own timestamp exactly once and raises a domain
event. The aggregate never calls other aggregates; stock, coupons and
payments are coordinated by the command handlers around it.

Amounts are integers in the currency's smallest unit.
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.exceptions import InvalidOrderState
from ordering.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderItemCancelled,
    OrderPaid,
    OrderPlaced,
    OrderPreparing,
    OrderShipped,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    PREPARING = "PREPARING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class OrderItemStatus(Enum):
    ORDERED = "ORDERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(Enum):
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    VIRTUAL_ACCOUNT = "VIRTUAL_ACCOUNT"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_COMPLETED_STATES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

_ZIP_CODE = re.compile(r"^\d{5}$")
_PHONE = re.compile(r"^01[016789]-\d{3,4}-\d{4}$")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order goes, captured when it is placed.

    Immutable once recorded: later changes to the member's address book do
    not touch existing orders.
    """

    recipient_name = String(required=True, max_length=50)
    recipient_phone = String(required=True, max_length=20)
    zip_code = String(required=True, max_length=5)
    address = String(required=True, max_length=200)
    address_detail = String(max_length=200)

    @invariant.post
    def zip_code_must_be_five_digits(self):
        if self.zip_code is not None and not _ZIP_CODE.match(self.zip_code):
            raise ValidationError({"zip_code": ["Zip code must be exactly 5 digits"]})

    @invariant.post
    def phone_must_be_mobile_number(self):
        if self.recipient_phone is not None and not _PHONE.match(self.recipient_phone):
            raise ValidationError({"recipient_phone": [f"Invalid phone number: {self.recipient_phone!r}"]})

    @property
    def full_address(self):
        text = f"({self.zip_code}) {self.address}"
        if self.address_detail:
            text += f" {self.address_detail}"
        return text


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line of an order.

    Product and option names are snapshots taken at placement so that the
    order reads the same after the catalogue changes.
    """

    product_id = Identifier(required=True)
    product_option_id = Identifier()
    product_name = String(required=True, max_length=200)
    option_name = String(max_length=100)
    unit_price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    status = String(
        choices=OrderItemStatus,
        default=OrderItemStatus.ORDERED.value,
    )

    @property
    def subtotal(self):
        return self.unit_price * self.quantity

    @property
    def is_cancelled(self):
        return self.status == OrderItemStatus.CANCELLED.value


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    member_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING_PAYMENT.value,
    )
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(choices=PaymentMethod)
    payment_transaction_id = String(max_length=50)
    shipping_fee = Integer(default=0, min_value=0)
    discount_amount = Integer(default=0, min_value=0)
    member_coupon_id = Identifier()
    tracking_number = String(max_length=100)
    cancel_reason = String(max_length=500)
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, member_id, shipping_address, shipping_fee=0, discount_amount=0):
        """Start a new order in PENDING_PAYMENT with no items.

        Args:
            member_id: The member placing the order.
            shipping_address: ShippingAddress or dict with recipient_name,
                recipient_phone, zip_code, address and address_detail.
            shipping_fee: Delivery charge, >= 0.
            discount_amount: Discount on the whole order, >= 0.
        """
        if isinstance(shipping_address, dict):
            shipping_address = ShippingAddress(**shipping_address)

        now = datetime.now(UTC)
        return cls(
            order_number=generate_order_number(),
            member_id=member_id,
            status=OrderStatus.PENDING_PAYMENT.value,
            shipping_address=shipping_address,
            shipping_fee=shipping_fee or 0,
            discount_amount=discount_amount or 0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Totals (always derived from the items)
    # -------------------------------------------------------------------
    @property
    def active_items(self):
        return [item for item in self.items if not item.is_cancelled]

    @property
    def subtotal(self):
        return sum(item.subtotal for item in self.active_items)

    @property
    def total_amount(self):
        return self.subtotal + (self.shipping_fee or 0) - (self.discount_amount or 0)

    @property
    def is_completed(self):
        return OrderStatus(self.status) in _COMPLETED_STATES

    @property
    def is_cancellable(self):
        return OrderStatus.CANCELLED in _VALID_TRANSITIONS[OrderStatus(self.status)]

    def is_owned_by(self, member_id):
        return str(self.member_id) == str(member_id)

    # -------------------------------------------------------------------
    # Building the order
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        product_name,
        unit_price,
        quantity,
        product_option_id=None,
        option_name=None,
    ):
        """Append an ORDERED line and return it."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Price cannot be negative"]})

        item = OrderItem(
            product_id=product_id,
            product_option_id=product_option_id,
            product_name=product_name,
            option_name=option_name,
            unit_price=unit_price,
            quantity=quantity,
            status=OrderItemStatus.ORDERED.value,
        )
        self.add_items(item)
        return item

    def apply_discount(self, amount, member_coupon_id=None):
        """Add ``amount`` to the order discount, remembering the coupon used."""
        if amount < 0:
            raise ValidationError({"discount_amount": ["Discount cannot be negative"]})
        self.discount_amount = (self.discount_amount or 0) + amount
        if member_coupon_id is not None:
            self.member_coupon_id = member_coupon_id

    def validate_for_placement(self):
        if not self.items:
            raise ValidationError({"items": ["Order must have at least one item"]})
        if self.total_amount < 0:
            raise ValidationError({"total_amount": ["Order total cannot be negative"]})

    def place(self):
        """Validate the order and announce it. Stock is reserved by the caller."""
        self.validate_for_placement()
        self.raise_(
            OrderPlaced(
                order_id=str(self.id),
                order_number=self.order_number,
                member_id=str(self.member_id),
                items=json.dumps(
                    [
                        {
                            "item_id": str(item.id),
                            "product_id": str(item.product_id),
                            "product_option_id": _str_or_none(item.product_option_id),
                            "unit_price": item.unit_price,
                            "quantity": item.quantity,
                        }
                        for item in self.items
                    ]
                ),
                subtotal=self.subtotal,
                shipping_fee=self.shipping_fee,
                discount_amount=self.discount_amount,
                total_amount=self.total_amount,
                member_coupon_id=_str_or_none(self.member_coupon_id),
                placed_at=self.created_at,
            )
        )

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError(f"Order item {item_id} not found in order {self.order_number}")
        return item

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidOrderState(f"Cannot transition from {current.value} to {target_status.value}")

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def mark_as_paid(self, payment_method, transaction_id):
        self._assert_can_transition(OrderStatus.PAID)
        if not self.active_items:
            raise InvalidOrderState("Cannot pay for an order without active items")

        now = datetime.now(UTC)
        self.status = OrderStatus.PAID.value
        self.payment_method = PaymentMethod(payment_method).value
        self.payment_transaction_id = transaction_id
        self.paid_at = now
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_method=self.payment_method,
                transaction_id=transaction_id,
                amount=self.total_amount,
                paid_at=now,
            )
        )

    def start_preparing(self):
        self._assert_can_transition(OrderStatus.PREPARING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PREPARING.value
        self.updated_at = now

        self.raise_(OrderPreparing(order_id=str(self.id), started_at=now))

    def ship(self, tracking_number):
        self._assert_can_transition(OrderStatus.SHIPPED)
        if not tracking_number or not tracking_number.strip():
            raise ValidationError({"tracking_number": ["Tracking number is required"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = tracking_number
        self.shipped_at = now
        self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    def cancel(self, reason):
        """Cancel the order. Stock, coupon and refund are handled by the caller."""
        if not self.is_cancellable:
            raise InvalidOrderState(f"Order in {self.status} status cannot be cancelled")

        now = datetime.now(UTC)
        for item in self.active_items:
            item.status = OrderItemStatus.CANCELLED.value
        self.status = OrderStatus.CANCELLED.value
        self.cancel_reason = reason
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_at=now,
            )
        )

    def cancel_item(self, item_id):
        """Cancel one line; the order keeps its status and the line leaves the totals."""
        item = self.find_item(item_id)
        if not self.is_cancellable:
            raise InvalidOrderState(f"Items of an order in {self.status} status cannot be cancelled")
        if item.is_cancelled:
            raise InvalidOrderState(f"Order item {item_id} is already cancelled")
        if self.total_amount - item.subtotal < 0:
            raise InvalidOrderState(
                f"Cancelling order item {item_id} would leave a negative total; cancel the whole order instead"
            )

        item.status = OrderItemStatus.CANCELLED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemCancelled(
                order_id=str(self.id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                product_option_id=_str_or_none(item.product_option_id),
                quantity=item.quantity,
                new_total_amount=self.total_amount,
            )
        )
        return item


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number):
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def for_member(self, member_id):
        results = self._dao.query.filter(member_id=str(member_id)).all().items
        return sorted(results, key=lambda o: o.created_at, reverse=True)


def generate_order_number():
    return "ORD-" + uuid4().hex[:8].upper()


def _str_or_none(value):
    return str(value) if value is not None else None
