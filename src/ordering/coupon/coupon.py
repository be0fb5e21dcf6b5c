"""Coupon aggregate (CQRS) — discount definition and shared usage counter.

A coupon is either a percentage discount (optionally capped) or a fixed
amount. Its ``used_quantity`` counts redemptions across all members and only
moves through ``use()`` and ``restore_quantity()``; MemberCoupon is the only
caller of either.

Coupons are soft-deleted: ``deleted_at`` marks them and ``is_deleted`` is the
predicate every lookup checks.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Integer, String

from ordering.coupon.events import CouponCreated, CouponDeactivated, CouponDeleted
from ordering.domain import ordering
from ordering.exceptions import CouponLimitExceeded


class CouponType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


@ordering.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    name = String(required=True, max_length=100)
    coupon_type = String(required=True, choices=CouponType)
    discount_value = Integer(required=True)
    minimum_order = Integer(default=0, min_value=0)
    maximum_discount = Integer(min_value=0)  # Percentage coupons only
    valid_from = DateTime(required=True)
    valid_to = DateTime(required=True)
    total_quantity = Integer(required=True, min_value=0)
    used_quantity = Integer(default=0, min_value=0)
    active = Boolean(default=True)
    deleted_at = DateTime()
    created_at = DateTime()

    @invariant.post
    def used_quantity_cannot_exceed_total(self):
        if (self.used_quantity or 0) > (self.total_quantity or 0):
            raise ValidationError({"used_quantity": ["Used quantity cannot exceed total quantity"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        name,
        coupon_type,
        discount_value,
        valid_from,
        valid_to,
        total_quantity,
        minimum_order=None,
        maximum_discount=None,
    ):
        coupon_type = CouponType(coupon_type)
        _validate_discount_value(discount_value, coupon_type)
        valid_from, valid_to = _validate_date_range(valid_from, valid_to)

        now = datetime.now(UTC)
        coupon = cls(
            code=code.upper(),
            name=name,
            coupon_type=coupon_type.value,
            discount_value=discount_value,
            minimum_order=minimum_order or 0,
            maximum_discount=maximum_discount,
            valid_from=valid_from,
            valid_to=valid_to,
            total_quantity=total_quantity,
            used_quantity=0,
            active=True,
            created_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                coupon_type=coupon.coupon_type,
                discount_value=discount_value,
                total_quantity=total_quantity,
                created_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def remaining_quantity(self):
        return self.total_quantity - self.used_quantity

    def has_quantity_available(self):
        return self.used_quantity < self.total_quantity

    def is_valid(self, now=None):
        """Active, not deleted, inside the validity window (both ends exclusive), not exhausted."""
        now = as_utc(now) or datetime.now(UTC)
        return (
            bool(self.active)
            and not self.is_deleted
            and as_utc(self.valid_from) < now < as_utc(self.valid_to)
            and self.has_quantity_available()
        )

    def is_applicable(self, order_amount, now=None):
        return self.is_valid(now) and order_amount >= (self.minimum_order or 0)

    def calculate_discount(self, order_amount, now=None):
        """Discount for ``order_amount``; 0 when the coupon does not apply.

        Percentage discounts truncate toward zero. The result never exceeds
        the order amount.
        """
        if not self.is_applicable(order_amount, now):
            return 0

        if CouponType(self.coupon_type) == CouponType.PERCENTAGE:
            discount = order_amount * self.discount_value // 100
            if self.maximum_discount is not None and discount > self.maximum_discount:
                discount = self.maximum_discount
        else:
            discount = self.discount_value

        return min(discount, order_amount)

    # -------------------------------------------------------------------
    # Usage counter
    # -------------------------------------------------------------------
    def use(self):
        if not self.has_quantity_available():
            raise CouponLimitExceeded(f"Coupon {self.code} has no remaining quantity")
        self.used_quantity += 1

    def restore_quantity(self):
        if self.used_quantity > 0:
            self.used_quantity -= 1

    # -------------------------------------------------------------------
    # Management
    # -------------------------------------------------------------------
    def deactivate(self):
        self.active = False
        self.raise_(CouponDeactivated(coupon_id=str(self.id), deactivated_at=datetime.now(UTC)))

    def delete(self):
        """Soft delete: the coupon stays stored but is no longer usable."""
        now = datetime.now(UTC)
        self.deleted_at = now
        self.active = False
        self.raise_(CouponDeleted(coupon_id=str(self.id), deleted_at=now))

    def update_valid_period(self, valid_from, valid_to):
        valid_from, valid_to = _validate_date_range(valid_from, valid_to)
        self.valid_from = valid_from
        self.valid_to = valid_to


@ordering.repository(part_of=Coupon)
class CouponRepository:
    def get_active(self, coupon_id):
        """Fetch a coupon that has not been soft-deleted."""
        coupon = self.get(coupon_id)
        if coupon.is_deleted:
            raise ObjectNotFoundError(f"Coupon {coupon_id} does not exist")
        return coupon

    def find_by_code(self, code):
        matches = self._dao.query.filter(code=code.upper()).all().items
        return next((c for c in matches if not c.is_deleted), None)


def _validate_discount_value(discount_value, coupon_type):
    if discount_value is None or discount_value <= 0:
        raise ValidationError({"discount_value": ["Discount value must be positive"]})
    if coupon_type == CouponType.PERCENTAGE and discount_value > 100:
        raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100%"]})


def _validate_date_range(valid_from, valid_to):
    if valid_from is None or valid_to is None:
        raise ValidationError({"valid_period": ["Valid from and to dates are required"]})
    valid_from, valid_to = as_utc(valid_from), as_utc(valid_to)
    if valid_to < valid_from:
        raise ValidationError({"valid_period": ["Valid to date must be after valid from date"]})
    return valid_from, valid_to


def as_utc(value):
    """Read a naive datetime as UTC; aware datetimes pass through."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
