"""Domain events for the Coupon and MemberCoupon aggregates."""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Coupon")
class CouponCreated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    coupon_type = String(required=True)
    discount_value = Integer(required=True)
    total_quantity = Integer(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponDeactivated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponDeleted:
    __version__ = 1

    coupon_id = Identifier(required=True)
    deleted_at = DateTime(required=True)


@ordering.event(part_of="MemberCoupon")
class CouponIssued:
    """A coupon was handed out to a member."""

    __version__ = 1

    member_coupon_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    member_id = Identifier(required=True)
    issued_at = DateTime(required=True)


@ordering.event(part_of="MemberCoupon")
class CouponRedeemed:
    """A member coupon was used on an order."""

    __version__ = 1

    member_coupon_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    member_id = Identifier(required=True)
    order_id = Identifier(required=True)
    used_at = DateTime(required=True)


@ordering.event(part_of="MemberCoupon")
class CouponRestored:
    """A redeemed member coupon was handed back (order cancelled)."""

    __version__ = 1

    member_coupon_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    member_id = Identifier(required=True)
    order_id = Identifier(required=True)
    restored_at = DateTime(required=True)
