"""MemberCoupon aggregate (CQRS) — a coupon issued to one member.

Refers to its Coupon by id only. Redemption and restoration take the loaded
Coupon as an argument so that both counters change in the same unit of work;
``used``, ``used_at`` and ``order_id`` are always set and cleared together.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier

from ordering.coupon.coupon import as_utc
from ordering.coupon.events import CouponIssued, CouponRedeemed, CouponRestored
from ordering.domain import ordering
from ordering.exceptions import CouponAlreadyUsed, CouponExpired


@ordering.aggregate
class MemberCoupon:
    member_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    used = Boolean(default=False)
    used_at = DateTime()
    order_id = Identifier()
    issued_at = DateTime()

    @classmethod
    def issue(cls, member_id, coupon_id):
        now = datetime.now(UTC)
        member_coupon = cls(
            member_id=member_id,
            coupon_id=coupon_id,
            used=False,
            issued_at=now,
        )
        member_coupon.raise_(
            CouponIssued(
                member_coupon_id=str(member_coupon.id),
                coupon_id=str(coupon_id),
                member_id=str(member_id),
                issued_at=now,
            )
        )
        return member_coupon

    def is_available(self, coupon, now=None):
        return not self.used and coupon.is_valid(now)

    def is_expired(self, coupon, now=None):
        now = as_utc(now) or datetime.now(UTC)
        return as_utc(coupon.valid_to) < now

    def use(self, coupon, order_id, now=None):
        """Redeem this coupon on ``order_id`` and count it against the coupon."""
        if self.used:
            raise CouponAlreadyUsed(f"Member coupon {self.id} was already used")
        if not coupon.is_valid(now):
            raise CouponExpired(f"Coupon {coupon.code} is not valid")

        coupon.use()

        used_at = datetime.now(UTC)
        self.used = True
        self.used_at = used_at
        self.order_id = order_id

        self.raise_(
            CouponRedeemed(
                member_coupon_id=str(self.id),
                coupon_id=str(self.coupon_id),
                member_id=str(self.member_id),
                order_id=str(order_id),
                used_at=used_at,
            )
        )

    def restore(self, coupon):
        """Hand the coupon back after the order it was used on is cancelled."""
        if not self.used:
            return

        order_id = self.order_id
        self.used = False
        self.used_at = None
        self.order_id = None
        coupon.restore_quantity()

        self.raise_(
            CouponRestored(
                member_coupon_id=str(self.id),
                coupon_id=str(self.coupon_id),
                member_id=str(self.member_id),
                order_id=str(order_id),
                restored_at=datetime.now(UTC),
            )
        )


@ordering.repository(part_of=MemberCoupon)
class MemberCouponRepository:
    def find_by_order(self, order_id):
        results = self._dao.query.filter(order_id=str(order_id)).all().items
        return results[0] if results else None

    def exists_for(self, member_id, coupon_id):
        results = self._dao.query.filter(member_id=str(member_id), coupon_id=str(coupon_id)).all().items
        return bool(results)

    def for_member(self, member_id):
        return self._dao.query.filter(member_id=str(member_id)).all().items
