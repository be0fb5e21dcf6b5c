"""Coupon management — commands and handlers.

Creating, issuing, rescheduling, deactivating and deleting coupons. Redemption is not
here: it happens as part of order placement.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, CouponType
from ordering.coupon.member_coupon import MemberCoupon
from ordering.domain import logger, ordering
from ordering.exceptions import CouponLimitExceeded


@ordering.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    name = String(required=True, max_length=100)
    coupon_type = String(required=True, choices=CouponType)
    discount_value = Integer(required=True)
    minimum_order = Integer()
    maximum_discount = Integer()
    valid_from = DateTime(required=True)
    valid_to = DateTime(required=True)
    total_quantity = Integer(required=True, min_value=0)


@ordering.command(part_of="Coupon")
class DeactivateCoupon:
    coupon_id = Identifier(required=True)


@ordering.command(part_of="Coupon")
class UpdateCouponValidPeriod:
    coupon_id = Identifier(required=True)
    valid_from = DateTime(required=True)
    valid_to = DateTime(required=True)


@ordering.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)


@ordering.command(part_of="MemberCoupon")
class IssueCoupon:
    """Hand out a coupon to a member. One issue per member per coupon."""

    coupon_id = Identifier(required=True)
    member_id = Identifier(required=True)


@ordering.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon code {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            name=command.name,
            coupon_type=command.coupon_type,
            discount_value=command.discount_value,
            valid_from=command.valid_from,
            valid_to=command.valid_to,
            total_quantity=command.total_quantity,
            minimum_order=command.minimum_order,
            maximum_discount=command.maximum_discount,
        )
        repo.add(coupon)

        logger.info("coupon_created", coupon_id=str(coupon.id), code=coupon.code)
        return str(coupon.id)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get_active(command.coupon_id)
        coupon.deactivate()
        repo.add(coupon)

    @handle(UpdateCouponValidPeriod)
    def update_valid_period(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get_active(command.coupon_id)
        coupon.update_valid_period(command.valid_from, command.valid_to)
        repo.add(coupon)

        logger.info(
            "coupon_rescheduled",
            coupon_id=str(coupon.id),
            valid_from=coupon.valid_from.isoformat(),
            valid_to=coupon.valid_to.isoformat(),
        )

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get_active(command.coupon_id)
        coupon.delete()
        repo.add(coupon)

        logger.info("coupon_deleted", coupon_id=str(coupon.id))


@ordering.command_handler(part_of=MemberCoupon)
class IssueCouponHandler:
    @handle(IssueCoupon)
    def issue_coupon(self, command):
        coupon = current_domain.repository_for(Coupon).get_active(command.coupon_id)
        if not coupon.has_quantity_available():
            raise CouponLimitExceeded(f"Coupon {coupon.code} has no remaining quantity")

        repo = current_domain.repository_for(MemberCoupon)
        if repo.exists_for(command.member_id, command.coupon_id):
            raise ValidationError({"coupon_id": ["Coupon already issued to this member"]})

        member_coupon = MemberCoupon.issue(member_id=command.member_id, coupon_id=command.coupon_id)
        repo.add(member_coupon)

        logger.info(
            "coupon_issued",
            member_coupon_id=str(member_coupon.id),
            coupon_id=str(command.coupon_id),
            member_id=str(command.member_id),
        )
        return str(member_coupon.id)
