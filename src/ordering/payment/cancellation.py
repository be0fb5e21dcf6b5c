"""Payment cancellation — command and handler.

Refunds a COMPLETED payment through the gateway. Only the member who owns
the order, or an admin, may cancel it. A refused refund changes nothing.
"""

from protean import handle
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.exceptions import AuthorizationError, PaymentCannotCancel, RefundFailed
from ordering.gateway import get_gateway
from ordering.order.order import Order
from ordering.payment.payment import Payment


@ordering.command(part_of="Payment")
class CancelPayment:
    payment_id = Identifier(required=True)
    member_id = Identifier(required=True)
    is_admin = Boolean(default=False)


def refund(payment):
    """Refund ``payment`` at the gateway and mark it CANCELLED.

    Raises RefundFailed without touching the payment when the gateway refuses.
    """
    if not payment.is_completed:
        raise PaymentCannotCancel(f"Payment in {payment.status} status cannot be cancelled")

    result = get_gateway().cancel_payment(payment.pg_transaction_id, payment.amount)
    if not result.success:
        logger.warning("refund_refused", transaction_id=payment.transaction_id, reason=result.fail_reason)
        raise RefundFailed(reason=result.fail_reason)

    payment.cancel()
    logger.info("payment_refunded", transaction_id=payment.transaction_id, amount=payment.amount)


@ordering.command_handler(part_of=Payment)
class CancelPaymentHandler:
    @handle(CancelPayment)
    def cancel_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        if not command.is_admin:
            order = current_domain.repository_for(Order).get(payment.order_id)
            if not order.is_owned_by(command.member_id):
                raise AuthorizationError("Not authorized to cancel this payment")

        refund(payment)
        repo.add(payment)
        return str(payment.id)
