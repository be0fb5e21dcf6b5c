"""Payment confirmation — command and handler.

Invoked by the gateway callback (or a poller) with the transaction id and the
amount the member authorized. A declined confirmation is a normal outcome:
the payment is recorded as FAILED and committed, and the order stays in
PENDING_PAYMENT so the member can try again.
"""

from protean import handle
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.exceptions import InvalidOrderState, OrderAlreadyPaid
from ordering.gateway import get_gateway
from ordering.order.order import Order, OrderStatus
from ordering.payment.payment import Payment


@ordering.command(part_of="Payment")
class ConfirmPayment:
    transaction_id = String(required=True, max_length=100)
    amount = Integer(required=True)


@ordering.command_handler(part_of=Payment)
class ConfirmPaymentHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        payment_repo = current_domain.repository_for(Payment)
        payment = payment_repo.get_by_transaction_id(command.transaction_id)
        payment.verify_confirmable(command.amount)

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(payment.order_id)
        if OrderStatus(order.status) == OrderStatus.CANCELLED:
            raise InvalidOrderState(f"Order {order.order_number} was cancelled")
        # A second payment must not complete once the order has been paid
        if OrderStatus(order.status) != OrderStatus.PENDING_PAYMENT:
            raise OrderAlreadyPaid(f"Order {order.order_number} is in {order.status} status")

        result = get_gateway().confirm_payment(payment.transaction_id, command.amount)

        if result.success:
            payment.complete(result.pg_transaction_id)
            order.mark_as_paid(payment.method, payment.transaction_id)
            order_repo.add(order)
            logger.info(
                "payment_confirmed",
                transaction_id=payment.transaction_id,
                pg_transaction_id=result.pg_transaction_id,
                order_id=str(order.id),
            )
        else:
            payment.fail(result.fail_reason)
            logger.warning(
                "payment_failed",
                transaction_id=payment.transaction_id,
                reason=result.fail_reason,
                order_id=str(order.id),
            )

        payment_repo.add(payment)
        return str(payment.id)
