"""Payment request — command and handler.

Creates a PENDING payment for the order's current total and registers it
with the gateway. A refusal from the gateway leaves nothing behind.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.exceptions import InvalidOrderState, OrderAlreadyPaid, PaymentRequestFailed
from ordering.gateway import get_gateway
from ordering.gateway.port import PaymentCommand
from ordering.order.order import Order, OrderStatus, PaymentMethod
from ordering.payment.payment import Payment


@ordering.command(part_of="Payment")
class RequestPayment:
    order_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)


@ordering.command_handler(part_of=Payment)
class RequestPaymentHandler:
    @handle(RequestPayment)
    def request_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if OrderStatus(order.status) != OrderStatus.PENDING_PAYMENT:
            raise OrderAlreadyPaid(f"Order {order.order_number} is in {order.status} status")
        if not order.active_items:
            raise InvalidOrderState(f"Order {order.order_number} has no active items to pay for")

        payment = Payment.create(
            order_id=order.id,
            method=command.method,
            amount=order.total_amount,
        )

        result = get_gateway().request_payment(
            PaymentCommand(
                transaction_id=payment.transaction_id,
                order_number=order.order_number,
                amount=payment.amount,
                method=payment.method,
            )
        )
        if not result.success:
            logger.warning(
                "payment_request_refused",
                order_id=str(order.id),
                transaction_id=payment.transaction_id,
                reason=result.fail_reason,
            )
            raise PaymentRequestFailed(reason=result.fail_reason)

        current_domain.repository_for(Payment).add(payment)

        logger.info(
            "payment_requested",
            order_id=str(order.id),
            transaction_id=payment.transaction_id,
            amount=payment.amount,
        )
        return str(payment.id)
