"""Payment aggregate (CQRS) — one attempt to pay for an order.

State Machine:
    PENDING → COMPLETED | FAILED
    COMPLETED → CANCELLED (refund)

An order may collect several payments over time (a failed attempt followed by
a new request), but at most one of them is ever COMPLETED. The amount is a
snapshot of the order total at request time and confirmation must match it
exactly.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.exceptions import PaymentAlreadyProcessed, PaymentAmountMismatch, PaymentCannotCancel
from ordering.order.order import PaymentMethod
from ordering.payment.events import PaymentCancelled, PaymentCompleted, PaymentFailed, PaymentRequested


class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@ordering.aggregate
class Payment:
    order_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    amount = Integer(required=True, min_value=0)
    transaction_id = String(required=True, max_length=100, unique=True)
    pg_transaction_id = String(max_length=100)
    fail_reason = String(max_length=500)
    paid_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()

    @classmethod
    def create(cls, order_id, method, amount):
        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            method=PaymentMethod(method).value,
            status=PaymentStatus.PENDING.value,
            amount=amount,
            transaction_id=generate_transaction_id(),
            created_at=now,
        )
        payment.raise_(
            PaymentRequested(
                payment_id=str(payment.id),
                order_id=str(order_id),
                transaction_id=payment.transaction_id,
                method=payment.method,
                amount=amount,
                requested_at=now,
            )
        )
        return payment

    @property
    def is_pending(self):
        return self.status == PaymentStatus.PENDING.value

    @property
    def is_completed(self):
        return self.status == PaymentStatus.COMPLETED.value

    def verify_confirmable(self, amount):
        """Raise unless this payment can be confirmed for ``amount``."""
        if not self.is_pending:
            raise PaymentAlreadyProcessed(f"Payment {self.transaction_id} is already {self.status}")
        if amount != self.amount:
            raise PaymentAmountMismatch(
                f"Payment {self.transaction_id} expects {self.amount}, confirmation carried {amount}"
            )

    def complete(self, pg_transaction_id):
        if not self.is_pending:
            raise PaymentAlreadyProcessed(f"Payment {self.transaction_id} is already {self.status}")

        now = datetime.now(UTC)
        self.status = PaymentStatus.COMPLETED.value
        self.pg_transaction_id = pg_transaction_id
        self.paid_at = now

        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_id=self.transaction_id,
                pg_transaction_id=pg_transaction_id,
                amount=self.amount,
                paid_at=now,
            )
        )

    def fail(self, reason):
        if not self.is_pending:
            raise PaymentAlreadyProcessed(f"Payment {self.transaction_id} is already {self.status}")

        self.status = PaymentStatus.FAILED.value
        self.fail_reason = reason

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_id=self.transaction_id,
                reason=reason,
                failed_at=datetime.now(UTC),
            )
        )

    def cancel(self):
        """Mark a completed payment as refunded. The gateway call is the caller's job."""
        if not self.is_completed:
            raise PaymentCannotCancel(f"Payment in {self.status} status cannot be cancelled")

        now = datetime.now(UTC)
        self.status = PaymentStatus.CANCELLED.value
        self.cancelled_at = now

        self.raise_(
            PaymentCancelled(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                transaction_id=self.transaction_id,
                amount=self.amount,
                cancelled_at=now,
            )
        )


@ordering.repository(part_of=Payment)
class PaymentRepository:
    def find_by_transaction_id(self, transaction_id):
        results = self._dao.query.filter(transaction_id=transaction_id).all().items
        return results[0] if results else None

    def get_by_transaction_id(self, transaction_id):
        payment = self.find_by_transaction_id(transaction_id)
        if payment is None:
            raise ObjectNotFoundError(f"Payment with transaction {transaction_id} does not exist")
        return payment

    def for_order(self, order_id):
        results = self._dao.query.filter(order_id=str(order_id)).all().items
        return sorted(results, key=lambda p: p.created_at, reverse=True)

    def completed_for_order(self, order_id):
        return next((p for p in self.for_order(order_id) if p.is_completed), None)

    def pending_for_order(self, order_id):
        return [p for p in self.for_order(order_id) if p.is_pending]


def generate_transaction_id():
    return "PAY-" + uuid4().hex[:12].upper()
