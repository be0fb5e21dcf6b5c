"""Fake payment gateway for development and testing.

Confirmation fails deterministically when the amount ends in 9999
(``amount % 10000 == 9999``). This is a testing convention of the fake
adapter, not a business rule. Refund behaviour can be toggled at runtime.
"""

from uuid import uuid4

from ordering.domain import logger
from ordering.gateway.port import GatewayResult, PaymentCommand, PaymentGateway

FAILURE_AMOUNT_SUFFIX = 9999


class FakeGateway(PaymentGateway):
    """Deterministic in-process payment gateway."""

    def __init__(self) -> None:
        self.refunds_succeed: bool = True
        self.refund_failure_reason: str = "Refund rejected"
        self.calls: list[dict] = []

    def configure(self, refunds_succeed: bool, refund_failure_reason: str = "Refund rejected") -> None:
        """Configure refund behaviour at runtime."""
        self.refunds_succeed = refunds_succeed
        self.refund_failure_reason = refund_failure_reason

    @staticmethod
    def should_simulate_failure(amount: int) -> bool:
        return amount % 10000 == FAILURE_AMOUNT_SUFFIX

    def request_payment(self, command: PaymentCommand) -> GatewayResult:
        self.calls.append(
            {
                "method": "request_payment",
                "transaction_id": command.transaction_id,
                "order_number": command.order_number,
                "amount": command.amount,
            }
        )
        logger.info("Fake gateway payment requested", transaction_id=command.transaction_id, amount=command.amount)
        return GatewayResult.succeeded(_pg_id())

    def confirm_payment(self, transaction_id: str, amount: int) -> GatewayResult:
        self.calls.append({"method": "confirm_payment", "transaction_id": transaction_id, "amount": amount})

        if self.should_simulate_failure(amount):
            logger.warning("Fake gateway simulating payment failure", transaction_id=transaction_id, amount=amount)
            return GatewayResult.failed("Simulated payment failure: Card declined")

        return GatewayResult.succeeded(_pg_id())

    def cancel_payment(self, pg_transaction_id: str, amount: int) -> GatewayResult:
        self.calls.append({"method": "cancel_payment", "pg_transaction_id": pg_transaction_id, "amount": amount})

        if not self.refunds_succeed:
            return GatewayResult.failed(self.refund_failure_reason)
        return GatewayResult.succeeded(pg_transaction_id)


def _pg_id() -> str:
    return f"PG-{uuid4().hex[:8].upper()}"
