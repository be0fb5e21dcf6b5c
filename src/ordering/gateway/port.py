"""Payment gateway port (abstract interface).

Defines the contract every payment gateway adapter implements: request,
confirm and cancel. The workflow only ever looks at the returned
``GatewayResult``; adapter-specific details never leak past this seam.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentCommand:
    """Details handed to the gateway when a payment is requested."""

    transaction_id: str
    order_number: str
    amount: int
    method: str


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a gateway call."""

    success: bool
    pg_transaction_id: str | None = None
    fail_reason: str | None = None

    @classmethod
    def succeeded(cls, pg_transaction_id: str) -> "GatewayResult":
        return cls(success=True, pg_transaction_id=pg_transaction_id)

    @classmethod
    def failed(cls, reason: str) -> "GatewayResult":
        return cls(success=False, fail_reason=reason)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def request_payment(self, command: PaymentCommand) -> GatewayResult:
        """Register a new payment with the gateway."""
        ...

    @abstractmethod
    def confirm_payment(self, transaction_id: str, amount: int) -> GatewayResult:
        """Confirm a payment after the member authorized it."""
        ...

    @abstractmethod
    def cancel_payment(self, pg_transaction_id: str, amount: int) -> GatewayResult:
        """Cancel (refund) a confirmed payment."""
        ...
