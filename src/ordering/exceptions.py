"""Typed errors raised by the ordering workflow.

Malformed input is reported with ``protean.exceptions.ValidationError`` and
missing records with ``protean.exceptions.ObjectNotFoundError``, the same way
the framework reports them. Everything below covers the remaining kinds:
operations that are illegal in the current state, ownership violations, and
refusals coming back from the payment gateway.
"""


class OrderingError(Exception):
    """Base class for all workflow errors.

    Attributes:
        code: Stable machine-readable identifier of the error kind
        message: Human readable description
    """

    code = "ordering_error"
    default_message = "Ordering operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Invalid state
# ---------------------------------------------------------------------------
class InvalidStateError(OrderingError):
    """The operation is not legal in the current state of the record.

    Terminal for the attempt: the same command must not be retried blindly.
    """

    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class InvalidOrderState(InvalidStateError):
    code = "order_status_invalid"
    default_message = "Invalid order status transition"


class InsufficientStock(InvalidStateError):
    code = "insufficient_stock"
    default_message = "Insufficient stock"


class CouponAlreadyUsed(InvalidStateError):
    code = "coupon_already_used"
    default_message = "Coupon already used"


class CouponExpired(InvalidStateError):
    code = "coupon_expired"
    default_message = "Coupon has expired"


class CouponLimitExceeded(InvalidStateError):
    code = "coupon_limit_exceeded"
    default_message = "Coupon issuance limit exceeded"


class OrderAlreadyPaid(InvalidStateError):
    code = "order_already_paid"
    default_message = "Order is already paid"


class PaymentAlreadyProcessed(InvalidStateError):
    code = "payment_already_processed"
    default_message = "Payment already processed"


class PaymentAmountMismatch(InvalidStateError):
    code = "payment_amount_mismatch"
    default_message = "Payment amount mismatch"


class PaymentCannotCancel(InvalidStateError):
    code = "payment_cannot_cancel"
    default_message = "Payment cannot be cancelled"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
class AuthorizationError(OrderingError):
    """The caller neither owns the resource nor holds admin privilege."""

    code = "forbidden"
    default_message = "Access forbidden"


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
class GatewayError(OrderingError):
    """The payment gateway refused an operation.

    Local state is left untouched; a new payment request may be issued.
    """

    code = "gateway_error"
    default_message = "Payment gateway error"

    def __init__(self, message: str | None = None, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or (f"{self.default_message}: {reason}" if reason else None))

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}


class PaymentRequestFailed(GatewayError):
    code = "payment_failed"
    default_message = "Payment request failed"


class RefundFailed(GatewayError):
    code = "refund_failed"
    default_message = "Refund failed"
