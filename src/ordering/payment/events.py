"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Payment")
class PaymentRequested:
    """A payment was registered with the gateway and awaits confirmation."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    method = String(required=True)
    amount = Integer(required=True)
    requested_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentCompleted:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    pg_transaction_id = String(required=True)
    amount = Integer(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentFailed:
    """The gateway declined the confirmation. The order stays unpaid."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentCancelled:
    """A completed payment was refunded through the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = Integer(required=True)
    cancelled_at = DateTime(required=True)
