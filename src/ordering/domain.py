"""Ordering bounded context — Order Fulfillment Workflow.

Houses the order lifecycle, the stock ledger, the coupon ledger and the
payment workflow in a single domain, so that every use case (placing,
paying, cancelling) commits or rolls back as one unit of work.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

ordering = Domain(name="ordering")
