"""Order fulfillment — commands and handler.

Seller-side transitions after payment: preparing, shipping and delivery.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class StartPreparing:
    """Signal that the seller has started packing a paid order."""

    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class ShipOrder:
    """Hand the order to a carrier."""

    order_id = Identifier(required=True)
    tracking_number = String(max_length=100)


@ordering.command(part_of="Order")
class DeliverOrder:
    """Record that the carrier has confirmed delivery."""

    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(StartPreparing)
    def start_preparing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.start_preparing()
        repo.add(order)

    @handle(ShipOrder)
    def ship_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.ship(command.tracking_number)
        repo.add(order)

        logger.info("order_shipped", order_id=str(order.id), tracking_number=command.tracking_number)

    @handle(DeliverOrder)
    def deliver_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.deliver()
        repo.add(order)
