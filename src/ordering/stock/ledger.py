"""Stock ledger — commands and handler.

Entries are addressed by (product_id, option_id) rather than by their
surrogate id, which is how orders refer to them.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.stock.stock import StockItem


@ordering.command(part_of="StockItem")
class InitializeStock:
    """Register the stock ledger entry of a product option."""

    product_id = Identifier(required=True)
    option_id = Identifier()
    stock = Integer(default=0)


@ordering.command(part_of="StockItem")
class DecreaseStock:
    product_id = Identifier(required=True)
    option_id = Identifier()
    quantity = Integer(required=True)


@ordering.command(part_of="StockItem")
class IncreaseStock:
    product_id = Identifier(required=True)
    option_id = Identifier()
    quantity = Integer(required=True)


@ordering.command(part_of="StockItem")
class UpdateStock:
    """Overwrite the stock count, e.g. after a seller restock."""

    product_id = Identifier(required=True)
    option_id = Identifier()
    stock = Integer(required=True)


@ordering.command_handler(part_of=StockItem)
class StockLedgerHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        if repo.find_for(command.product_id, command.option_id) is not None:
            raise ValidationError({"product_id": ["Stock entry already exists for this product option"]})

        item = StockItem.register(
            product_id=command.product_id,
            option_id=command.option_id,
            stock=command.stock or 0,
        )
        repo.add(item)
        return str(item.id)

    @handle(DecreaseStock)
    def decrease_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get_for(command.product_id, command.option_id)
        item.decrease_stock(command.quantity)
        repo.add(item)

        logger.debug("stock_decreased", product_id=str(command.product_id), new_stock=item.stock)
        return item.stock

    @handle(IncreaseStock)
    def increase_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get_for(command.product_id, command.option_id)
        item.increase_stock(command.quantity)
        repo.add(item)
        return item.stock

    @handle(UpdateStock)
    def update_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get_for(command.product_id, command.option_id)
        item.update_stock(command.stock)
        repo.add(item)
        return item.stock
