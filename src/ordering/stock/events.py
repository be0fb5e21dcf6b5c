"""Domain events for the StockItem aggregate."""

from protean.fields import DateTime, Identifier, Integer

from ordering.domain import ordering


@ordering.event(part_of="StockItem")
class StockInitialized:
    """A stock ledger entry was registered for a product option."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    option_id = Identifier()
    stock = Integer(required=True)
    initialized_at = DateTime(required=True)


@ordering.event(part_of="StockItem")
class StockDecreased:
    """Units were taken out of stock for an order."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    option_id = Identifier()
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    decreased_at = DateTime(required=True)


@ordering.event(part_of="StockItem")
class StockIncreased:
    """Units were put back into stock (cancellation or restock)."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    option_id = Identifier()
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    increased_at = DateTime(required=True)


@ordering.event(part_of="StockItem")
class StockUpdated:
    """The stock count was overwritten by a seller."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    option_id = Identifier()
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    updated_at = DateTime(required=True)
