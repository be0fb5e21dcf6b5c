"""StockItem aggregate (CQRS) — the stock ledger entry of one product option.

A StockItem counts the purchasable units of a product option (or of the
product itself when it has no options). The counter is only ever changed
through ``decrease_stock``, ``increase_stock`` and ``update_stock``, and it
never drops below zero.

Concurrent writers are serialized by ``ordering.workflow.locks.StockLocks``;
the aggregate itself knows nothing about locking.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, Integer

from ordering.domain import ordering
from ordering.exceptions import InsufficientStock
from ordering.stock.events import StockDecreased, StockIncreased, StockInitialized, StockUpdated


def _validate_quantity(quantity):
    if quantity is None or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be at least 1"]})


@ordering.aggregate
class StockItem:
    product_id = Identifier(required=True)
    option_id = Identifier()  # None = product-level stock
    stock = Integer(required=True, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, product_id, option_id=None, stock=0):
        if stock is None or stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        now = datetime.now(UTC)
        item = cls(
            product_id=product_id,
            option_id=option_id,
            stock=stock,
            created_at=now,
            updated_at=now,
        )
        item.raise_(
            StockInitialized(
                stock_item_id=str(item.id),
                product_id=str(product_id),
                option_id=str(option_id) if option_id is not None else None,
                stock=stock,
                initialized_at=now,
            )
        )
        return item

    @property
    def key(self):
        return stock_key(self.product_id, self.option_id)

    def is_in_stock(self):
        return self.stock > 0

    # -------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------
    def decrease_stock(self, quantity):
        """Take ``quantity`` units out of stock for an order."""
        _validate_quantity(quantity)
        if quantity > self.stock:
            raise InsufficientStock(
                f"Insufficient stock for product {self.product_id} option {self.option_id}: "
                f"requested {quantity}, available {self.stock}"
            )

        previous = self.stock
        self.stock = previous - quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockDecreased(
                stock_item_id=str(self.id),
                product_id=str(self.product_id),
                option_id=_str_or_none(self.option_id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                decreased_at=now,
            )
        )

    def increase_stock(self, quantity):
        """Put ``quantity`` units back. No upper bound is enforced."""
        _validate_quantity(quantity)

        previous = self.stock
        self.stock = previous + quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockIncreased(
                stock_item_id=str(self.id),
                product_id=str(self.product_id),
                option_id=_str_or_none(self.option_id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                increased_at=now,
            )
        )

    def update_stock(self, stock):
        """Overwrite the stock count (seller restock or correction)."""
        if stock is None or stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        previous = self.stock
        self.stock = stock
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockUpdated(
                stock_item_id=str(self.id),
                product_id=str(self.product_id),
                option_id=_str_or_none(self.option_id),
                previous_stock=previous,
                new_stock=stock,
                updated_at=now,
            )
        )


@ordering.repository(part_of=StockItem)
class StockItemRepository:
    def find_for(self, product_id, option_id=None):
        """Return the ledger entry for a product option, or None."""
        candidates = self._dao.query.filter(product_id=str(product_id)).all().items
        wanted = _str_or_none(option_id)
        return next((s for s in candidates if _str_or_none(s.option_id) == wanted), None)

    def get_for(self, product_id, option_id=None):
        """Like ``find_for`` but raises ObjectNotFoundError when missing."""
        item = self.find_for(product_id, option_id)
        if item is None:
            raise ObjectNotFoundError(f"No stock entry for product {product_id} option {option_id}")
        return item


def stock_key(product_id, option_id=None):
    """Lock/lookup key of a ledger entry."""
    return ("stock", str(product_id), _str_or_none(option_id) or "-")


def _str_or_none(value):
    return str(value) if value is not None else None
