"""
Error taxonomy for the storefront.

Domain errors carry a message that is safe to show to the buyer. Store
errors describe the backing document store and are translated into
domain errors by the services that use it.
"""
from typing import List, Optional


class StorefrontError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OrderValidationError(StorefrontError):
    pass


class StockUnavailable(StorefrontError):
    """One or more lines cannot be fulfilled. `errors` holds one line per item."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "Stock unavailable:\n" + "\n".join(self.errors))


class InsufficientStock(StockUnavailable):
    """Raised from inside the order transaction after the authoritative re-read."""


class ProductNotFound(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class OrderNotFound(StorefrontError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found")


class CannotCancelAfterDispatch(StorefrontError):
    def __init__(self, status: str):
        self.status = status
        super().__init__("Cannot cancel order after dispatch")


class InvalidStatusTransition(StorefrontError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class OrderCreationFailed(StorefrontError):
    pass


class OrderUpdateFailed(StorefrontError):
    pass


class AddressNotFound(StorefrontError):
    def __init__(self, address_id: str):
        self.address_id = address_id
        super().__init__("Address not found")


class CartItemNotFound(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not in the cart")


# ----------------------- Store -----------------------

class StoreError(Exception):
    pass


class StoreUnavailable(StoreError):
    pass


class TransactionConflict(StoreError):
    """A document read by the transaction changed before commit."""


class TransactionAborted(StoreError):
    """The transaction kept conflicting until the attempt ceiling."""


class ReadAfterWriteError(StoreError):
    """A transaction body issued a read after it had staged a write."""
