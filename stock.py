"""
Advisory stock pre-check run before checkout.

The verdict may be stale by the time an order is placed; the order
transaction re-reads stock and is the only authoritative check.
"""
import logging
from typing import Iterable, List, Tuple

from errors import StoreError
from schemas import StockCheck, StockValidationResult
from store import DocumentStore

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to validate stock availability. Please try again."


def classify(product, requested: int) -> Tuple[str, int]:
    if product is None:
        return "not-found", 0
    available = product.get("stock_quantity") or 0
    if available >= requested:
        return "ok", available
    if available == 0:
        return "out-of-stock", 0
    return "insufficient", available


def validate_stock_availability(store: DocumentStore, items: Iterable[Tuple[str, int]]) -> StockValidationResult:
    """Check each (product_id, quantity) pair against current stock.

    Never raises for store failures: callers can always branch on `.valid`.
    """
    errors: List[str] = []
    checks: List[StockCheck] = []
    try:
        for product_id, requested in items:
            product = store.get("products", product_id)
            status, available = classify(product, requested)
            checks.append(StockCheck(product_id=product_id, requested=requested,
                                     available=available, status=status))
            if status == "not-found":
                errors.append(f"Product (ID: {product_id}) - Product not found")
            elif status == "out-of-stock":
                errors.append(f"{product.get('name') or 'Unknown Product'} - Out of stock")
            elif status == "insufficient":
                errors.append(f"{product.get('name') or 'Unknown Product'} - Only {available} left")
    except StoreError:
        logger.exception("Error validating stock")
        return StockValidationResult(valid=False, errors=[GENERIC_ERROR])
    return StockValidationResult(valid=not errors, errors=errors, checks=checks)
