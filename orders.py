"""
Order placement, cancellation and the order status lifecycle.

Placement and cancellation each run as one optimistic transaction: every
document is read first, the invariants are checked, and only then are the
writes staged. Nothing outside the transaction is touched inside the body,
so a conflicting attempt can be re-executed from scratch.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from database import get_documents
from dispatch import PartnerAssigner, RandomPartnerAssigner, generate_order_number
from errors import (
    CannotCancelAfterDispatch,
    InsufficientStock,
    InvalidStatusTransition,
    OrderCreationFailed,
    OrderNotFound,
    OrderUpdateFailed,
    OrderValidationError,
    ProductNotFound,
    StockUnavailable,
    StoreError,
    StorefrontError,
)
from schemas import Address, Order, OrderItem
from stock import validate_stock_availability
from store import DocumentStore, Transaction, new_id, run_transaction, utcnow

logger = logging.getLogger(__name__)

ORDERS = "orders"
PRODUCTS = "products"
CARTS = "carts"

# status -> statuses reachable from it
TRANSITIONS = {
    "preparing": {"dispatched", "cancelled"},
    "dispatched": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}
TIMESTAMP_FIELDS = {
    "dispatched": "dispatched_at",
    "delivered": "delivered_at",
    "cancelled": "cancelled_at",
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def _field(item, name):
    return item[name] if isinstance(item, dict) else getattr(item, name)


def merge_lines(cart_items: Iterable) -> List[Tuple[str, int]]:
    """(product_id, quantity) pairs in first-seen order, repeated products summed."""
    totals: Dict[str, int] = {}
    for item in cart_items:
        product_id = _field(item, "product_id")
        quantity = _field(item, "quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise OrderValidationError(f"Quantity for product {product_id} must be a whole number")
        if quantity <= 0:
            raise OrderValidationError(f"Quantity for product {product_id} must be positive")
        totals[product_id] = totals.get(product_id, 0) + quantity
    return list(totals.items())


def place_order(
    store: DocumentStore,
    user_id: str,
    cart_items: Iterable,
    address,
    total_amount: float,
    payment_method: str = "COD",
    assigner: Optional[PartnerAssigner] = None,
) -> Order:
    """Turn cart lines into an order, deducting stock and emptying the cart.

    Raises StockUnavailable (or its InsufficientStock subclass), ProductNotFound,
    OrderValidationError or OrderCreationFailed. On any failure no stock is
    deducted and no order exists.
    """
    lines = merge_lines(cart_items)
    if not lines:
        raise OrderValidationError("Cart is empty")
    try:
        address_snapshot = Address.model_validate(address).model_dump()
    except ValidationError as e:
        raise OrderValidationError("Invalid delivery address") from e
    assigner = assigner or RandomPartnerAssigner()

    # Fast fail for the buyer; the transaction below re-checks.
    precheck = validate_stock_availability(store, lines)
    if not precheck.valid:
        raise StockUnavailable(precheck.errors)

    def body(txn: Transaction) -> str:
        products = [(product_id, quantity, txn.get(PRODUCTS, product_id)) for product_id, quantity in lines]

        shortages = []
        for product_id, quantity, product in products:
            if product is None:
                raise ProductNotFound(product_id)
            available = product.get("stock_quantity") or 0
            if available < quantity:
                shortages.append(f"{product['name']} - Insufficient stock ({available} available)")
        if shortages:
            raise InsufficientStock(shortages)

        now = utcnow()
        items = [
            OrderItem(
                product_id=product_id,
                name=product["name"],
                price=product["price"],
                quantity=quantity,
                emoji=product.get("emoji", ""),
            ).model_dump()
            for product_id, quantity, product in products
        ]
        order_id = new_id()
        # Built before any write is staged so bad input never reaches the store
        order = Order(
            id=order_id,
            user_id=user_id,
            order_number=generate_order_number(),
            items=items,
            delivery_address=address_snapshot,
            total_amount=total_amount,
            payment_method=payment_method,
            status="preparing",
            delivery_partner=assigner.assign(),
            order_date=now,
        ).model_dump(exclude={"id"})

        for product_id, quantity, product in products:
            txn.update(PRODUCTS, product_id, {
                "stock_quantity": (product.get("stock_quantity") or 0) - quantity,
                "updated_at": now,
            })
        txn.set(ORDERS, order_id, order)
        txn.set(CARTS, user_id, {"user_id": user_id, "items": [], "updated_at": now})
        return order_id

    try:
        order_id = run_transaction(store, body)
        created = store.get(ORDERS, order_id)
    except StorefrontError:
        raise
    except ValidationError as e:
        logger.warning("Rejected order for user %s: %s", user_id, e)
        raise OrderValidationError("Invalid order details") from e
    except Exception as e:
        logger.exception("Error placing order for user %s", user_id)
        raise OrderCreationFailed("Failed to place order. Please try again.") from e
    if created is None:
        raise OrderCreationFailed("Order creation failed")

    order = Order.model_validate(created)
    logger.info("Placed order %s (%s) for user %s with %d lines",
                order.order_number, order.id, user_id, len(order.items))
    return order


def cancel_order(store: DocumentStore, order_id: str) -> None:
    """Cancel a `preparing` order and put its quantities back into stock.

    Products deleted since the order was placed are skipped.
    """

    def body(txn: Transaction) -> None:
        order = txn.get(ORDERS, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        products = [(item, txn.get(PRODUCTS, item["product_id"])) for item in order.get("items", [])]

        if order.get("status") != "preparing":
            raise CannotCancelAfterDispatch(order.get("status"))

        restored: Dict[str, int] = {}
        for item, product in products:
            if product is None:
                continue
            product_id = item["product_id"]
            base = restored.get(product_id, product.get("stock_quantity") or 0)
            restored[product_id] = base + item["quantity"]

        now = utcnow()
        for product_id, stock_quantity in restored.items():
            txn.update(PRODUCTS, product_id, {"stock_quantity": stock_quantity, "updated_at": now})
        txn.update(ORDERS, order_id, {"status": "cancelled", TIMESTAMP_FIELDS["cancelled"]: now})

    try:
        run_transaction(store, body)
    except StoreError as e:
        logger.exception("Error cancelling order %s", order_id)
        raise OrderUpdateFailed("Failed to cancel order. Please try again.") from e
    logger.info("Cancelled order %s", order_id)


def advance_order_status(store: DocumentStore, order_id: str, status: str) -> Order:
    """Apply a fulfilment signal: preparing -> dispatched -> delivered.

    Cancellation is not a fulfilment signal; it goes through cancel_order.
    """

    def body(txn: Transaction) -> None:
        order = txn.get(ORDERS, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        current = order.get("status")
        if status == "cancelled" or not can_transition(current, status):
            raise InvalidStatusTransition(current, status)
        txn.update(ORDERS, order_id, {"status": status, TIMESTAMP_FIELDS[status]: utcnow()})

    try:
        run_transaction(store, body)
        updated = store.get(ORDERS, order_id)
    except StoreError as e:
        logger.exception("Error updating order %s to %s", order_id, status)
        raise OrderUpdateFailed("Failed to update order. Please try again.") from e
    logger.info("Order %s is now %s", order_id, status)
    return Order.model_validate(updated)


def get_order(store: DocumentStore, order_id: str, user_id: Optional[str] = None) -> Order:
    doc = store.get(ORDERS, order_id)
    if doc is None or (user_id is not None and doc.get("user_id") != user_id):
        raise OrderNotFound(order_id)
    return Order.model_validate(doc)


def list_orders(store: DocumentStore, user_id: Optional[str] = None) -> List[Order]:
    filters = {"user_id": user_id} if user_id else None
    docs = get_documents(store, ORDERS, filters, sort=[("order_date", -1)])
    return [Order.model_validate(d) for d in docs]
