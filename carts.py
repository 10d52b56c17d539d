"""
Shopping carts.

A user's cart lives in `carts` keyed by user id. Carts of visitors who have
not signed in live in `guest_carts` keyed by an opaque session id and are
merged into the user's cart after sign-in.
"""
import logging
from typing import Dict, List

from errors import CartItemNotFound, OrderValidationError, ProductNotFound
from schemas import Cart, CartItem
from store import DocumentStore, run_transaction, utcnow

logger = logging.getLogger(__name__)

CARTS = "carts"
GUEST_CARTS = "guest_carts"


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise OrderValidationError("Quantity must be at least 1")


def _ensure_product(store: DocumentStore, product_id: str) -> None:
    if store.get("products", product_id) is None:
        raise ProductNotFound(product_id)


def merge_cart_items(base: List[dict], incoming: List[dict]) -> List[dict]:
    """Merge two item lists by product id, summing quantities.

    Items keep the position and `added_at` of their first appearance.
    """
    merged: Dict[str, dict] = {}
    for item in list(base) + list(incoming):
        product_id = item["product_id"]
        if product_id in merged:
            merged[product_id]["quantity"] += item["quantity"]
        else:
            merged[product_id] = dict(item)
    return list(merged.values())


def _add_item(store: DocumentStore, collection: str, key: str, owner_field: str,
              product_id: str, quantity: int) -> dict:
    _check_quantity(quantity)
    _ensure_product(store, product_id)

    def body(txn):
        doc = txn.get(collection, key) or {owner_field: key, "items": []}
        now = utcnow()
        doc["items"] = merge_cart_items(
            doc.get("items", []),
            [{"product_id": product_id, "quantity": quantity, "added_at": now}],
        )
        doc["updated_at"] = now
        txn.set(collection, key, doc)
        return doc

    return run_transaction(store, body)


# ----------------------- User carts -----------------------

def get_cart(store: DocumentStore, user_id: str) -> Cart:
    """Fetch the user's cart, creating an empty one on first access."""
    doc = store.get(CARTS, user_id)
    if doc is None:
        doc = {"user_id": user_id, "items": [], "updated_at": utcnow()}
        store.set(CARTS, user_id, doc)
    return Cart.model_validate(doc)


def add_to_cart(store: DocumentStore, user_id: str, product_id: str, quantity: int = 1) -> Cart:
    doc = _add_item(store, CARTS, user_id, "user_id", product_id, quantity)
    return Cart.model_validate(doc)


def update_cart_item(store: DocumentStore, user_id: str, product_id: str, quantity: int) -> Cart:
    """Set a line's quantity; zero or less removes the line."""

    def body(txn):
        doc = txn.get(CARTS, user_id) or {"user_id": user_id, "items": []}
        items = doc.get("items", [])
        if not any(i["product_id"] == product_id for i in items):
            raise CartItemNotFound(product_id)
        if quantity <= 0:
            items = [i for i in items if i["product_id"] != product_id]
        else:
            items = [dict(i, quantity=quantity) if i["product_id"] == product_id else i for i in items]
        doc.update(items=items, updated_at=utcnow())
        txn.set(CARTS, user_id, doc)
        return doc

    return Cart.model_validate(run_transaction(store, body))


def remove_from_cart(store: DocumentStore, user_id: str, product_id: str) -> Cart:
    def body(txn):
        doc = txn.get(CARTS, user_id) or {"user_id": user_id, "items": []}
        doc["items"] = [i for i in doc.get("items", []) if i["product_id"] != product_id]
        doc["updated_at"] = utcnow()
        txn.set(CARTS, user_id, doc)
        return doc

    return Cart.model_validate(run_transaction(store, body))


def clear_cart(store: DocumentStore, user_id: str) -> Cart:
    doc = {"user_id": user_id, "items": [], "updated_at": utcnow()}
    store.set(CARTS, user_id, doc)
    return Cart.model_validate(doc)


def cart_item_count(cart: Cart) -> int:
    return sum(item.quantity for item in cart.items)


# ----------------------- Guest carts -----------------------

def get_guest_cart(store: DocumentStore, session_id: str) -> List[CartItem]:
    doc = store.get(GUEST_CARTS, session_id) or {}
    return [CartItem.model_validate(i) for i in doc.get("items", [])]


def add_to_guest_cart(store: DocumentStore, session_id: str, product_id: str, quantity: int = 1) -> List[CartItem]:
    doc = _add_item(store, GUEST_CARTS, session_id, "session_id", product_id, quantity)
    return [CartItem.model_validate(i) for i in doc["items"]]


def clear_guest_cart(store: DocumentStore, session_id: str) -> None:
    store.delete(GUEST_CARTS, session_id)


def transfer_guest_cart(store: DocumentStore, session_id: str, user_id: str) -> int:
    """Merge the guest cart into the user's cart and drop it.

    Returns the number of guest lines merged.
    """

    def body(txn):
        guest = txn.get(GUEST_CARTS, session_id)
        cart = txn.get(CARTS, user_id) or {"user_id": user_id, "items": []}
        if not guest or not guest.get("items"):
            return 0
        cart["items"] = merge_cart_items(cart.get("items", []), guest["items"])
        cart["updated_at"] = utcnow()
        txn.set(CARTS, user_id, cart)
        txn.delete(GUEST_CARTS, session_id)
        return len(guest["items"])

    count = run_transaction(store, body)
    if count:
        logger.info("Merged %d guest cart lines into cart of user %s", count, user_id)
    return count
