import os
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware

import config
import addresses
import carts
import catalog
import orders
from auth import get_current_user, require_admin
from database import get_store
from errors import (
    AddressNotFound,
    CannotCancelAfterDispatch,
    CartItemNotFound,
    InvalidStatusTransition,
    OrderNotFound,
    OrderValidationError,
    ProductNotFound,
    StockUnavailable,
    StorefrontError,
    StoreError,
)
from schemas import (
    AddressIn,
    CartItemIn,
    CartItemQuantity,
    PlaceOrderRequest,
    Product,
    ProductUpdate,
    StatusUpdate,
)
from stock import validate_stock_availability
from store import DocumentStore

config.setup_logging()

# FastAPI app
app = FastAPI(title="BuzzMart API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def to_http(e: StorefrontError) -> HTTPException:
    if isinstance(e, StockUnavailable):
        return HTTPException(status_code=409, detail={"message": e.message, "errors": e.errors})
    if isinstance(e, (ProductNotFound, OrderNotFound, AddressNotFound, CartItemNotFound)):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, (CannotCancelAfterDispatch, InvalidStatusTransition)):
        return HTTPException(status_code=409, detail=e.message)
    if isinstance(e, OrderValidationError):
        return HTTPException(status_code=400, detail=e.message)
    return HTTPException(status_code=500, detail=e.message)


# Health + test
@app.get("/")
def root():
    return {"message": "BuzzMart API running"}

@app.get("/test")
def test_database(store: DocumentStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "store": type(store).__name__,
        "collections": []
    }
    try:
        response["collections"] = store.list_collections()[:10]
    except StoreError as e:
        response["error"] = str(e)[:120]
    return response

# Catalog
@app.get("/api/categories")
def get_categories(store: DocumentStore = Depends(get_store)):
    return {"categories": catalog.list_categories(store)}

@app.get("/api/products")
def list_products(category: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    return {"items": catalog.list_products(store, category)}

@app.get("/api/products/{product_id}")
def get_product(product_id: str, store: DocumentStore = Depends(get_store)):
    try:
        return catalog.get_product(store, product_id)
    except StorefrontError as e:
        raise to_http(e)

# Admin inventory
@app.post("/api/admin/products", status_code=201)
def create_product(body: Product, admin: dict = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    return catalog.create_product(store, body)

@app.patch("/api/admin/products/{product_id}")
def update_product(product_id: str, body: ProductUpdate, admin: dict = Depends(require_admin),
                   store: DocumentStore = Depends(get_store)):
    try:
        return catalog.update_product(store, product_id, body)
    except StorefrontError as e:
        raise to_http(e)

@app.delete("/api/admin/products/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    try:
        catalog.delete_product(store, product_id)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True}

@app.get("/api/admin/orders")
def admin_orders(admin: dict = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    return {"orders": orders.list_orders(store)}

@app.post("/api/admin/orders/{order_id}/status")
def advance_order(order_id: str, body: StatusUpdate, admin: dict = Depends(require_admin),
                  store: DocumentStore = Depends(get_store)):
    try:
        return orders.advance_order_status(store, order_id, body.status)
    except StorefrontError as e:
        raise to_http(e)

# Seed
@app.post("/api/seed/categories")
def seed_categories(store: DocumentStore = Depends(get_store)):
    result = catalog.seed_categories(store)
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["message"])
    return result

@app.post("/api/seed/products")
def seed_products(store: DocumentStore = Depends(get_store)):
    return catalog.seed_products(store)

# Cart
@app.get("/api/cart")
def get_cart(user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    cart = carts.get_cart(store, user["id"])
    return {"items": cart.items, "item_count": carts.cart_item_count(cart)}

@app.post("/api/cart/items")
def add_cart_item(body: CartItemIn, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        cart = carts.add_to_cart(store, user["id"], body.product_id, body.quantity)
    except StorefrontError as e:
        raise to_http(e)
    return {"items": cart.items, "item_count": carts.cart_item_count(cart)}

@app.put("/api/cart/items/{product_id}")
def update_cart_item(product_id: str, body: CartItemQuantity, user: dict = Depends(get_current_user),
                     store: DocumentStore = Depends(get_store)):
    try:
        cart = carts.update_cart_item(store, user["id"], product_id, body.quantity)
    except StorefrontError as e:
        raise to_http(e)
    return {"items": cart.items, "item_count": carts.cart_item_count(cart)}

@app.delete("/api/cart/items/{product_id}")
def remove_cart_item(product_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    cart = carts.remove_from_cart(store, user["id"], product_id)
    return {"items": cart.items, "item_count": carts.cart_item_count(cart)}

@app.delete("/api/cart")
def clear_cart(user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    carts.clear_cart(store, user["id"])
    return {"success": True}

@app.get("/api/guest-cart/{session_id}")
def get_guest_cart(session_id: str, store: DocumentStore = Depends(get_store)):
    return {"items": carts.get_guest_cart(store, session_id)}

@app.post("/api/guest-cart/{session_id}/items")
def add_guest_cart_item(session_id: str, body: CartItemIn, store: DocumentStore = Depends(get_store)):
    try:
        items = carts.add_to_guest_cart(store, session_id, body.product_id, body.quantity)
    except StorefrontError as e:
        raise to_http(e)
    return {"items": items}

@app.post("/api/cart/merge/{session_id}")
def merge_guest_cart(session_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    merged = carts.transfer_guest_cart(store, session_id, user["id"])
    return {"success": True, "item_count": merged}

# Addresses
@app.get("/api/addresses")
def list_addresses(user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return {"addresses": addresses.list_addresses(store, user["id"])}

@app.post("/api/addresses", status_code=201)
def add_address(body: AddressIn, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return {"addresses": addresses.add_address(store, user["id"], body)}

@app.put("/api/addresses/{address_id}")
def update_address(address_id: str, body: AddressIn, user: dict = Depends(get_current_user),
                   store: DocumentStore = Depends(get_store)):
    try:
        return {"addresses": addresses.update_address(store, user["id"], address_id, body)}
    except StorefrontError as e:
        raise to_http(e)

@app.delete("/api/addresses/{address_id}")
def delete_address(address_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        return {"addresses": addresses.delete_address(store, user["id"], address_id)}
    except StorefrontError as e:
        raise to_http(e)

@app.post("/api/addresses/{address_id}/default")
def set_default_address(address_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        return {"addresses": addresses.set_default_address(store, user["id"], address_id)}
    except StorefrontError as e:
        raise to_http(e)

# Checkout
@app.post("/api/stock/validate")
def validate_stock(items: List[CartItemIn], store: DocumentStore = Depends(get_store)):
    return validate_stock_availability(store, [(i.product_id, i.quantity) for i in items])

@app.get("/api/checkout/summary")
def checkout_summary(user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    cart = carts.get_cart(store, user["id"])
    try:
        return catalog.checkout_summary(store, cart.items)
    except StorefrontError as e:
        raise to_http(e)

# Orders
@app.post("/api/orders", status_code=201)
def place_order(body: PlaceOrderRequest, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        address = addresses.get_address(store, user["id"], body.address_id)
        items = body.items if body.items is not None else carts.get_cart(store, user["id"]).items
        return orders.place_order(store, user["id"], items, address, body.total_amount, body.payment_method)
    except StorefrontError as e:
        raise to_http(e)

@app.get("/api/orders")
def my_orders(user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return {"orders": orders.list_orders(store, user["id"])}

@app.get("/api/orders/{order_id}")
def order_detail(order_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    owner = None if user.get("role") == "admin" else user["id"]
    try:
        return orders.get_order(store, order_id, owner)
    except StorefrontError as e:
        raise to_http(e)

@app.post("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, user: dict = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    owner = None if user.get("role") == "admin" else user["id"]
    try:
        orders.get_order(store, order_id, owner)
        orders.cancel_order(store, order_id)
        return orders.get_order(store, order_id)
    except StorefrontError as e:
        raise to_http(e)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
