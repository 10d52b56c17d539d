"""
Categories, products and the admin inventory console.
"""
import logging
from typing import Dict, List, Optional

import config
from database import create_document, get_documents
from errors import OrderValidationError, ProductNotFound
from schemas import Category, CheckoutSummary, OrderItem, Product, ProductUpdate
from store import DocumentStore, utcnow

logger = logging.getLogger(__name__)

CATEGORIES = "categories"
PRODUCTS = "products"

SEED_CATEGORIES = [
    {"name": "Fruits", "emoji": "🍎", "display_order": 1},
    {"name": "Vegetables", "emoji": "🥕", "display_order": 2},
    {"name": "Dairy", "emoji": "🥛", "display_order": 3},
    {"name": "Bakery", "emoji": "🍞", "display_order": 4},
    {"name": "Meat", "emoji": "🍖", "display_order": 5},
    {"name": "Seafood", "emoji": "🐟", "display_order": 6},
    {"name": "Beverages", "emoji": "🥤", "display_order": 7},
    {"name": "Snacks", "emoji": "🍿", "display_order": 8},
]

SEED_PRODUCTS: Dict[str, List[dict]] = {
    "Fruits": [
        {"name": "Fresh Apple", "description": "Crisp and juicy red apples, perfect for snacking or baking.", "price": 120, "stock_quantity": 50, "emoji": "🍎"},
        {"name": "Ripe Banana", "description": "Sweet and creamy bananas, rich in potassium and energy.", "price": 40, "stock_quantity": 80, "emoji": "🍌"},
        {"name": "Sweet Mango", "description": "Delicious Alphonso mangoes, the king of fruits.", "price": 150, "stock_quantity": 30, "emoji": "🥭"},
        {"name": "Strawberries", "description": "Fresh red strawberries, sweet and aromatic.", "price": 200, "stock_quantity": 20, "emoji": "🍓"},
    ],
    "Vegetables": [
        {"name": "Fresh Tomato", "description": "Ripe red tomatoes, perfect for salads and cooking.", "price": 30, "stock_quantity": 100, "emoji": "🍅"},
        {"name": "Organic Carrot", "description": "Crunchy orange carrots, rich in beta-carotene.", "price": 50, "stock_quantity": 70, "emoji": "🥕"},
        {"name": "Green Broccoli", "description": "Nutritious broccoli florets, packed with vitamins.", "price": 80, "stock_quantity": 40, "emoji": "🥦"},
        {"name": "Spinach", "description": "Fresh green spinach leaves, rich in iron.", "price": 30, "stock_quantity": 50, "emoji": "🥬"},
    ],
    "Dairy": [
        {"name": "Fresh Milk", "description": "Pure cow's milk, 1 liter pack, homogenized and pasteurized.", "price": 60, "stock_quantity": 80, "emoji": "🥛"},
        {"name": "Cheddar Cheese", "description": "Premium cheddar cheese, perfect for sandwiches and cooking.", "price": 250, "stock_quantity": 40, "emoji": "🧀"},
        {"name": "Fresh Paneer", "description": "Soft cottage cheese, perfect for Indian dishes.", "price": 180, "stock_quantity": 35, "emoji": "🧈"},
    ],
    "Bakery": [
        {"name": "White Bread", "description": "Fresh white bread loaf, soft and perfect for sandwiches.", "price": 40, "stock_quantity": 60, "emoji": "🍞"},
        {"name": "Butter Croissant", "description": "Flaky French croissant, buttery and delicious.", "price": 50, "stock_quantity": 40, "emoji": "🥐"},
        {"name": "Chocolate Cake", "description": "Rich chocolate cake, perfect for celebrations.", "price": 400, "stock_quantity": 15, "emoji": "🍰"},
    ],
    "Meat": [
        {"name": "Chicken Breast", "description": "Boneless chicken breast, fresh and tender.", "price": 280, "stock_quantity": 50, "emoji": "🍗"},
        {"name": "Lamb Chops", "description": "Tender lamb chops, ideal for grilling.", "price": 600, "stock_quantity": 20, "emoji": "🍖"},
    ],
    "Seafood": [
        {"name": "Fresh Salmon", "description": "Atlantic salmon fillet, rich in omega-3.", "price": 600, "stock_quantity": 25, "emoji": "🐟"},
        {"name": "Jumbo Shrimp", "description": "Large shrimp, cleaned and deveined.", "price": 500, "stock_quantity": 30, "emoji": "🦐"},
        {"name": "Lobster Tail", "description": "Premium lobster tail, a true delicacy.", "price": 1200, "stock_quantity": 10, "emoji": "🦞"},
    ],
    "Beverages": [
        {"name": "Fresh Coffee", "description": "Premium roasted coffee beans, 250g pack.", "price": 200, "stock_quantity": 40, "emoji": "☕"},
        {"name": "Green Tea", "description": "Organic green tea leaves, antioxidant-rich.", "price": 150, "stock_quantity": 50, "emoji": "🍵"},
        {"name": "Mineral Water", "description": "Pure mineral water, 1 liter bottle.", "price": 20, "stock_quantity": 100, "emoji": "💧"},
    ],
    "Snacks": [
        {"name": "Potato Chips", "description": "Crispy potato chips, classic salted flavor.", "price": 30, "stock_quantity": 80, "emoji": "🥔"},
        {"name": "Chocolate Cookies", "description": "Delicious chocolate chip cookies, freshly baked.", "price": 60, "stock_quantity": 50, "emoji": "🍪"},
        {"name": "Mixed Nuts", "description": "Premium mixed nuts, roasted and salted.", "price": 150, "stock_quantity": 40, "emoji": "🥜"},
    ],
}


# ----------------------- Reads -----------------------

def list_categories(store: DocumentStore) -> List[dict]:
    return get_documents(store, CATEGORIES, sort=[("display_order", 1)])


def list_products(store: DocumentStore, category: Optional[str] = None) -> List[dict]:
    filters = {"category": category} if category else None
    return get_documents(store, PRODUCTS, filters, sort=[("name", 1)])


def get_product(store: DocumentStore, product_id: str) -> dict:
    product = store.get(PRODUCTS, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


# ----------------------- Admin inventory -----------------------

def create_product(store: DocumentStore, body: Product) -> dict:
    product_id = create_document(store, PRODUCTS, body)
    logger.info("Created product %s (%s)", product_id, body.name)
    return get_product(store, product_id)


def update_product(store: DocumentStore, product_id: str, body: ProductUpdate) -> dict:
    update = body.model_dump(exclude_none=True)
    update["updated_at"] = utcnow()
    if not store.update(PRODUCTS, product_id, update):
        raise ProductNotFound(product_id)
    logger.info("Updated product %s: %s", product_id, sorted(k for k in update if k != "updated_at"))
    return get_product(store, product_id)


def delete_product(store: DocumentStore, product_id: str) -> None:
    if not store.delete(PRODUCTS, product_id):
        raise ProductNotFound(product_id)
    logger.info("Deleted product %s", product_id)


# ----------------------- Checkout -----------------------

def delivery_charge_for(subtotal: float) -> float:
    return 0 if subtotal >= config.FREE_DELIVERY_THRESHOLD else config.DELIVERY_CHARGE


def checkout_summary(store: DocumentStore, cart_items) -> CheckoutSummary:
    """Price the cart from current product data."""
    items = []
    for line in cart_items:
        product = get_product(store, line.product_id)
        items.append(OrderItem(
            product_id=line.product_id,
            name=product["name"],
            price=product["price"],
            quantity=line.quantity,
            emoji=product.get("emoji", ""),
        ))
    if not items:
        raise OrderValidationError("Cart is empty")
    subtotal = sum(i.price * i.quantity for i in items)
    charge = delivery_charge_for(subtotal)
    return CheckoutSummary(items=items, subtotal=subtotal, delivery_charge=charge,
                           grand_total=subtotal + charge)


# ----------------------- Seed -----------------------

def seed_categories(store: DocumentStore) -> dict:
    existing = store.count(CATEGORIES)
    if existing > 0:
        return {"success": False, "message": f"Categories already exist ({existing} found)", "count": existing}
    for category in SEED_CATEGORIES:
        create_document(store, CATEGORIES, Category(**category))
    logger.info("Seeded %d categories", len(SEED_CATEGORIES))
    return {"success": True, "message": f"Successfully seeded {len(SEED_CATEGORIES)} categories",
            "count": len(SEED_CATEGORIES)}


def seed_products(store: DocumentStore) -> dict:
    existing = store.count(PRODUCTS)
    if existing > 0:
        return {"success": True, "message": f"Skipped: {existing} products already exist", "count": existing}

    category_ids = {c["name"].lower(): c["id"] for c in get_documents(store, CATEGORIES)}
    count = 0
    for category_name, products in SEED_PRODUCTS.items():
        category_id = category_ids.get(category_name.lower())
        if not category_id:
            logger.warning("Category not found: %s", category_name)
            continue
        for product in products:
            create_document(store, PRODUCTS, Product(**product, category=category_id))
            count += 1
    logger.info("Seeded %d products", count)
    return {"success": True, "message": f"Successfully seeded {count} products", "count": count}
