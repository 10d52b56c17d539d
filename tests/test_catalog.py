import pytest

import catalog
from errors import OrderValidationError, ProductNotFound
from schemas import CartItem, Product, ProductUpdate


def test_seed_categories_then_products(store):
    result = catalog.seed_categories(store)
    assert result["success"] and result["count"] == len(catalog.SEED_CATEGORIES)
    assert [c["name"] for c in catalog.list_categories(store)][:2] == ["Fruits", "Vegetables"]

    again = catalog.seed_categories(store)
    assert again["success"] is False

    products = catalog.seed_products(store)
    expected = sum(len(v) for v in catalog.SEED_PRODUCTS.values())
    assert products["count"] == expected
    assert store.count("products") == expected

    fruits_id = next(c["id"] for c in catalog.list_categories(store) if c["name"] == "Fruits")
    fruits = catalog.list_products(store, fruits_id)
    assert len(fruits) == len(catalog.SEED_PRODUCTS["Fruits"])

    skipped = catalog.seed_products(store)
    assert skipped["message"].startswith("Skipped")
    assert store.count("products") == expected


def test_seed_products_without_categories(store):
    result = catalog.seed_products(store)
    assert result["count"] == 0


def test_admin_product_crud(store):
    created = catalog.create_product(store, Product(name="Nachos", price=45, category="snacks",
                                                    stock_quantity=55, emoji="🌮"))
    product_id = created["id"]

    updated = catalog.update_product(store, product_id, ProductUpdate(stock_quantity=10, price=50))
    assert updated["stock_quantity"] == 10
    assert updated["price"] == 50
    assert updated["name"] == "Nachos"

    catalog.delete_product(store, product_id)
    with pytest.raises(ProductNotFound):
        catalog.get_product(store, product_id)
    with pytest.raises(ProductNotFound):
        catalog.update_product(store, product_id, ProductUpdate(price=1))


def test_negative_stock_rejected_by_schema():
    with pytest.raises(ValueError):
        ProductUpdate(stock_quantity=-1)
    with pytest.raises(ValueError):
        Product(name="x", price=0, category="c")


def test_checkout_summary_delivery_charge(products):
    small = catalog.checkout_summary(products, [CartItem(product_id="p2", quantity=2)])
    assert (small.subtotal, small.delivery_charge, small.grand_total) == (80, 40, 120)

    large = catalog.checkout_summary(products, [CartItem(product_id="p1", quantity=1)])
    assert (large.subtotal, large.delivery_charge, large.grand_total) == (120, 0, 120)

    with pytest.raises(OrderValidationError):
        catalog.checkout_summary(products, [])
