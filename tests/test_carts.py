import pytest

from carts import (
    add_to_cart,
    add_to_guest_cart,
    cart_item_count,
    clear_cart,
    get_cart,
    get_guest_cart,
    merge_cart_items,
    remove_from_cart,
    transfer_guest_cart,
    update_cart_item,
)
from errors import CartItemNotFound, OrderValidationError, ProductNotFound


def quantities(cart):
    return {i.product_id: i.quantity for i in cart.items}


def test_cart_created_empty_on_first_access(products):
    cart = get_cart(products, "u1")
    assert cart.user_id == "u1"
    assert cart.items == []
    assert products.get("carts", "u1") is not None


def test_add_sums_existing_line(products):
    add_to_cart(products, "u1", "p1", 1)
    add_to_cart(products, "u1", "p2", 2)
    cart = add_to_cart(products, "u1", "p1", 3)
    assert quantities(cart) == {"p1": 4, "p2": 2}
    assert cart_item_count(cart) == 6


def test_add_rejects_unknown_product_and_bad_quantity(products):
    with pytest.raises(ProductNotFound):
        add_to_cart(products, "u1", "nope", 1)
    with pytest.raises(OrderValidationError):
        add_to_cart(products, "u1", "p1", 0)


def test_update_and_remove(products):
    add_to_cart(products, "u1", "p1", 1)
    add_to_cart(products, "u1", "p2", 1)

    assert quantities(update_cart_item(products, "u1", "p1", 5)) == {"p1": 5, "p2": 1}
    assert quantities(update_cart_item(products, "u1", "p1", 0)) == {"p2": 1}
    assert quantities(remove_from_cart(products, "u1", "p2")) == {}

    with pytest.raises(CartItemNotFound):
        update_cart_item(products, "u1", "p1", 2)


def test_clear_empties_without_deleting(products):
    add_to_cart(products, "u1", "p1", 2)
    cart = clear_cart(products, "u1")
    assert cart.items == []
    assert products.get("carts", "u1")["items"] == []


def test_merge_cart_items_by_product():
    base = [{"product_id": "p1", "quantity": 1, "added_at": "first"}]
    incoming = [
        {"product_id": "p2", "quantity": 2, "added_at": "later"},
        {"product_id": "p1", "quantity": 3, "added_at": "later"},
    ]
    merged = merge_cart_items(base, incoming)
    assert merged == [
        {"product_id": "p1", "quantity": 4, "added_at": "first"},
        {"product_id": "p2", "quantity": 2, "added_at": "later"},
    ]
    assert base[0]["quantity"] == 1


def test_guest_cart_transfer(products):
    add_to_cart(products, "u1", "p1", 1)
    add_to_guest_cart(products, "sess-1", "p1", 2)
    add_to_guest_cart(products, "sess-1", "p2", 1)
    assert len(get_guest_cart(products, "sess-1")) == 2

    merged = transfer_guest_cart(products, "sess-1", "u1")

    assert merged == 2
    assert quantities(get_cart(products, "u1")) == {"p1": 3, "p2": 1}
    assert get_guest_cart(products, "sess-1") == []
    assert products.get("guest_carts", "sess-1") is None


def test_transfer_of_empty_guest_cart(products):
    add_to_cart(products, "u1", "p1", 1)
    assert transfer_guest_cart(products, "unknown", "u1") == 0
    assert quantities(get_cart(products, "u1")) == {"p1": 1}
