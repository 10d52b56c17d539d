import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_store
from dispatch import FixedPartnerAssigner
from schemas import Address, DeliveryPartner
from store import MemoryStore, utcnow


@pytest.fixture
def store():
    return MemoryStore()


def add_product(store, product_id, name, price, stock, emoji="🍎", category="fruits"):
    now = utcnow()
    store.insert("products", {
        "name": name,
        "description": f"{name} from the test catalog",
        "price": price,
        "category": category,
        "stock_quantity": stock,
        "emoji": emoji,
        "created_at": now,
        "updated_at": now,
    }, doc_id=product_id)
    return product_id


@pytest.fixture
def products(store):
    add_product(store, "p1", "Fresh Apple", 120, 5, "🍎")
    add_product(store, "p2", "Ripe Banana", 40, 10, "🍌")
    add_product(store, "p3", "Sweet Mango", 150, 0, "🥭")
    return store


@pytest.fixture
def address():
    return Address(
        id="addr-1",
        full_name="Asha Rao",
        phone="9876543210",
        address_line1="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pin_code="560001",
        address_type="Home",
        is_default=True,
    )


@pytest.fixture
def assigner():
    return FixedPartnerAssigner(DeliveryPartner(name="Test Rider", phone="+91 12345-67890"))


@pytest.fixture
def client(store):
    from main import app
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin-1', role='admin')}"}
