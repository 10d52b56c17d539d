import pytest

from addresses import (
    add_address,
    delete_address,
    get_address,
    get_default_address,
    list_addresses,
    set_default_address,
    update_address,
)
from errors import AddressNotFound
from schemas import AddressIn


def address_in(name, is_default=False, address_type="Home"):
    return AddressIn(
        full_name=name,
        phone="9876543210",
        address_line1="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pin_code="560001",
        address_type=address_type,
        is_default=is_default,
    )


def defaults(addresses):
    return [a.full_name for a in addresses if a.is_default]


def test_first_address_becomes_default(store):
    addresses = add_address(store, "u1", address_in("Home"))
    assert defaults(addresses) == ["Home"]


def test_new_default_replaces_old(store):
    add_address(store, "u1", address_in("Home"))
    add_address(store, "u1", address_in("Office", address_type="Work"))
    addresses = add_address(store, "u1", address_in("Parents", is_default=True, address_type="Other"))
    assert defaults(addresses) == ["Parents"]
    assert len(list_addresses(store, "u1")) == 3


def test_set_default(store):
    add_address(store, "u1", address_in("Home"))
    office = add_address(store, "u1", address_in("Office"))[-1]
    addresses = set_default_address(store, "u1", office.id)
    assert defaults(addresses) == ["Office"]
    assert get_default_address(store, "u1").id == office.id


def test_update_keeps_single_default(store):
    home = add_address(store, "u1", address_in("Home"))[0]
    office = add_address(store, "u1", address_in("Office"))[-1]

    addresses = update_address(store, "u1", office.id, address_in("Office 2", is_default=True))
    assert defaults(addresses) == ["Office 2"]

    addresses = update_address(store, "u1", office.id, address_in("Office 3", is_default=False))
    assert defaults(addresses) == ["Office 3"]
    assert get_address(store, "u1", home.id).is_default is False


def test_deleting_default_promotes_first_remaining(store):
    home = add_address(store, "u1", address_in("Home"))[0]
    add_address(store, "u1", address_in("Office"))
    add_address(store, "u1", address_in("Gym"))

    addresses = delete_address(store, "u1", home.id)
    assert [a.full_name for a in addresses] == ["Office", "Gym"]
    assert defaults(addresses) == ["Office"]


def test_deleting_only_address_leaves_no_default(store):
    home = add_address(store, "u1", address_in("Home"))[0]
    assert delete_address(store, "u1", home.id) == []
    assert get_default_address(store, "u1") is None


def test_unknown_address(store):
    add_address(store, "u1", address_in("Home"))
    with pytest.raises(AddressNotFound):
        get_address(store, "u1", "nope")
    with pytest.raises(AddressNotFound):
        delete_address(store, "u1", "nope")
    with pytest.raises(AddressNotFound):
        set_default_address(store, "u2", "nope")


def test_phone_and_pin_shapes():
    with pytest.raises(ValueError):
        AddressIn(full_name="X", phone="12345", address_line1="a", city="c", state="s", pin_code="560001")
    with pytest.raises(ValueError):
        AddressIn(full_name="X", phone="9876543210", address_line1="a", city="c", state="s", pin_code="56001")
