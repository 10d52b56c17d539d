"""
Per-user address book.

At most one address is the default. The first address a user saves becomes
the default; deleting the default promotes the first remaining address.
"""
import logging
from typing import List, Optional

from errors import AddressNotFound
from schemas import Address, AddressIn
from store import DocumentStore, new_id, run_transaction, utcnow

logger = logging.getLogger(__name__)

ADDRESS_BOOKS = "address_books"


def _save(txn, user_id: str, book: Optional[dict], addresses: List[dict]) -> None:
    now = utcnow()
    doc = book or {"user_id": user_id, "created_at": now}
    doc.update(addresses=addresses, updated_at=now)
    txn.set(ADDRESS_BOOKS, user_id, doc)


def list_addresses(store: DocumentStore, user_id: str) -> List[Address]:
    book = store.get(ADDRESS_BOOKS, user_id) or {}
    return [Address.model_validate(a) for a in book.get("addresses", [])]


def get_address(store: DocumentStore, user_id: str, address_id: str) -> Address:
    for address in list_addresses(store, user_id):
        if address.id == address_id:
            return address
    raise AddressNotFound(address_id)


def get_default_address(store: DocumentStore, user_id: str) -> Optional[Address]:
    addresses = list_addresses(store, user_id)
    for address in addresses:
        if address.is_default:
            return address
    return addresses[0] if addresses else None


def add_address(store: DocumentStore, user_id: str, data: AddressIn) -> List[Address]:
    new = Address(id=new_id(), **data.model_dump())

    def body(txn):
        book = txn.get(ADDRESS_BOOKS, user_id)
        addresses = list((book or {}).get("addresses", []))
        entry = new.model_dump()
        if entry["is_default"]:
            addresses = [dict(a, is_default=False) for a in addresses]
        if not addresses:
            entry["is_default"] = True
        addresses.append(entry)
        _save(txn, user_id, book, addresses)
        return addresses

    addresses = run_transaction(store, body)
    logger.info("Added address %s for user %s", new.id, user_id)
    return [Address.model_validate(a) for a in addresses]


def update_address(store: DocumentStore, user_id: str, address_id: str, data: AddressIn) -> List[Address]:
    def body(txn):
        book = txn.get(ADDRESS_BOOKS, user_id)
        addresses = list((book or {}).get("addresses", []))
        if not any(a["id"] == address_id for a in addresses):
            raise AddressNotFound(address_id)
        updated = []
        for a in addresses:
            if a["id"] == address_id:
                replacement = dict(data.model_dump(), id=address_id)
                # Keep the only default when the edit would leave none
                if a.get("is_default") and not data.is_default:
                    replacement["is_default"] = True
                updated.append(replacement)
            elif data.is_default:
                updated.append(dict(a, is_default=False))
            else:
                updated.append(a)
        _save(txn, user_id, book, updated)
        return updated

    return [Address.model_validate(a) for a in run_transaction(store, body)]


def delete_address(store: DocumentStore, user_id: str, address_id: str) -> List[Address]:
    def body(txn):
        book = txn.get(ADDRESS_BOOKS, user_id)
        addresses = list((book or {}).get("addresses", []))
        removed = next((a for a in addresses if a["id"] == address_id), None)
        if removed is None:
            raise AddressNotFound(address_id)
        remaining = [a for a in addresses if a["id"] != address_id]
        if removed.get("is_default") and remaining:
            remaining[0] = dict(remaining[0], is_default=True)
        _save(txn, user_id, book, remaining)
        return remaining

    return [Address.model_validate(a) for a in run_transaction(store, body)]


def set_default_address(store: DocumentStore, user_id: str, address_id: str) -> List[Address]:
    def body(txn):
        book = txn.get(ADDRESS_BOOKS, user_id)
        addresses = list((book or {}).get("addresses", []))
        if not any(a["id"] == address_id for a in addresses):
            raise AddressNotFound(address_id)
        updated = [dict(a, is_default=a["id"] == address_id) for a in addresses]
        _save(txn, user_id, book, updated)
        return updated

    return [Address.model_validate(a) for a in run_transaction(store, body)]
