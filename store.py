"""
Document store contract and the optimistic transaction loop.

Every stored document carries a version number that is bumped on each
write. A transaction records the version of every document it reads,
stages its writes, and hands both to `DocumentStore.commit`, which applies
the writes only if none of the read versions moved. `run_transaction`
re-executes the whole body on conflict, so bodies must not touch anything
outside the transaction they are given.
"""
import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from bson import ObjectId

import config
from errors import (
    ReadAfterWriteError,
    StoreError,
    TransactionAborted,
    TransactionConflict,
)

logger = logging.getLogger(__name__)

VERSION_FIELD = "_version"
ABSENT = 0  # version reported for a document that does not exist

T = TypeVar("T")
DocKey = Tuple[str, str]
SortSpec = Sequence[Tuple[str, int]]


def new_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Write:
    op: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


class DocumentStore:
    """Keyed documents grouped in collections, plus an atomic commit primitive."""

    def read_versioned(self, collection: str, doc_id: str) -> Tuple[Optional[dict], int]:
        raise NotImplementedError

    def commit(self, reads: Dict[DocKey, int], writes: List[Write]) -> None:
        """Apply `writes` atomically iff every document in `reads` still has its recorded version."""
        raise NotImplementedError

    def find(self, collection: str, filters: Optional[dict] = None,
             sort: Optional[SortSpec] = None, limit: Optional[int] = None) -> List[dict]:
        raise NotImplementedError

    def insert(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    def list_collections(self) -> List[str]:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc, _ = self.read_versioned(collection, doc_id)
        return doc

    def count(self, collection: str, filters: Optional[dict] = None) -> int:
        return len(self.find(collection, filters))


class Transaction:
    """Read-then-write staging area handed to a transaction body.

    All reads must be issued before the first write is staged; a read after
    a write raises `ReadAfterWriteError`.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._reads: Dict[DocKey, int] = {}
        self._snapshots: Dict[DocKey, Optional[dict]] = {}
        self._writes: List[Write] = []

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        if self._writes:
            raise ReadAfterWriteError(
                f"read of {collection}/{doc_id} issued after a write in the same transaction"
            )
        key = (collection, doc_id)
        if key not in self._snapshots:
            doc, version = self._store.read_versioned(collection, doc_id)
            self._reads[key] = version
            self._snapshots[key] = doc
        return copy.deepcopy(self._snapshots[key])

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._writes.append(Write("set", collection, doc_id, copy.deepcopy(data)))

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        self._writes.append(Write("update", collection, doc_id, copy.deepcopy(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(Write("delete", collection, doc_id))

    @property
    def writes(self) -> List[Write]:
        return list(self._writes)

    def commit(self) -> None:
        self._store.commit(dict(self._reads), list(self._writes))


def run_transaction(store: DocumentStore, body: Callable[[Transaction], T],
                    max_attempts: Optional[int] = None) -> T:
    """Run `body` in a fresh transaction until it commits without conflict.

    Exceptions raised by the body abort the attempt and propagate untouched;
    nothing is written. Conflicts are retried up to `max_attempts` times,
    after which `TransactionAborted` is raised.
    """
    attempts = max_attempts or config.TRANSACTION_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        txn = Transaction(store)
        result = body(txn)
        try:
            txn.commit()
        except TransactionConflict as e:
            logger.debug("Transaction conflict (attempt %d/%d): %s", attempt, attempts, e)
            continue
        if attempt > 1:
            logger.info("Transaction committed after %d attempts", attempt)
        return result
    logger.warning("Transaction aborted after %d conflicting attempts", attempts)
    raise TransactionAborted(f"Transaction aborted after {attempts} attempts")


# ----------------------- In-memory store -----------------------

def _public(doc_id: str, stored: dict) -> dict:
    doc = {k: copy.deepcopy(v) for k, v in stored.items() if k != VERSION_FIELD}
    doc["id"] = doc_id
    return doc


def _matches(doc: dict, filters: Optional[dict]) -> bool:
    if not filters:
        return True
    return all(doc.get(k) == v for k, v in filters.items())


def _sorted(docs: List[dict], sort: Optional[SortSpec]) -> List[dict]:
    # Stable sorts applied from the least significant key
    for field, direction in reversed(list(sort or [])):
        docs.sort(key=lambda d: (d.get(field) is None, d.get(field)), reverse=direction < 0)
    return docs


class MemoryStore(DocumentStore):
    """Process-local store used for development and tests.

    Documents are deep-copied on the way in and out so callers never hold a
    reference into the store.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()

    def _collection(self, name: str) -> Dict[str, dict]:
        return self._collections.setdefault(name, {})

    def read_versioned(self, collection, doc_id):
        with self._lock:
            stored = self._collection(collection).get(doc_id)
            if stored is None:
                return None, ABSENT
            return _public(doc_id, stored), stored[VERSION_FIELD]

    def find(self, collection, filters=None, sort=None, limit=None):
        with self._lock:
            docs = [
                _public(doc_id, stored)
                for doc_id, stored in self._collection(collection).items()
                if _matches(stored, filters)
            ]
        docs = _sorted(docs, sort)
        if limit:
            docs = docs[:limit]
        return docs

    def insert(self, collection, data, doc_id=None):
        doc_id = doc_id or new_id()
        with self._lock:
            if doc_id in self._collection(collection):
                raise StoreError(f"{collection}/{doc_id} already exists")
            self._apply(Write("set", collection, doc_id, data))
        return doc_id

    def set(self, collection, doc_id, data):
        with self._lock:
            self._apply(Write("set", collection, doc_id, data))

    def update(self, collection, doc_id, fields):
        with self._lock:
            if doc_id not in self._collection(collection):
                return False
            self._apply(Write("update", collection, doc_id, fields))
            return True

    def delete(self, collection, doc_id):
        with self._lock:
            if doc_id not in self._collection(collection):
                return False
            self._apply(Write("delete", collection, doc_id))
            return True

    def commit(self, reads, writes):
        with self._lock:
            for (collection, doc_id), version in reads.items():
                stored = self._collection(collection).get(doc_id)
                current = stored[VERSION_FIELD] if stored is not None else ABSENT
                if current != version:
                    raise TransactionConflict(
                        f"{collection}/{doc_id} changed (read v{version}, now v{current})"
                    )
            for write in writes:
                self._apply(write)

    def list_collections(self):
        with self._lock:
            return sorted(name for name, docs in self._collections.items() if docs)

    def _apply(self, write: Write) -> None:
        docs = self._collection(write.collection)
        current = docs.get(write.doc_id)
        version = current[VERSION_FIELD] if current is not None else ABSENT
        if write.op == "delete":
            docs.pop(write.doc_id, None)
            return
        if write.op == "update":
            if current is None:
                return
            doc = dict(current)
            doc.update(copy.deepcopy(write.data or {}))
        else:
            doc = copy.deepcopy(write.data or {})
        doc.pop("id", None)
        doc[VERSION_FIELD] = version + 1
        docs[write.doc_id] = doc
