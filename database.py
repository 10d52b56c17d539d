"""
MongoDB backing store.

`get_store()` is the FastAPI dependency every route uses. With
DATABASE_URL set it returns a `MongoStore`; otherwise the process falls
back to a single in-memory store.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from errors import StoreError, StoreUnavailable, TransactionConflict
from store import ABSENT, VERSION_FIELD, DocumentStore, MemoryStore, Write, new_id, utcnow

logger = logging.getLogger(__name__)


def _from_mongo(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    doc.pop(VERSION_FIELD, None)
    return doc


def _version_of(doc: Optional[dict]) -> int:
    if doc is None:
        return ABSENT
    # Documents written outside this service have no version yet
    return doc.get(VERSION_FIELD, 1)


def _version_filter(doc_id: str, version: int) -> dict:
    if version == 1:
        return {"_id": doc_id, "$or": [{VERSION_FIELD: 1}, {VERSION_FIELD: {"$exists": False}}]}
    return {"_id": doc_id, VERSION_FIELD: version}


def _bump(fields: dict) -> list:
    """Update pipeline that sets `fields` and moves the version past the one read.

    Unversioned documents read as version 1, so they are written as 2.
    """
    stage = {k: {"$literal": v} for k, v in fields.items()}
    stage[VERSION_FIELD] = {"$add": [{"$ifNull": ["$" + VERSION_FIELD, 1]}, 1]}
    return [{"$set": stage}]


class MongoStore(DocumentStore):
    """DocumentStore over a MongoDB replica set.

    Commits run inside a client-session transaction; `with_transaction`
    retries Mongo's transient errors, while version mismatches surface as
    `TransactionConflict` for `run_transaction` to retry.
    """

    def __init__(self, client: MongoClient, database_name: str):
        self.client = client
        self.db = client[database_name]

    @contextmanager
    def _guard(self):
        try:
            yield
        except PyMongoError as e:
            logger.exception("MongoDB operation failed")
            raise StoreUnavailable(str(e)) from e

    def read_versioned(self, collection, doc_id):
        with self._guard():
            doc = self.db[collection].find_one({"_id": doc_id})
        return _from_mongo(doc), _version_of(doc)

    def find(self, collection, filters=None, sort=None, limit=None):
        with self._guard():
            cursor = self.db[collection].find(filters or {})
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return [_from_mongo(d) for d in cursor]

    def count(self, collection, filters=None):
        with self._guard():
            return self.db[collection].count_documents(filters or {})

    def insert(self, collection, data, doc_id=None):
        doc_id = doc_id or new_id()
        doc = {k: v for k, v in data.items() if k != "id"}
        doc.update({"_id": doc_id, VERSION_FIELD: 1})
        with self._guard():
            try:
                self.db[collection].insert_one(doc)
            except DuplicateKeyError as e:
                raise StoreError(f"{collection}/{doc_id} already exists") from e
        return doc_id

    def set(self, collection, doc_id, data):
        # Overwrite needs the current version, so it goes through a session
        self.commit({}, [Write("set", collection, doc_id, data)])

    def update(self, collection, doc_id, fields):
        with self._guard():
            res = self.db[collection].update_one(
                {"_id": doc_id}, _bump(fields)
            )
        return res.matched_count > 0

    def delete(self, collection, doc_id):
        with self._guard():
            res = self.db[collection].delete_one({"_id": doc_id})
        return res.deleted_count > 0

    def list_collections(self):
        with self._guard():
            return sorted(self.db.list_collection_names())

    def commit(self, reads, writes):
        written = {(w.collection, w.doc_id) for w in writes}

        def body(session):
            for (collection, doc_id), version in reads.items():
                if (collection, doc_id) in written:
                    continue
                current = self.db[collection].find_one(
                    {"_id": doc_id}, {VERSION_FIELD: 1}, session=session
                )
                if _version_of(current) != version:
                    raise TransactionConflict(f"{collection}/{doc_id} changed since it was read")
            for write in writes:
                self._apply(write, reads.get((write.collection, write.doc_id)), session)

        with self._guard():
            with self.client.start_session() as session:
                session.with_transaction(body)

    def _apply(self, write: Write, expected: Optional[int], session) -> None:
        coll = self.db[write.collection]
        if write.op == "delete":
            filt = {"_id": write.doc_id} if expected is None else _version_filter(write.doc_id, expected)
            res = coll.delete_one(filt, session=session)
            if expected not in (None, ABSENT) and res.deleted_count == 0:
                raise TransactionConflict(f"{write.collection}/{write.doc_id} changed before delete")
            return

        data = {k: v for k, v in (write.data or {}).items() if k != "id"}
        if write.op == "update":
            filt = {"_id": write.doc_id} if expected is None else _version_filter(write.doc_id, expected)
            res = coll.update_one(filt, _bump(data), session=session)
            if expected not in (None, ABSENT) and res.matched_count == 0:
                raise TransactionConflict(f"{write.collection}/{write.doc_id} changed before update")
            return

        if expected == ABSENT:
            try:
                coll.insert_one({**data, "_id": write.doc_id, VERSION_FIELD: 1}, session=session)
            except DuplicateKeyError:
                raise TransactionConflict(f"{write.collection}/{write.doc_id} was created concurrently")
            return
        if expected is None:
            current = coll.find_one({"_id": write.doc_id}, {VERSION_FIELD: 1}, session=session)
            expected = _version_of(current)
            if current is None:
                coll.insert_one({**data, "_id": write.doc_id, VERSION_FIELD: 1}, session=session)
                return
        res = coll.replace_one(
            _version_filter(write.doc_id, expected),
            {**data, VERSION_FIELD: expected + 1},
            session=session,
        )
        if res.matched_count == 0:
            raise TransactionConflict(f"{write.collection}/{write.doc_id} changed before set")


_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        if config.DATABASE_URL:
            client = MongoClient(config.DATABASE_URL, tz_aware=True)
            _store = MongoStore(client, config.DATABASE_NAME)
            logger.info("Using MongoDB database %s", config.DATABASE_NAME)
        else:
            logger.warning("DATABASE_URL not set; using an in-memory store")
            _store = MemoryStore()
    return _store


def create_document(store: DocumentStore, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a new document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = utcnow()
    return store.insert(collection_name, {**data, "created_at": now, "updated_at": now})


def get_documents(store: DocumentStore, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, sort=None) -> List[dict]:
    return store.find(collection_name, filter_dict, sort=sort, limit=limit)
