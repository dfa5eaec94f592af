"""
Document store adapters.

Records are JSON-shaped dicts addressed by collection name and key. Two
backends share one interface:

- LocalDocumentStore keeps every collection in one JSON file (or in memory)
  and serializes writers with a process lock. It is correct only while a
  single process owns the file.
- MongoDocumentStore maps keys onto ``_id`` and uses conditional writes, so
  it stays correct with many writers.

Only equality filters are supported for queries.
"""
import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import DATABASE_NAME, DATABASE_URL, LOCAL_STORE_PATH
from exceptions import AllocationConflictError, KeyConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
TransactFn = Callable[[Optional[Document]], Document]


def _matches(doc: Document, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(doc.get(k) == v for k, v in filters.items())


class DocumentStore:
    """Interface shared by the store backends."""

    name = "documents"

    def get(self, collection: str, key: str) -> Optional[Document]:
        raise NotImplementedError

    def put(self, collection: str, key: str, doc: Document) -> None:
        """Overwrite (or create) the whole document."""
        raise NotImplementedError

    def insert(self, collection: str, key: str, doc: Document) -> None:
        """Create the document; raises KeyConflictError if the key exists."""
        raise NotImplementedError

    def replace_if(
        self, collection: str, key: str, expected: Dict[str, Any], doc: Document
    ) -> bool:
        """Overwrite only if the stored document matches ``expected``.

        Returns False when the document is missing or no longer matches.
        """
        raise NotImplementedError

    def delete(self, collection: str, key: str) -> None:
        raise NotImplementedError

    def find(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Document]:
        raise NotImplementedError

    def keys(self, collection: str) -> List[str]:
        raise NotImplementedError

    def list_collection_names(self) -> List[str]:
        raise NotImplementedError

    def transact(self, collection: str, key: str, fn: TransactFn) -> Document:
        """Apply ``fn`` to the current document and commit the result atomically.

        ``fn`` receives a copy of the stored document (None when absent) and
        returns the replacement. The returned document has been committed.
        Raises AllocationConflictError if another writer got there first; the
        caller decides whether to retry.
        """
        current = self.get(collection, key)
        updated = fn(copy.deepcopy(current))
        if current is None:
            try:
                self.insert(collection, key, updated)
            except KeyConflictError as e:
                raise AllocationConflictError(str(e)) from e
        elif not self.replace_if(collection, key, current, updated):
            raise AllocationConflictError(
                f"Document '{collection}/{key}' changed during transaction"
            )
        return updated


class LocalDocumentStore(DocumentStore):
    """Single-process store backed by a JSON file, or memory when path is None."""

    name = "local"

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Document]] = self._load()

    def _load(self) -> Dict[str, Dict[str, Document]]:
        if self.path is None or not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info("Loaded local store from %s", self.path)
        return data

    def _flush(self, data: Dict[str, Dict[str, Document]]) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def _commit(self, collection: str, docs: Dict[str, Document]) -> None:
        # Memory changes only once the file write has succeeded
        data = {**self._data, collection: docs}
        self._flush(data)
        self._data = data

    def get(self, collection: str, key: str) -> Optional[Document]:
        with self._lock:
            doc = self._data.get(collection, {}).get(key)
            return copy.deepcopy(doc)

    def put(self, collection: str, key: str, doc: Document) -> None:
        with self._lock:
            docs = {**self._data.get(collection, {}), key: copy.deepcopy(doc)}
            self._commit(collection, docs)

    def insert(self, collection: str, key: str, doc: Document) -> None:
        with self._lock:
            if key in self._data.get(collection, {}):
                raise KeyConflictError(collection, key)
            self.put(collection, key, doc)

    def replace_if(
        self, collection: str, key: str, expected: Dict[str, Any], doc: Document
    ) -> bool:
        with self._lock:
            current = self._data.get(collection, {}).get(key)
            if current is None or not _matches(current, expected):
                return False
            self.put(collection, key, doc)
            return True

    def delete(self, collection: str, key: str) -> None:
        with self._lock:
            docs = dict(self._data.get(collection, {}))
            if docs.pop(key, None) is not None:
                self._commit(collection, docs)

    def find(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Document]:
        with self._lock:
            docs = self._data.get(collection, {}).values()
            return [copy.deepcopy(d) for d in docs if _matches(d, filters)]

    def keys(self, collection: str) -> List[str]:
        with self._lock:
            return list(self._data.get(collection, {}).keys())

    def list_collection_names(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def transact(self, collection: str, key: str, fn: TransactFn) -> Document:
        # Holding the lock across read and write means no conflict can occur
        with self._lock:
            updated = fn(self.get(collection, key))
            self.put(collection, key, updated)
            return copy.deepcopy(updated)


class MongoDocumentStore(DocumentStore):
    """Multi-writer store on MongoDB. Document keys are stored as ``_id``."""

    def __init__(self, db):
        self.db = db
        self.name = db.name

    @classmethod
    def from_url(cls, url: str, name: str) -> "MongoDocumentStore":
        client = MongoClient(url)
        return cls(client[name])

    @staticmethod
    def _strip(doc: Optional[Document]) -> Optional[Document]:
        if doc is None:
            return None
        d = {**doc}
        d.pop("_id", None)
        return d

    def get(self, collection: str, key: str) -> Optional[Document]:
        return self._strip(self.db[collection].find_one({"_id": key}))

    def put(self, collection: str, key: str, doc: Document) -> None:
        self.db[collection].replace_one({"_id": key}, doc, upsert=True)

    def insert(self, collection: str, key: str, doc: Document) -> None:
        try:
            self.db[collection].insert_one({**doc, "_id": key})
        except DuplicateKeyError as e:
            raise KeyConflictError(collection, key) from e

    def replace_if(
        self, collection: str, key: str, expected: Dict[str, Any], doc: Document
    ) -> bool:
        res = self.db[collection].replace_one({**expected, "_id": key}, doc)
        return res.matched_count == 1

    def delete(self, collection: str, key: str) -> None:
        self.db[collection].delete_one({"_id": key})

    def find(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Document]:
        return [self._strip(d) for d in self.db[collection].find(filters or {})]

    def keys(self, collection: str) -> List[str]:
        return [d["_id"] for d in self.db[collection].find({}, {"_id": 1})]

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()


_store: Optional[DocumentStore] = None
_store_lock = threading.Lock()


def create_store() -> DocumentStore:
    """Build the store selected by configuration."""
    if DATABASE_URL and DATABASE_NAME:
        try:
            store = MongoDocumentStore.from_url(DATABASE_URL, DATABASE_NAME)
        except PyMongoError as e:
            raise StoreUnavailableError(f"Cannot connect to MongoDB: {e}") from e
        logger.info("Using MongoDB store '%s'", DATABASE_NAME)
        return store
    logger.info("Using local store at %s", LOCAL_STORE_PATH or "<memory>")
    return LocalDocumentStore(LOCAL_STORE_PATH or None)


def get_store() -> DocumentStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = create_store()
        return _store
