"""JSON-file document store with serialized, atomic transactions.

Each collection lives in ``<data_dir>/<collection>.json`` as a list of
entity dicts. All mutations go through ``JsonStore.transaction()``:

    with store.transaction() as txn:
        order = txn.get("orders", order_id)
        order.status = OrderStatus.ASSIGNED
        txn.put("orders", order)

Transactions on the same data directory are serialized by a process-wide
re-entrant lock. Collections are read lazily on first access and every
collection touched by ``put`` / ``append`` is rewritten atomically (temp file
then ``os.replace``) when the block exits without an exception. Callbacks
registered with ``after_commit`` run once the data is on disk.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from .models import (
    User,
    Request,
    Quote,
    Order,
    Expert,
    WithdrawalRequest,
    Review,
    FinancialTransaction,
    Notification,
)
from .models.common import utcnow

logger = logging.getLogger(__name__)


COLLECTIONS: dict[str, type] = {
    "users": User,
    "requests": Request,
    "quotes": Quote,
    "orders": Order,
    "experts": Expert,
    "withdrawals": WithdrawalRequest,
    "reviews": Review,
    "transactions": FinancialTransaction,
    "notifications": Notification,
}

_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(data_dir: Path) -> threading.RLock:
    key = str(data_dir.resolve())
    with _LOCKS_GUARD:
        if key not in _LOCKS:
            _LOCKS[key] = threading.RLock()
        return _LOCKS[key]


class StoreError(Exception):
    """Raised on misuse of the store (unknown collection, ledger overwrite)."""


class Transaction:
    """A consistent view of the store for the duration of one ``with`` block."""

    def __init__(self, store: "JsonStore"):
        self.store = store
        self._collections: dict[str, dict[str, Any]] = {}
        self._dirty: set[str] = set()
        self._callbacks: list[Callable[[], None]] = []

    def _collection(self, name: str) -> dict[str, Any]:
        if name not in COLLECTIONS:
            raise StoreError(f"Unknown collection: {name}")
        if name not in self._collections:
            self._collections[name] = self.store._read(name)
        return self._collections[name]

    def get(self, collection: str, entity_id: str) -> Optional[Any]:
        """Get an entity by ID."""
        return self._collection(collection).get(entity_id)

    def list(self, collection: str) -> list:
        """All entities of a collection, in insertion order."""
        return list(self._collection(collection).values())

    def find(self, collection: str, **criteria) -> list:
        """Entities whose attributes equal every keyword given."""
        return [
            entity for entity in self._collection(collection).values()
            if all(getattr(entity, key) == value for key, value in criteria.items())
        ]

    def put(self, collection: str, entity: Any) -> Any:
        """Insert or replace an entity, bumping its version."""
        entity.version += 1
        entity.updated_at = self.store.now()
        self._collection(collection)[entity.id] = entity
        self._dirty.add(collection)
        return entity

    def append(self, collection: str, entry: Any) -> Any:
        """Add an immutable entry. Existing IDs are never overwritten."""
        items = self._collection(collection)
        if entry.id in items:
            raise StoreError(f"{collection} entry {entry.id} already exists")
        items[entry.id] = entry
        self._dirty.add(collection)
        return entry

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once this transaction has been written."""
        self._callbacks.append(callback)

    def _commit(self) -> None:
        for name in sorted(self._dirty):
            self.store._write(name, self._collections[name].values())
        if self._dirty:
            logger.debug("Committed collections: %s", ", ".join(sorted(self._dirty)))


class JsonStore:
    """Document store rooted at a data directory."""

    def __init__(self, data_dir: Path, clock: Optional[Callable[[], datetime]] = None):
        self.data_dir = Path(data_dir)
        self.clock = clock or utcnow
        self._lock = _lock_for(self.data_dir)
        self._local = threading.local()
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def now(self) -> datetime:
        return self.clock()

    def path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Open a transaction; nested calls on the same thread join the outer one."""
        current = getattr(self._local, "transaction", None)
        if current is not None:
            yield current
            return

        with self._lock:
            txn = Transaction(self)
            self._local.transaction = txn
            try:
                yield txn
                txn._commit()
            finally:
                self._local.transaction = None

        for callback in txn._callbacks:
            callback()

    # Convenience reads, each in its own short transaction

    def get(self, collection: str, entity_id: str) -> Optional[Any]:
        with self.transaction() as txn:
            return txn.get(collection, entity_id)

    def list(self, collection: str) -> list:
        with self.transaction() as txn:
            return txn.list(collection)

    def _read(self, collection: str) -> dict[str, Any]:
        path = self.path_for(collection)
        if not path.exists():
            return {}
        with open(path, "r") as f:
            data = json.load(f)
        model = COLLECTIONS[collection]
        entities = (model.from_dict(item) for item in data)
        return {entity.id: entity for entity in entities}

    def _write(self, collection: str, entities) -> None:
        path = self.path_for(collection)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{collection}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump([e.to_dict() for e in entities], f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
