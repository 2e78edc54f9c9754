"""In-process document store.

Keeps JSON-shaped documents in dictionaries and emulates the parts of the
Couchbase key/value contract the services depend on: insert fails on an
existing key, and ``replace`` with a CAS value fails when another writer got
there first. Used for local development (``STORE_BACKEND=memory``) and tests.
"""

import copy
import itertools
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from clients.store import (
    CasMismatchError,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    Filter,
    Sort,
    StoredDocument,
)

logger = logging.getLogger(__name__)


def _coerce(value: Any, like: Any) -> Any:
    """Parse stored ISO timestamps when the comparison operand is a datetime."""
    if isinstance(like, datetime) and isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _matches(content: dict, flt: Filter) -> bool:
    if flt.field not in content:
        return False
    value = content[flt.field]
    if flt.op == "in":
        return value in flt.value
    if value is None:
        if flt.op == "=":
            return flt.value is None
        if flt.op == "!=":
            return flt.value is not None
        return False
    value = _coerce(value, flt.value)
    try:
        if flt.op == "=":
            return value == flt.value
        if flt.op == "!=":
            return value != flt.value
        if flt.op == "<":
            return value < flt.value
        if flt.op == "<=":
            return value <= flt.value
        if flt.op == ">":
            return value > flt.value
        if flt.op == ">=":
            return value >= flt.value
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {flt.op}")


def _sort_key(value: Any) -> Tuple[int, Any]:
    if value is None:
        return (0, 0)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, float(value))
    if isinstance(value, str):
        try:
            return (1, datetime.fromisoformat(value).timestamp())
        except ValueError:
            return (2, value)
    return (2, str(value))


class MemoryStore(DocumentStore):
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Tuple[dict, int]]] = {}
        self._cas_counter = itertools.count(1)

    def _collection(self, name: str) -> Dict[str, Tuple[dict, int]]:
        return self._collections.setdefault(name, {})

    def _write(self, collection: str, key: str, content: dict) -> int:
        cas = next(self._cas_counter)
        self._collection(collection)[key] = (copy.deepcopy(content), cas)
        return cas

    async def get(self, collection: str, key: str) -> Optional[StoredDocument]:
        entry = self._collection(collection).get(key)
        if entry is None:
            return None
        content, cas = entry
        return StoredDocument(id=key, content=copy.deepcopy(content), cas=cas)

    async def insert(self, collection: str, key: str, content: dict) -> int:
        if key in self._collection(collection):
            raise DocumentExistsError(f"Document {collection}/{key} already exists")
        return self._write(collection, key, content)

    async def replace(
        self, collection: str, key: str, content: dict, cas: Optional[int] = None
    ) -> int:
        entry = self._collection(collection).get(key)
        if entry is None:
            raise DocumentNotFoundError(f"Document {collection}/{key} not found")
        if cas is not None and entry[1] != cas:
            raise CasMismatchError(f"CAS mismatch on {collection}/{key}")
        return self._write(collection, key, content)

    async def upsert(self, collection: str, key: str, content: dict) -> int:
        return self._write(collection, key, content)

    async def remove(self, collection: str, key: str) -> bool:
        return self._collection(collection).pop(key, None) is not None

    async def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        rows = [
            StoredDocument(id=key, content=copy.deepcopy(content), cas=cas)
            for key, (content, cas) in self._collection(collection).items()
            if all(_matches(content, flt) for flt in filters)
        ]
        if sort is not None:
            rows.sort(
                key=lambda row: _sort_key(row.content.get(sort.field)),
                reverse=sort.descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows

    def count(self, collection: str) -> int:
        return len(self._collection(collection))
