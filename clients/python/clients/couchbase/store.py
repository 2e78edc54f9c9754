import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

from couchbase.exceptions import (
    CASMismatchException,
    CouchbaseException,
    DocumentExistsException,
    DocumentNotFoundException,
)
from couchbase.options import ReplaceOptions

from clients.store import (
    CasMismatchError,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    Filter,
    Sort,
    StoreError,
    StoredDocument,
)

from .config import CouchbaseConfig, CouchbaseConnection
from .keyspace import Keyspace, get_keyspace
from .query import build_select

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(operation: str, collection: str, key: Optional[str] = None):
    target = f"{collection}/{key}" if key else collection
    try:
        yield
    except CASMismatchException as e:
        raise CasMismatchError(f"CAS mismatch on {target}") from e
    except DocumentExistsException as e:
        raise DocumentExistsError(f"Document {target} already exists") from e
    except DocumentNotFoundException as e:
        raise DocumentNotFoundError(f"Document {target} not found") from e
    except CouchbaseException as e:
        logger.error(f"Couchbase {operation} on {target} failed: {e}")
        raise StoreError(f"Couchbase {operation} on {target} failed") from e


class CouchbaseStore(DocumentStore):
    """Document store backed by a Couchbase bucket; one collection per entity."""

    def __init__(self, config: CouchbaseConfig) -> None:
        self.connection = CouchbaseConnection(config)
        self._keyspaces: Dict[str, Keyspace] = {}

    def keyspace(self, collection: str) -> Keyspace:
        if collection not in self._keyspaces:
            self._keyspaces[collection] = get_keyspace(self.connection, collection)
        return self._keyspaces[collection]

    async def get(self, collection: str, key: str) -> Optional[StoredDocument]:
        with _translate_errors("get", collection, key):
            coll = await self.keyspace(collection).get_collection()
            try:
                result = await coll.get(key)
            except DocumentNotFoundException:
                return None
            return StoredDocument(id=key, content=result.content_as[dict], cas=result.cas)

    async def insert(self, collection: str, key: str, content: dict) -> int:
        with _translate_errors("insert", collection, key):
            result = await self.keyspace(collection).insert(key, content)
            return result.cas

    async def replace(
        self, collection: str, key: str, content: dict, cas: Optional[int] = None
    ) -> int:
        with _translate_errors("replace", collection, key):
            keyspace = self.keyspace(collection)
            if cas:
                result = await keyspace.replace(key, content, ReplaceOptions(cas=cas))
            else:
                result = await keyspace.replace(key, content)
            return result.cas

    async def upsert(self, collection: str, key: str, content: dict) -> int:
        with _translate_errors("upsert", collection, key):
            result = await self.keyspace(collection).upsert(key, content)
            return result.cas

    async def remove(self, collection: str, key: str) -> bool:
        try:
            with _translate_errors("remove", collection, key):
                await self.keyspace(collection).remove(key)
            return True
        except DocumentNotFoundError:
            return False

    async def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        keyspace = self.keyspace(collection)
        query, params = build_select(str(keyspace), filters, sort=sort, limit=limit)
        with _translate_errors("query", collection):
            rows = await keyspace.query(query, params)
        return [
            StoredDocument(id=row["id"], content=row["doc"], cas=row.get("cas"))
            for row in rows
            if row.get("doc") is not None
        ]

    async def ping(self) -> None:
        with _translate_errors("ping", self.connection.config.bucket):
            await self.connection.check_connection()

    async def close(self) -> None:
        await self.connection.close()
