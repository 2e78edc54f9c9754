from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from couchbase.n1ql import QueryScanConsistency
from couchbase.options import QueryOptions
from couchbase.result import MutationResult

from .config import CouchbaseConnection


@dataclass
class Keyspace:
    bucket_name: str
    scope_name: str
    collection_name: str
    connection: Optional[CouchbaseConnection] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_string(cls, keyspace: str, connection: Optional[CouchbaseConnection] = None) -> "Keyspace":
        parts = keyspace.split(".")
        if len(parts) != 3:
            raise ValueError(
                "Invalid keyspace format. Expected 'bucket_name.scope_name.collection_name', "
                f"got '{keyspace}'"
            )
        return cls(*parts, connection=connection)

    def __str__(self) -> str:
        return f"`{self.bucket_name}`.`{self.scope_name}`.`{self.collection_name}`"

    def _require_connection(self) -> CouchbaseConnection:
        if self.connection is None:
            raise RuntimeError(f"Keyspace {self} is not bound to a connection")
        return self.connection

    async def query(self, query: str, params: Optional[Dict[str, Any]] = None) -> list:
        """Run a N1QL statement with request_plus consistency.

        ``${keyspace}`` in the statement is replaced with this keyspace.
        """
        cluster = await self._require_connection().get_cluster()
        query = query.replace("${keyspace}", str(self))
        options = QueryOptions(
            named_parameters=params or {},
            scan_consistency=QueryScanConsistency.REQUEST_PLUS,
        )
        result = cluster.query(query, options)
        return [row async for row in result]

    async def get_scope(self):
        cluster = await self._require_connection().get_cluster()
        bucket = cluster.bucket(self.bucket_name)
        return bucket.scope(self.scope_name)

    async def get_collection(self):
        scope = await self.get_scope()
        return scope.collection(self.collection_name)

    async def insert(self, key: str, value: dict, **kwargs) -> MutationResult:
        collection = await self.get_collection()
        return await collection.insert(key, value, **kwargs)

    async def upsert(self, key: str, value: dict, **kwargs) -> MutationResult:
        collection = await self.get_collection()
        return await collection.upsert(key, value, **kwargs)

    async def replace(self, key: str, value: dict, **kwargs) -> MutationResult:
        collection = await self.get_collection()
        return await collection.replace(key, value, **kwargs)

    async def remove(self, key: str, **kwargs) -> int:
        collection = await self.get_collection()
        result = await collection.remove(key, **kwargs)
        return result.cas


def get_keyspace(
    connection: CouchbaseConnection,
    collection_name: str,
    scope_name: Optional[str] = None,
    bucket_name: Optional[str] = None,
) -> Keyspace:
    """
    Create a Keyspace bound to a connection.

    Args:
        connection: Connection the keyspace issues its operations through
        collection_name: Name of the collection
        scope_name: Name of the scope (defaults to the connection's scope)
        bucket_name: Name of the bucket (defaults to the connection's bucket)
    """
    return Keyspace(
        bucket_name or connection.config.bucket,
        scope_name or connection.config.scope,
        collection_name,
        connection=connection,
    )
