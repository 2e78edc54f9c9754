from .config import (
    CouchbaseConfig,
    CouchbaseConnection,
)
from .keyspace import (
    Keyspace,
    get_keyspace,
)
from .query import build_select
from .store import CouchbaseStore

__all__ = [
    "CouchbaseConfig",
    "CouchbaseConnection",
    "Keyspace",
    "get_keyspace",
    "build_select",
    "CouchbaseStore",
]
