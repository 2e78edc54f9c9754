from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Sequence

FilterOp = Literal["=", "!=", "<", "<=", ">", ">=", "in"]


@dataclass(frozen=True)
class Filter:
    """A single predicate on a top-level document field."""
    field: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field, "=", value)

    @classmethod
    def is_in(cls, field: str, values: Sequence[Any]) -> "Filter":
        return cls(field, "in", list(values))


@dataclass(frozen=True)
class Sort:
    field: str
    descending: bool = False


@dataclass
class StoredDocument:
    id: str
    content: dict
    cas: Optional[int] = None


class DocumentStore(ABC):
    """Backend-agnostic contract for the document database.

    Every collection is addressed by name. ``replace`` with a ``cas`` value is
    the atomic conditional update the order and payment workflows rely on: it
    must raise ``CasMismatchError`` when the stored document changed since it
    was read.
    """

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[StoredDocument]:
        ...

    @abstractmethod
    async def insert(self, collection: str, key: str, content: dict) -> int:
        """Create a document, raising ``DocumentExistsError`` if the key is taken."""
        ...

    @abstractmethod
    async def replace(
        self, collection: str, key: str, content: dict, cas: Optional[int] = None
    ) -> int:
        ...

    @abstractmethod
    async def upsert(self, collection: str, key: str, content: dict) -> int:
        ...

    @abstractmethod
    async def remove(self, collection: str, key: str) -> bool:
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        ...

    async def ping(self) -> None:
        """Check connectivity. Backends without a remote peer do nothing."""
        return None

    async def close(self) -> None:
        return None
