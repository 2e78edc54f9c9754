import uuid
from datetime import datetime, timezone
from typing import Callable, ClassVar, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from .base import DocumentStore, Filter, Sort, StoredDocument


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseEntityData(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by_user_id: Optional[str] = None


DataT = TypeVar("DataT", bound=BaseEntityData)
T = TypeVar("T", bound="BaseDocumentModel")


class BaseDocumentModel(BaseModel, Generic[DataT]):
    id: str
    data: DataT
    cas: Optional[int] = None

    _collection_name: ClassVar[str] = ""

    @staticmethod
    def model_dump_with_excluded_attributes(data: BaseEntityData) -> dict:
        """
        Converts the entity data to a dictionary for database storage,
        ensuring fields marked with exclude=True are included.
        """
        doc = data.model_dump(mode="json")
        for field_name, field_info in type(data).model_fields.items():
            if field_info.exclude:
                value = getattr(data, field_name)
                if value is not None:
                    doc[field_name] = value
        return doc

    @classmethod
    def collection_name(cls) -> str:
        if not cls._collection_name:
            raise ValueError(f"_collection_name not set for {cls.__name__}")
        return cls._collection_name

    @classmethod
    def from_stored(cls: Type[T], stored: StoredDocument) -> T:
        return cls(id=stored.id, data=stored.content, cas=stored.cas)


class Repository(Generic[T]):
    """Persistence for one entity type, bound to an injected store.

    Usage::

        orders = Repository(store, Order)
        order = await orders.get(order_id)
        order.data.status = "completed"
        await orders.update(order)   # CAS-guarded when order.cas is set
    """

    def __init__(
        self,
        store: DocumentStore,
        model: Type[T],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.model = model
        self.collection = model.collection_name()
        self._clock = clock

    def _stamp(self, data: BaseEntityData, user_id: Optional[str] = None) -> dict:
        now = self._clock()
        if data.created_at is None:
            data.created_at = now
        data.updated_at = now
        if user_id:
            data.created_by_user_id = user_id
        return self.model.model_dump_with_excluded_attributes(data)

    async def get(self, id: str) -> Optional[T]:
        stored = await self.store.get(self.collection, id)
        if stored is None:
            return None
        return self.model.from_stored(stored)

    async def create(self, data: BaseEntityData, key: Optional[str] = None, user_id: Optional[str] = None) -> T:
        if key is None:
            key = str(uuid.uuid4())
        doc = self._stamp(data, user_id)
        cas = await self.store.insert(self.collection, key, doc)
        return self.model(id=key, data=data, cas=cas)

    async def create_or_update(self, key: str, data: BaseEntityData, user_id: Optional[str] = None) -> T:
        """Idempotently create or overwrite a document with a deterministic key."""
        doc = self._stamp(data, user_id)
        cas = await self.store.upsert(self.collection, key, doc)
        return self.model(id=key, data=data, cas=cas)

    async def update(self, item: T) -> T:
        item.data.updated_at = self._clock()
        doc = self.model.model_dump_with_excluded_attributes(item.data)
        item.cas = await self.store.replace(self.collection, item.id, doc, cas=item.cas)
        return item

    async def find(
        self,
        *filters: Filter,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        rows = await self.store.find(self.collection, filters, sort=sort, limit=limit)
        return [self.model.from_stored(row) for row in rows]

    async def get_many(self, ids: Sequence[str]) -> List[T]:
        items = []
        for id in ids:
            item = await self.get(id)
            if item is not None:
                items.append(item)
        return items
