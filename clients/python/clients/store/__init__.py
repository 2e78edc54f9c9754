from .base import (
    DocumentStore,
    Filter,
    FilterOp,
    Sort,
    StoredDocument,
)
from .base_model import (
    BaseDocumentModel,
    BaseEntityData,
    DataT,
    Repository,
    T,
    utc_now,
)
from .exceptions import (
    CasMismatchError,
    DocumentExistsError,
    DocumentNotFoundError,
    StoreError,
)

__all__ = [
    "DocumentStore",
    "Filter",
    "FilterOp",
    "Sort",
    "StoredDocument",
    "BaseDocumentModel",
    "BaseEntityData",
    "DataT",
    "Repository",
    "T",
    "utc_now",
    "CasMismatchError",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "StoreError",
]
