class StoreError(Exception):
    """Base exception for document store backends."""
    pass


class DocumentNotFoundError(StoreError):
    """Raised when a replace targets a key that does not exist."""
    pass


class DocumentExistsError(StoreError):
    """Raised when an insert targets a key that already exists."""
    pass


class CasMismatchError(StoreError):
    """Raised when a CAS-guarded replace loses a race with another writer."""
    pass
