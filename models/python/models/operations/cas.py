import asyncio
import logging
from typing import Callable, Optional

from clients.store import CasMismatchError, Repository, T

from .errors import OperationError, UpstreamFailureError

logger = logging.getLogger(__name__)


async def cas_retry(
    repository: Repository[T],
    id: str,
    mutator: Callable[[object], Optional[OperationError]],
    on_missing: Callable[[], OperationError],
    max_retries: int = 5,
) -> T:
    """Read-modify-write a document with CAS-guarded retry.

    *mutator* receives the entity data and mutates it in place.  It returns
    ``None`` on success or an ``OperationError`` to abort, which is raised.
    Guards therefore run against the freshest read: on ``CasMismatchError``
    the helper re-reads and calls *mutator* again, with exponential backoff
    (10 ms, 20 ms, 40 ms, ...).
    """
    backoff_ms = 10
    for attempt in range(max_retries + 1):
        item = await repository.get(id)
        if item is None:
            raise on_missing()

        error = mutator(item.data)
        if error is not None:
            raise error

        try:
            return await repository.update(item)
        except CasMismatchError:
            if attempt == max_retries:
                break
            logger.debug(f"CAS conflict on {repository.collection}/{id}, retry {attempt + 1}")
            await asyncio.sleep(backoff_ms / 1000)
            backoff_ms *= 2

    logger.warning(f"Gave up on {repository.collection}/{id} after {max_retries + 1} CAS conflicts")
    raise UpstreamFailureError("Concurrent update conflict, please retry", code="concurrent_update")
