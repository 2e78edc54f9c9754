import asyncio
import logging
from datetime import timedelta
from typing import Literal, Optional

from acouchbase.cluster import Cluster as AsyncCluster
from couchbase.auth import PasswordAuthenticator
from couchbase.options import ClusterOptions
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CouchbaseConfig(BaseModel):
    username: str
    password: str
    bucket: str
    host: str
    protocol: Literal["couchbase", "couchbases"] = "couchbase"
    scope: str = "_default"
    ready_timeout_seconds: int = 50

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}"


class CouchbaseConnection:
    """Owns the cluster handle for one store instance.

    The cluster is created lazily on first use and cached on the instance,
    so tests and tools can hold several independent connections.
    """

    def __init__(self, config: CouchbaseConfig) -> None:
        self.config = config
        self._auth = PasswordAuthenticator(config.username, config.password)
        self._cluster: Optional[AsyncCluster] = None

    async def get_cluster(
        self,
        max_retries: int = 10,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> AsyncCluster:
        """
        Returns the cached cluster connection, connecting on first use.
        Retries with exponential backoff to ride out startup races with the
        database container.
        """
        if self._cluster is None:
            delay = initial_delay
            cluster = None
            for attempt in range(1, max_retries + 1):
                try:
                    cluster = await AsyncCluster.connect(self.config.url, ClusterOptions(self._auth))
                    break
                except Exception as e:
                    if attempt == max_retries:
                        raise
                    logger.warning(
                        f"Couchbase connect attempt {attempt}/{max_retries} failed: {e}; "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, max_delay)

            await cluster.wait_until_ready(timedelta(seconds=self.config.ready_timeout_seconds))
            self._cluster = cluster
        return self._cluster

    async def get_default_bucket(self):
        cluster = await self.get_cluster()
        return cluster.bucket(self.config.bucket)

    async def check_connection(self) -> None:
        """Explicitly checks the connection to the cluster (startup check)."""
        cluster = await self.get_cluster()
        await cluster.ping()

    async def close(self) -> None:
        if self._cluster is not None:
            await self._cluster.close()
            self._cluster = None
