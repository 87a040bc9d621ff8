"""
Queue endpoint resolution.

Maps logical queue names to queue URLs, caching lookups for the lifetime of
the resolver.
"""

import asyncio
import functools
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import Any, Dict, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from dispatcher.config import DispatcherConfig, get_config
from dispatcher.errors import ResolutionError
from dispatcher.transport.sqs import create_executor, create_sqs_client

logger = structlog.get_logger(__name__)

NON_EXISTENT_QUEUE_CODES = {
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
}


def is_queue_url(destination: str) -> bool:
    """Check whether a destination is already a queue URL."""
    return destination.startswith(("https://", "http://"))


class QueueResolver(ABC):
    """
    Abstract base class for queue resolvers.

    Implementations must accept a queue URL as input and return it unchanged,
    so callers can pass either form.
    """

    @abstractmethod
    async def resolve(self, queue_name: str) -> str:
        """
        Resolve a logical queue name to its URL.

        Args:
            queue_name: Logical queue name or queue URL

        Returns:
            Queue URL

        Raises:
            ResolutionError: If the queue does not exist
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the resolver."""
        pass


class SqsQueueResolver(QueueResolver):
    """
    Resolves queue names with SQS GetQueueUrl.

    Results are memoized per name. The cache may be shared by concurrent
    dispatches and threads; concurrent misses for the same name may each call
    GetQueueUrl and the last write wins.
    """

    def __init__(
        self,
        client: Any = None,
        config: Optional[DispatcherConfig] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the resolver.

        Args:
            client: boto3 SQS client (built from config if not provided)
            config: Dispatcher configuration
            executor: Worker pool for SDK calls
        """
        self.config = config or get_config()
        self.client = client if client is not None else create_sqs_client(self.config)
        self._owns_executor = executor is None
        self._executor = executor or create_executor(self.config)

        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

        self._stats = {
            "lookups": 0,
            "cache_hits": 0,
        }

    async def resolve(self, queue_name: str) -> str:
        """Resolve a queue name, using the cache when possible."""
        if not queue_name:
            raise ResolutionError(str(queue_name), "empty queue name")

        if is_queue_url(queue_name):
            return queue_name

        name = self.config.queue_name(queue_name)

        if self.config.resolver_cache_enabled:
            with self._lock:
                cached = self._cache.get(name)
                if cached is not None:
                    self._stats["cache_hits"] += 1
            if cached is not None:
                return cached

        url = await self._lookup(queue_name, name)

        if self.config.resolver_cache_enabled:
            with self._lock:
                self._cache[name] = url

        return url

    async def _lookup(self, queue_name: str, name: str) -> str:
        """Call GetQueueUrl on the worker pool."""
        with self._lock:
            self._stats["lookups"] += 1
        loop = asyncio.get_running_loop()

        try:
            response = await loop.run_in_executor(
                self._executor,
                functools.partial(self.client.get_queue_url, QueueName=name),
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in NON_EXISTENT_QUEUE_CODES:
                logger.warning("queue_not_found", queue_name=queue_name, lookup_name=name)
                raise ResolutionError(queue_name) from e
            logger.error("queue_lookup_failed", queue_name=queue_name, error_code=code)
            raise ResolutionError(queue_name, f"GetQueueUrl failed ({code})") from e
        except BotoCoreError as e:
            logger.error("queue_lookup_failed", queue_name=queue_name, error=str(e))
            raise ResolutionError(queue_name, f"GetQueueUrl failed: {e}") from e

        url = response["QueueUrl"]
        logger.info("queue_resolved", queue_name=queue_name, queue_url=url)
        return url

    def invalidate(self, queue_name: str) -> None:
        """Drop one cached lookup."""
        with self._lock:
            self._cache.pop(self.config.queue_name(queue_name), None)

    def clear(self) -> None:
        """Drop every cached lookup."""
        with self._lock:
            self._cache.clear()

    def get_stats(self) -> dict:
        """Get resolver statistics."""
        with self._lock:
            return {**self._stats, "cached": len(self._cache)}

    async def close(self) -> None:
        """Shut down the worker pool if this resolver created it."""
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
