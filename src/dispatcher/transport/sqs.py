"""
Amazon SQS transport adapter.

Sends messages through a boto3 SQS client. The SDK is blocking, so every call
runs on a worker thread pool and the event loop only awaits the result.
"""

import asyncio
import functools
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Optional, Sequence

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from dispatcher.config import DispatcherConfig, get_config
from dispatcher.core.request import BatchEntry
from dispatcher.errors import TransportError
from dispatcher.transport.interface import BatchSendResult, EntryFailure, Transport

logger = structlog.get_logger(__name__)


def create_sqs_client(config: Optional[DispatcherConfig] = None):
    """Build a boto3 SQS client from dispatcher settings."""
    config = config or get_config()
    if config.aws_profile:
        session = boto3.Session(profile_name=config.aws_profile)
    else:
        session = boto3.Session()
    return session.client(
        "sqs",
        region_name=config.aws_region,
        endpoint_url=config.aws_endpoint_url,
    )


def create_executor(config: Optional[DispatcherConfig] = None) -> Optional[Executor]:
    """Create the worker pool for blocking SDK calls, if one is configured."""
    config = config or get_config()
    if config.worker_threads is None:
        return None
    return ThreadPoolExecutor(
        max_workers=config.worker_threads,
        thread_name_prefix="sqs-dispatch",
    )


class SqsTransport(Transport):
    """
    SQS transport adapter.

    Implements the Transport interface using SendMessage and SendMessageBatch.
    Retries and backoff are left to botocore's own retry configuration.
    """

    def __init__(
        self,
        client: Any = None,
        config: Optional[DispatcherConfig] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the SQS transport.

        Args:
            client: boto3 SQS client (built from config if not provided)
            config: Dispatcher configuration. Uses global config if not provided.
            executor: Worker pool for SDK calls (the event loop's default pool if
                neither this nor config.worker_threads is set)
        """
        self.config = config or get_config()
        self.client = client if client is not None else create_sqs_client(self.config)
        self._owns_executor = executor is None
        self._executor = executor or create_executor(self.config)

    async def _call(self, operation: str, **kwargs) -> dict:
        """Run one SDK operation on the worker pool."""
        loop = asyncio.get_running_loop()
        method = getattr(self.client, operation)
        return await loop.run_in_executor(self._executor, functools.partial(method, **kwargs))

    async def send_single(
        self,
        destination: str,
        body: str,
        delay_seconds: int = 0,
    ) -> str:
        """Send one message with SendMessage."""
        logger.debug("sqs_send_message", queue_url=destination, body=body)

        try:
            response = await self._call(
                "send_message",
                QueueUrl=destination,
                MessageBody=body,
                DelaySeconds=delay_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, destination) from e

        return response.get("MessageId", "")

    async def send_batch(
        self,
        destination: str,
        entries: Sequence[BatchEntry],
    ) -> BatchSendResult:
        """Send entries with SendMessageBatch and collect per-entry results."""
        logger.debug("sqs_send_message_batch", queue_url=destination, size=len(entries))

        try:
            response = await self._call(
                "send_message_batch",
                QueueUrl=destination,
                Entries=[e.to_sqs() for e in entries],
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, destination) from e

        return BatchSendResult(
            successful=[item["Id"] for item in response.get("Successful", [])],
            failed=[
                EntryFailure(
                    id=item["Id"],
                    code=item.get("Code", "Unknown"),
                    message=item.get("Message"),
                    sender_fault=bool(item.get("SenderFault", False)),
                )
                for item in response.get("Failed", [])
            ],
        )

    async def close(self) -> None:
        """Shut down the worker pool if this transport created it."""
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def _translate_error(error: Exception, destination: str) -> TransportError:
    """Map a botocore failure to a TransportError."""
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code")
        logger.error(
            "sqs_request_rejected",
            queue_url=destination,
            error_code=code,
            error=details.get("Message"),
        )
        return TransportError(
            f"SQS rejected request: {details.get('Message') or error}",
            destination=destination,
            error_code=code,
            sender_fault=details.get("Type") == "Sender",
        )

    logger.error("sqs_request_error", queue_url=destination, error=str(error))
    return TransportError(f"SQS request failed: {error}", destination=destination)
