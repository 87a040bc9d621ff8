"""
Queue Dispatcher - the public entry point.

Offers single-value, many-value and pre-built request sends, all funneling
into the Group Dispatcher or the transport's single-message send.
"""

import asyncio
from concurrent.futures import Executor
from typing import Any, Iterable, Optional, Sequence, Union

import structlog

from dispatcher.config import DispatcherConfig, get_config
from dispatcher.core.batch import DispatchFailure, DispatchReport
from dispatcher.core.request import OutboundRequest, validate_delay
from dispatcher.engine.group_dispatcher import GroupDispatcher
from dispatcher.engine.serializer import JsonSerializer, Serializer
from dispatcher.errors import ConfigurationError, SerializationError
from dispatcher.resolve.resolver import QueueResolver, SqsQueueResolver
from dispatcher.transport.interface import Transport
from dispatcher.transport.sqs import SqsTransport, create_executor, create_sqs_client

logger = structlog.get_logger(__name__)


class QueueDispatcher:
    """
    Main dispatch facade.

    Turns caller input into OutboundRequests:
    - send_one: one value, one SendMessage call
    - send_many: many values for one queue, batched
    - send_raw: pre-serialized requests, one or many

    Usage:
        ```python
        async with QueueDispatcher.from_config() as dispatcher:
            await dispatcher.send_one({"order_id": 1}, "orders")
            report = await dispatcher.send_many(orders, "orders")
        ```
    """

    def __init__(
        self,
        transport: Transport,
        resolver: QueueResolver,
        serializer: Optional[Serializer] = None,
        config: Optional[DispatcherConfig] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            transport: Transport used for every send
            resolver: Resolver for logical queue names
            serializer: Payload serializer (JSON if not provided)
            config: Dispatcher configuration
        """
        if transport is None:
            raise ConfigurationError("transport", None, "a Transport")
        if resolver is None:
            raise ConfigurationError("resolver", None, "a QueueResolver")

        self.config = config or get_config()
        self.transport = transport
        self.resolver = resolver
        self.serializer = serializer or JsonSerializer()
        self.group_dispatcher = GroupDispatcher(transport, resolver, self.config)

        self._executor: Optional[Executor] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[DispatcherConfig] = None,
        serializer: Optional[Serializer] = None,
    ) -> "QueueDispatcher":
        """
        Create a dispatcher backed by Amazon SQS.

        The transport and the resolver share one boto3 client and worker pool.
        """
        config = config or get_config()
        client = create_sqs_client(config)
        executor = create_executor(config)

        dispatcher = cls(
            transport=SqsTransport(client=client, config=config, executor=executor),
            resolver=SqsQueueResolver(client=client, config=config, executor=executor),
            serializer=serializer,
            config=config,
        )
        dispatcher._executor = executor
        return dispatcher

    async def close(self) -> None:
        """Release the transport, the resolver and any shared worker pool."""
        await self.transport.close()
        await self.resolver.close()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def __aenter__(self) -> "QueueDispatcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Public API methods

    async def send_one(
        self,
        value: Any,
        queue: str,
        delay_seconds: Optional[int] = None,
    ) -> str:
        """
        Serialize and send a single value.

        Args:
            value: Value to serialize as the message body
            queue: Logical queue name or queue URL
            delay_seconds: Delivery delay (config default if None)

        Returns:
            Message ID assigned by the queue

        Raises:
            ConfigurationError, SerializationError, ResolutionError, TransportError
        """
        _require("queue", queue)
        delay = self._delay(delay_seconds)

        body = self.serializer.serialize(value)
        queue_url = await self.resolver.resolve(queue)

        logger.debug("message_sending", queue=queue, queue_url=queue_url, body=body)
        message_id = await self.transport.send_single(queue_url, body, delay)
        logger.info("message_sent", queue=queue, message_id=message_id)
        return message_id

    async def send_many(
        self,
        values: Iterable[Any],
        queue: str,
        delay_seconds: Optional[int] = None,
        max_batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchReport:
        """
        Serialize many values and send them to one queue in batches.

        A value that fails to serialize is left out and reported in the
        aggregate failure; every other value is still sent.

        Args:
            values: Values to serialize, in order
            queue: Logical queue name or queue URL
            delay_seconds: Delivery delay for every message (config default if None)
            max_batch_size: Messages per batch-send call (config default if None)
            max_concurrent_batches: Batch-send calls in flight (config default if None)
            cancel_event: When set, no further batch is started

        Returns:
            Report listing every batch sent

        Raises:
            ConfigurationError, CancellationError, DispatchError
        """
        _require("values", values)
        _require("queue", queue)
        delay = self._delay(delay_seconds)

        report = DispatchReport()
        requests = []
        for index, value in enumerate(values):
            try:
                body = self.serializer.serialize(value)
            except SerializationError as e:
                logger.warning(
                    "item_serialization_failed",
                    queue=queue,
                    item_index=index,
                    error=str(e),
                )
                report.failures.append(DispatchFailure(destination=queue, cause=e, item_index=index))
                report.message_count += 1
                continue
            requests.append(OutboundRequest(queue, body, delay))

        return await self.group_dispatcher.dispatch(
            requests,
            max_batch_size=max_batch_size,
            max_concurrent_batches=max_concurrent_batches,
            cancel_event=cancel_event,
            report=report,
        )

    async def send_raw(
        self,
        request: Union[OutboundRequest, Sequence[OutboundRequest]],
        max_batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Union[str, DispatchReport]:
        """
        Send pre-built requests.

        A single request goes out with one SendMessage call and returns its
        message ID. A sequence is grouped and batched and returns a report.
        Destinations may be logical names or queue URLs.

        Args:
            request: One OutboundRequest or a sequence of them
            max_batch_size: Messages per batch-send call (list form only)
            max_concurrent_batches: Batch-send calls in flight (list form only)
            cancel_event: When set, no further batch is started (list form only)
        """
        _require("request", request)

        if isinstance(request, OutboundRequest):
            delay = self._delay(request.delay_seconds)
            queue_url = await self.resolver.resolve(request.destination)

            logger.debug("message_sending", queue=request.destination, queue_url=queue_url, body=request.body)
            message_id = await self.transport.send_single(queue_url, request.body, delay)
            logger.info("message_sent", queue=request.destination, message_id=message_id)
            return message_id

        return await self.group_dispatcher.dispatch(
            request,
            max_batch_size=max_batch_size,
            max_concurrent_batches=max_concurrent_batches,
            cancel_event=cancel_event,
        )

    def _delay(self, delay_seconds: Optional[int]) -> int:
        if delay_seconds is None:
            return self.config.default_delay_seconds
        return validate_delay(delay_seconds)


def _require(field: str, value: Any) -> None:
    """Reject missing required arguments."""
    if value is None or (isinstance(value, str) and not value):
        raise ConfigurationError(field, value, "a value")
