"""
Test suite for the dispatch facade.

Tests single, many-value and raw sends end to end over the mock transport.
"""

import asyncio
import json
import math
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from dispatcher.config import DispatcherConfig
from dispatcher.core.request import OutboundRequest
from dispatcher.engine.dispatcher import QueueDispatcher
from dispatcher.errors import (
    CancellationError,
    ConfigurationError,
    DispatchError,
    ResolutionError,
    SerializationError,
    TransportError,
)
from dispatcher.resolve.resolver import SqsQueueResolver
from dispatcher.transport.sqs import SqsTransport

from conftest import QUEUE_URLS, MockTransport, fail_on_body, make_requests

ORDERS = QUEUE_URLS["orders"]
INVOICES = QUEUE_URLS["invoices"]


class Order(BaseModel):
    order_id: int
    sku: str


@dataclass
class Invoice:
    number: str
    total: float


# ============================================================================
# send_one
# ============================================================================

class TestSendOne:
    """Tests for single-value sends."""

    @pytest.mark.asyncio
    async def test_uses_single_send(self, queue_dispatcher, mock_transport):
        message_id = await queue_dispatcher.send_one(Order(order_id=1, sku="A-1"), "orders")

        assert message_id == "msg-1"
        assert mock_transport.batch_calls == []
        destination, body, delay = mock_transport.single_calls[0]
        assert destination == ORDERS
        assert json.loads(body) == {"order_id": 1, "sku": "A-1"}
        assert delay == 0

    @pytest.mark.asyncio
    async def test_explicit_delay(self, queue_dispatcher, mock_transport):
        await queue_dispatcher.send_one({"a": 1}, "orders", delay_seconds=45)

        assert mock_transport.single_calls[0][2] == 45

    @pytest.mark.asyncio
    async def test_config_default_delay(self, mock_transport, fake_resolver):
        config = DispatcherConfig(default_delay_seconds=12)
        dispatcher = QueueDispatcher(mock_transport, fake_resolver, config=config)

        await dispatcher.send_one({"a": 1}, "orders")

        assert mock_transport.single_calls[0][2] == 12

    @pytest.mark.asyncio
    async def test_resolution_error_propagates(self, queue_dispatcher, mock_transport):
        with pytest.raises(ResolutionError) as exc_info:
            await queue_dispatcher.send_one({"a": 1}, "ghost")

        assert exc_info.value.queue_name == "ghost"
        assert mock_transport.single_calls == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, fake_resolver, test_config):
        transport = MockTransport(fail_when=fail_on_body('{"a":1}'))
        dispatcher = QueueDispatcher(transport, fake_resolver, config=test_config)

        with pytest.raises(TransportError):
            await dispatcher.send_one({"a": 1}, "orders")

    @pytest.mark.asyncio
    async def test_serialization_error_before_network(self, queue_dispatcher, mock_transport, fake_resolver):
        with pytest.raises(SerializationError):
            await queue_dispatcher.send_one(object(), "orders")

        assert fake_resolver.calls == []
        assert mock_transport.single_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("queue", [None, ""])
    async def test_missing_queue(self, queue_dispatcher, queue):
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_one({"a": 1}, queue)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("delay", [-1, 901])
    async def test_delay_out_of_range(self, queue_dispatcher, mock_transport, delay):
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_one({"a": 1}, "orders", delay_seconds=delay)

        assert mock_transport.single_calls == []


# ============================================================================
# send_many
# ============================================================================

class TestSendMany:
    """Tests for many-value sends."""

    @pytest.mark.asyncio
    async def test_25_objects_make_three_batches(self, queue_dispatcher, mock_transport):
        orders = [Order(order_id=i, sku=f"S-{i}") for i in range(25)]

        report = await queue_dispatcher.send_many(orders, "orders", max_batch_size=10)

        assert mock_transport.batch_sizes == [10, 10, 5]
        assert {d for d, _ in mock_transport.batch_calls} == {ORDERS}
        assert report.sent_count == 25
        assert report.message_count == 25
        first = json.loads(mock_transport.batch_calls[0][1][0].body)
        assert first == {"order_id": 0, "sku": "S-0"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [1, 10, 11, 99])
    async def test_batch_calls_are_ceiling(self, queue_dispatcher, mock_transport, count):
        await queue_dispatcher.send_many(list(range(count)), "orders")

        assert len(mock_transport.batch_calls) == math.ceil(count / 10)

    @pytest.mark.asyncio
    async def test_dataclasses_serialized(self, queue_dispatcher, mock_transport):
        await queue_dispatcher.send_many([Invoice("INV-1", 10.5)], "invoices")

        body = mock_transport.batch_calls[0][1][0].body
        assert json.loads(body) == {"number": "INV-1", "total": 10.5}

    @pytest.mark.asyncio
    async def test_delay_applies_to_all_entries(self, queue_dispatcher, mock_transport):
        await queue_dispatcher.send_many([1, 2, 3], "orders", delay_seconds=60)

        assert [e.delay_seconds for e in mock_transport.batch_calls[0][1]] == [60, 60, 60]

    @pytest.mark.asyncio
    async def test_one_of_three_batches_fails(self, fake_resolver, test_config):
        transport = MockTransport(latency=0.01, fail_when=fail_on_body('"poison"'))
        dispatcher = QueueDispatcher(transport, fake_resolver, config=test_config)
        values = [f"v{i}" for i in range(24)] + ["poison"]

        with pytest.raises(DispatchError) as exc_info:
            await dispatcher.send_many(values, "orders")

        report = exc_info.value.report
        assert len(report.failures) == 1
        assert report.failures[0].destination == ORDERS
        assert report.failures[0].batch_index == 2
        assert report.sent_count == 20
        assert len(transport.batch_calls) == 3

    @pytest.mark.asyncio
    async def test_unserializable_item_is_reported_and_rest_sent(self, queue_dispatcher, mock_transport):
        values = list(range(5)) + [object()] + list(range(5, 11))

        with pytest.raises(DispatchError) as exc_info:
            await queue_dispatcher.send_many(values, "orders")

        report = exc_info.value.report
        assert len(report.failures) == 1
        assert report.failures[0].item_index == 5
        assert isinstance(report.failures[0].cause, SerializationError)
        assert report.message_count == 12
        assert report.sent_count == 11
        assert mock_transport.batch_sizes == [10, 1]

    @pytest.mark.asyncio
    async def test_only_unserializable_items(self, queue_dispatcher, mock_transport, fake_resolver):
        with pytest.raises(DispatchError):
            await queue_dispatcher.send_many([object()], "orders")

        assert fake_resolver.calls == []
        assert mock_transport.batch_calls == []

    @pytest.mark.asyncio
    async def test_empty_values(self, queue_dispatcher, mock_transport, fake_resolver):
        report = await queue_dispatcher.send_many([], "orders")

        assert report.ok
        assert report.batch_count == 0
        assert fake_resolver.calls == []
        assert mock_transport.batch_calls == []

    @pytest.mark.asyncio
    async def test_unknown_queue(self, queue_dispatcher, mock_transport):
        with pytest.raises(DispatchError) as exc_info:
            await queue_dispatcher.send_many([1, 2], "ghost")

        assert isinstance(exc_info.value.failures[0].cause, ResolutionError)
        assert mock_transport.batch_calls == []

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, queue_dispatcher, mock_transport):
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(CancellationError):
            await queue_dispatcher.send_many(range(30), "orders", cancel_event=cancel_event)

        assert mock_transport.batch_calls == []

    @pytest.mark.asyncio
    async def test_missing_arguments(self, queue_dispatcher):
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_many(None, "orders")
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_many([1], None)

    @pytest.mark.asyncio
    async def test_batch_size_over_ceiling(self, queue_dispatcher):
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_many([1], "orders", max_batch_size=11)


# ============================================================================
# send_raw
# ============================================================================

class TestSendRaw:
    """Tests for pre-built request sends."""

    @pytest.mark.asyncio
    async def test_single_request(self, queue_dispatcher, mock_transport):
        message_id = await queue_dispatcher.send_raw(OutboundRequest("orders", "hello", 3))

        assert message_id == "msg-1"
        assert mock_transport.single_calls == [(ORDERS, "hello", 3)]
        assert mock_transport.batch_calls == []

    @pytest.mark.asyncio
    async def test_single_request_with_url(self, queue_dispatcher, mock_transport):
        await queue_dispatcher.send_raw(OutboundRequest(INVOICES, "hello"))

        assert mock_transport.single_calls == [(INVOICES, "hello", 0)]

    @pytest.mark.asyncio
    async def test_single_request_unknown_queue(self, queue_dispatcher):
        with pytest.raises(ResolutionError):
            await queue_dispatcher.send_raw(OutboundRequest("ghost", "hello"))

    @pytest.mark.asyncio
    async def test_list_split_by_queue(self, queue_dispatcher, mock_transport):
        """12 requests, 7 for A and 5 for B, give two calls of 7 and 5."""
        requests = make_requests("orders", 7) + make_requests("invoices", 5)

        report = await queue_dispatcher.send_raw(requests, max_batch_size=10)

        sizes = {d: len(e) for d, e in mock_transport.batch_calls}
        assert len(mock_transport.batch_calls) == 2
        assert sizes == {ORDERS: 7, INVOICES: 5}
        assert report.sent_count == 12

    @pytest.mark.asyncio
    async def test_list_bodies_sent_verbatim(self, queue_dispatcher, mock_transport):
        await queue_dispatcher.send_raw([OutboundRequest("orders", "<xml/>")])

        assert mock_transport.bodies_for(ORDERS) == ["<xml/>"]

    @pytest.mark.asyncio
    async def test_none_request(self, queue_dispatcher):
        with pytest.raises(ConfigurationError):
            await queue_dispatcher.send_raw(None)


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:
    """Tests for construction and resource cleanup."""

    def test_requires_collaborators(self, fake_resolver, mock_transport):
        with pytest.raises(ConfigurationError):
            QueueDispatcher(None, fake_resolver)
        with pytest.raises(ConfigurationError):
            QueueDispatcher(mock_transport, None)

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, mock_transport, fake_resolver, test_config):
        async with QueueDispatcher(mock_transport, fake_resolver, config=test_config) as dispatcher:
            await dispatcher.send_one(1, "orders")

        assert mock_transport.closed
        assert fake_resolver.closed

    @pytest.mark.asyncio
    async def test_from_config_shares_client_and_pool(self):
        config = DispatcherConfig(aws_region="eu-west-1", worker_threads=2)
        client = MagicMock()

        with patch("dispatcher.engine.dispatcher.create_sqs_client", return_value=client):
            dispatcher = QueueDispatcher.from_config(config)

        assert isinstance(dispatcher.transport, SqsTransport)
        assert isinstance(dispatcher.resolver, SqsQueueResolver)
        assert dispatcher.transport.client is client
        assert dispatcher.resolver.client is client
        assert dispatcher.transport._executor is dispatcher.resolver._executor

        client.send_message.return_value = {"MessageId": "m-1"}
        client.get_queue_url.return_value = {"QueueUrl": ORDERS}
        async with dispatcher:
            assert await dispatcher.send_one({"a": 1}, "orders") == "m-1"

        assert dispatcher._executor is None
        client.send_message.assert_called_once_with(
            QueueUrl=ORDERS, MessageBody='{"a":1}', DelaySeconds=0
        )

    @pytest.mark.asyncio
    async def test_close_with_async_mocks(self, test_config):
        transport = AsyncMock()
        resolver = AsyncMock()
        dispatcher = QueueDispatcher(transport, resolver, config=test_config)

        await dispatcher.close()

        transport.close.assert_awaited_once()
        resolver.close.assert_awaited_once()
