"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from dispatcher.config import DispatcherConfig
from dispatcher.core.request import BatchEntry, OutboundRequest
from dispatcher.engine.dispatcher import QueueDispatcher
from dispatcher.engine.group_dispatcher import GroupDispatcher
from dispatcher.errors import ResolutionError, TransportError
from dispatcher.resolve.resolver import QueueResolver, is_queue_url
from dispatcher.transport.interface import BatchSendResult, EntryFailure, Transport


QUEUE_URLS = {
    "orders": "https://sqs.eu-west-1.amazonaws.com/123456789012/orders",
    "invoices": "https://sqs.eu-west-1.amazonaws.com/123456789012/invoices",
    "emails": "https://sqs.eu-west-1.amazonaws.com/123456789012/emails",
}


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> DispatcherConfig:
    """Create a test configuration."""
    return DispatcherConfig(
        aws_region="eu-west-1",
        max_batch_size=10,
        max_concurrent_batches=None,
        default_delay_seconds=0,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def make_requests(destination: str, count: int, prefix: Optional[str] = None) -> List[OutboundRequest]:
    """Create numbered requests for one destination."""
    prefix = prefix or destination
    return [OutboundRequest(destination, f"{prefix}-{i}") for i in range(count)]


# ============================================================================
# Mock Transport
# ============================================================================

class MockTransport(Transport):
    """
    In-memory transport for testing.

    Records every call. ``fail_when`` may return an exception to raise for a
    batch call, ``reject_when`` marks single entries as rejected.
    """

    def __init__(
        self,
        latency: float = 0.0,
        fail_when: Optional[Callable[[str, Sequence[BatchEntry]], Optional[Exception]]] = None,
        reject_when: Optional[Callable[[BatchEntry], bool]] = None,
        on_batch: Optional[Callable[[str, Sequence[BatchEntry]], None]] = None,
    ):
        self.latency = latency
        self.fail_when = fail_when
        self.reject_when = reject_when
        self.on_batch = on_batch

        self.single_calls: List[Tuple[str, str, int]] = []
        self.batch_calls: List[Tuple[str, Tuple[BatchEntry, ...]]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send_single(self, destination: str, body: str, delay_seconds: int = 0) -> str:
        if self.fail_when:
            error = self.fail_when(destination, [BatchEntry(body=body, delay_seconds=delay_seconds)])
            if error is not None:
                raise error
        self.single_calls.append((destination, body, delay_seconds))
        return f"msg-{len(self.single_calls)}"

    async def send_batch(self, destination: str, entries: Sequence[BatchEntry]) -> BatchSendResult:
        self.batch_calls.append((destination, tuple(entries)))
        if self.on_batch:
            self.on_batch(destination, entries)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1

        if self.fail_when:
            error = self.fail_when(destination, entries)
            if error is not None:
                raise error

        result = BatchSendResult()
        for entry in entries:
            if self.reject_when and self.reject_when(entry):
                result.failed.append(
                    EntryFailure(id=entry.id, code="InvalidParameterValue", sender_fault=True)
                )
            else:
                result.successful.append(entry.id)
        return result

    async def close(self) -> None:
        self.closed = True

    @property
    def batch_sizes(self) -> List[int]:
        return [len(entries) for _, entries in self.batch_calls]

    def bodies_for(self, destination: str) -> List[str]:
        return [e.body for d, entries in self.batch_calls if d == destination for e in entries]


def fail_on_body(body: str, error: Optional[Exception] = None):
    """Build a fail_when predicate triggered by one message body."""
    def predicate(destination: str, entries: Sequence[BatchEntry]) -> Optional[Exception]:
        if any(e.body == body for e in entries):
            return error or TransportError(
                "Throttled", destination=destination, error_code="ThrottlingException"
            )
        return None
    return predicate


# ============================================================================
# Fake Resolver
# ============================================================================

class FakeResolver(QueueResolver):
    """Resolver backed by a dict; unknown names fail with ResolutionError."""

    def __init__(self, urls: Optional[Dict[str, str]] = None):
        self.urls = dict(QUEUE_URLS if urls is None else urls)
        self.calls: List[str] = []
        self.closed = False

    async def resolve(self, queue_name: str) -> str:
        self.calls.append(queue_name)
        if is_queue_url(queue_name):
            return queue_name
        try:
            return self.urls[queue_name]
        except KeyError:
            raise ResolutionError(queue_name) from None

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def mock_transport() -> MockTransport:
    """Create a mock transport."""
    return MockTransport()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    """Create a resolver knowing the standard test queues."""
    return FakeResolver()


@pytest.fixture
def group_dispatcher(mock_transport, fake_resolver, test_config) -> GroupDispatcher:
    """Create a group dispatcher over the mocks."""
    return GroupDispatcher(mock_transport, fake_resolver, test_config)


@pytest.fixture
def queue_dispatcher(mock_transport, fake_resolver, test_config) -> QueueDispatcher:
    """Create a dispatch facade over the mocks."""
    return QueueDispatcher(mock_transport, fake_resolver, config=test_config)
