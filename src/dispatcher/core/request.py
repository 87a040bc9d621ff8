"""
Outbound request model.

Represents a single message waiting to be dispatched, and the per-batch entry
derived from it.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from dispatcher.config import SQS_MAX_DELAY_SECONDS
from dispatcher.errors import ConfigurationError


def validate_delay(delay_seconds: int, field_name: str = "delay_seconds") -> int:
    """Check a delivery delay against the transport's accepted range."""
    if isinstance(delay_seconds, bool) or not isinstance(delay_seconds, int):
        raise ConfigurationError(field_name, delay_seconds, "an integer")
    if not 0 <= delay_seconds <= SQS_MAX_DELAY_SECONDS:
        raise ConfigurationError(
            field_name, delay_seconds, f"between 0 and {SQS_MAX_DELAY_SECONDS}"
        )
    return delay_seconds


@dataclass(frozen=True)
class OutboundRequest:
    """
    A single already-serialized message bound for one queue.

    Attributes:
        destination: Logical queue name or queue URL
        body: Wire-ready message body
        delay_seconds: Delivery delay, or None to use the configured default
    """

    destination: str
    body: str
    delay_seconds: Optional[int] = None

    def __post_init__(self):
        """Validate after initialization."""
        if not isinstance(self.destination, str) or not self.destination:
            raise ConfigurationError("destination", self.destination, "a non-empty string")
        if not isinstance(self.body, str):
            raise ConfigurationError("body", type(self.body).__name__, "a string")
        if self.delay_seconds is not None:
            validate_delay(self.delay_seconds)


@dataclass(frozen=True)
class BatchEntry:
    """
    One message inside a batch-send call.

    The id only correlates per-entry results within a single call.
    """

    body: str
    delay_seconds: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_request(cls, request: OutboundRequest, default_delay: int = 0) -> "BatchEntry":
        """Create an entry with a fresh id from an outbound request."""
        delay = request.delay_seconds if request.delay_seconds is not None else default_delay
        return cls(body=request.body, delay_seconds=delay)

    def to_sqs(self) -> dict:
        """Render the entry in SendMessageBatch request format."""
        return {
            "Id": self.id,
            "MessageBody": self.body,
            "DelaySeconds": self.delay_seconds,
        }
