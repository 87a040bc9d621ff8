"""
SQS Batch Dispatcher

Sends messages to one or more SQS queues. Messages are grouped by queue,
split into batches of at most ten, and sent concurrently, with every failure
reported back to the caller in a single aggregate error.
"""

__version__ = "0.1.0"

from dispatcher.core.request import OutboundRequest, BatchEntry
from dispatcher.core.batch import Batch, BatchStatus, DispatchReport
from dispatcher.engine.dispatcher import QueueDispatcher
from dispatcher.engine.group_dispatcher import GroupDispatcher
from dispatcher.errors import (
    CancellationError,
    ConfigurationError,
    DispatchError,
    DispatcherError,
    ResolutionError,
    SerializationError,
    TransportError,
)

__all__ = [
    "QueueDispatcher",
    "GroupDispatcher",
    "OutboundRequest",
    "BatchEntry",
    "Batch",
    "BatchStatus",
    "DispatchReport",
    "DispatcherError",
    "ConfigurationError",
    "ResolutionError",
    "SerializationError",
    "TransportError",
    "CancellationError",
    "DispatchError",
]
