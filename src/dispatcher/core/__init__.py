"""
Core dispatcher components.

This module contains the data model for outbound messages, their batches,
dispatch reports, and the batch partitioner.
"""

from dispatcher.core.request import BatchEntry, OutboundRequest
from dispatcher.core.batch import (
    Batch,
    BatchStatus,
    DestinationGroup,
    DispatchFailure,
    DispatchReport,
)
from dispatcher.core.partition import partition

__all__ = [
    "OutboundRequest",
    "BatchEntry",
    "Batch",
    "BatchStatus",
    "DestinationGroup",
    "DispatchFailure",
    "DispatchReport",
    "partition",
]
