"""
Transport Layer.

Provides abstracted message delivery to queues.
Ships an Amazon SQS adapter built on boto3.
"""

from dispatcher.transport.interface import BatchSendResult, EntryFailure, Transport
from dispatcher.transport.sqs import SqsTransport

__all__ = [
    "Transport",
    "BatchSendResult",
    "EntryFailure",
    "SqsTransport",
]
