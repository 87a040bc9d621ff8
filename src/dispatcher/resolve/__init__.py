"""
Queue resolution.

Maps logical queue names to transport-usable queue URLs.
"""

from dispatcher.resolve.resolver import QueueResolver, SqsQueueResolver, is_queue_url

__all__ = [
    "QueueResolver",
    "SqsQueueResolver",
    "is_queue_url",
]
