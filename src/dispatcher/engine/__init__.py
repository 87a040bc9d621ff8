"""
Dispatch Engine module.

Contains the group dispatcher that fans batches out to the transport,
the public dispatch facade, and payload serializers.
"""

from dispatcher.engine.dispatcher import QueueDispatcher
from dispatcher.engine.group_dispatcher import GroupDispatcher
from dispatcher.engine.serializer import JsonSerializer, Serializer

__all__ = [
    "QueueDispatcher",
    "GroupDispatcher",
    "Serializer",
    "JsonSerializer",
]
