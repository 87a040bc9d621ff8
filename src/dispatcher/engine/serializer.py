"""
Payload serializers - turn typed values into message bodies.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_json

from dispatcher.errors import SerializationError


class Serializer(ABC):
    """
    Abstract base class for payload serializers.

    Applications can implement this to control the wire format of their messages.
    """

    @abstractmethod
    def serialize(self, value: Any) -> str:
        """
        Serialize a value to a message body.

        Args:
            value: The value to serialize

        Returns:
            Wire-ready string

        Raises:
            SerializationError: If the value cannot be serialized
        """
        pass


class JsonSerializer(Serializer):
    """
    JSON serializer backed by pydantic.

    Handles pydantic models, dataclasses, dicts, lists, datetimes, UUIDs,
    enums and the other types pydantic knows how to dump.
    """

    def __init__(self, by_alias: bool = True, exclude_none: bool = False):
        """
        Initialize the serializer.

        Args:
            by_alias: Use field aliases for pydantic models
            exclude_none: Drop fields whose value is None
        """
        self.by_alias = by_alias
        self.exclude_none = exclude_none

    def serialize(self, value: Any) -> str:
        """Dump a value to a JSON string."""
        try:
            if isinstance(value, BaseModel):
                return value.model_dump_json(
                    by_alias=self.by_alias,
                    exclude_none=self.exclude_none,
                )
            return to_json(
                value,
                by_alias=self.by_alias,
                exclude_none=self.exclude_none,
            ).decode("utf-8")
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise SerializationError(value, str(e)) from e
