"""
Abstract interface for queue transports.

Defines the contract for message delivery that all transport adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from dispatcher.core.request import BatchEntry


@dataclass
class EntryFailure:
    """A single entry rejected inside an otherwise completed batch call."""
    id: str
    code: str
    message: Optional[str] = None
    sender_fault: bool = False


@dataclass
class BatchSendResult:
    """Per-entry outcome of a batch-send call."""
    successful: List[str] = field(default_factory=list)    # Accepted entry ids
    failed: List[EntryFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class Transport(ABC):
    """
    Abstract interface for queue access.

    This interface defines the delivery operations needed by the dispatcher:
    - Single message send
    - Batch send with per-entry results
    """

    @abstractmethod
    async def send_single(
        self,
        destination: str,
        body: str,
        delay_seconds: int = 0,
    ) -> str:
        """
        Send one message.

        Args:
            destination: Queue URL
            body: Message body
            delay_seconds: Delivery delay

        Returns:
            Message ID assigned by the queue

        Raises:
            TransportError: If the send fails
        """
        pass

    @abstractmethod
    async def send_batch(
        self,
        destination: str,
        entries: Sequence[BatchEntry],
    ) -> BatchSendResult:
        """
        Send up to one batch worth of messages in a single call.

        Args:
            destination: Queue URL
            entries: Entries to send, each with an id unique within the call

        Returns:
            Per-entry results

        Raises:
            TransportError: If the whole call fails
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the transport."""
        pass
