"""
Batch model.

Represents the per-destination groups and batches built for one dispatch call,
and the report summarizing how they went.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from dispatcher.core.request import BatchEntry, OutboundRequest


class BatchStatus(str, Enum):
    """Status of a batch."""
    PENDING = "pending"           # Built, waiting for a concurrency slot
    SENDING = "sending"           # Batch-send call in flight
    SENT = "sent"                 # Every entry accepted by the transport
    FAILED = "failed"             # Call failed or some entries were rejected
    SKIPPED = "skipped"           # Never started because of cancellation


@dataclass
class DestinationGroup:
    """Requests sharing one resolved destination, in source order."""

    destination: str
    members: List[OutboundRequest] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass
class Batch:
    """
    A single batch-send call.

    Attributes:
        destination: Resolved queue URL
        index: Position of this batch within its destination group
        entries: Entries carried by the call, in source order
        status: Current processing status
        accepted: Number of entries the transport accepted
        error_message: Failure description, if the batch failed
    """

    destination: str
    index: int
    entries: Tuple[BatchEntry, ...] = ()
    status: BatchStatus = BatchStatus.PENDING
    accepted: int = 0

    # Timestamps
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    # Error tracking
    error_message: Optional[str] = None

    @property
    def size(self) -> int:
        """Get the number of entries in this batch."""
        return len(self.entries)

    @property
    def entry_ids(self) -> List[str]:
        return [e.id for e in self.entries]

    def mark_sending(self) -> None:
        """Mark batch as in flight."""
        self.status = BatchStatus.SENDING
        self.started_at = datetime.utcnow()

    def mark_sent(self) -> None:
        """Mark batch as accepted by the transport."""
        self.status = BatchStatus.SENT
        self.finished_at = datetime.utcnow()

    def mark_failed(self, error: str) -> None:
        """Mark batch as failed."""
        self.status = BatchStatus.FAILED
        self.error_message = error
        self.finished_at = datetime.utcnow()

    def mark_skipped(self) -> None:
        """Mark batch as never started."""
        self.status = BatchStatus.SKIPPED

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "destination": self.destination,
            "index": self.index,
            "size": self.size,
            "status": self.status.value,
            "accepted": self.accepted,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error_message": self.error_message,
        }

    def __repr__(self) -> str:
        return (
            f"Batch(destination={self.destination!r}, index={self.index}, "
            f"status={self.status.value}, size={self.size})"
        )


@dataclass
class DispatchFailure:
    """
    One failed unit of a list dispatch.

    A unit is a batch (batch_index set), a whole unresolved destination
    (batch_index is None), or a single unserializable item (item_index set).
    """

    destination: str
    cause: Exception
    batch_index: Optional[int] = None
    item_index: Optional[int] = None
    size: int = 1
    entry_ids: Tuple[str, ...] = ()

    def describe(self) -> str:
        if self.batch_index is not None:
            where = f"{self.destination} batch {self.batch_index}"
        elif self.item_index is not None:
            where = f"{self.destination} item {self.item_index}"
        else:
            where = self.destination
        return f"{where} ({self.size} message(s)): {type(self.cause).__name__}: {self.cause}"

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "batch_index": self.batch_index,
            "item_index": self.item_index,
            "size": self.size,
            "error_type": type(self.cause).__name__,
            "error": str(self.cause),
            "entry_ids": list(self.entry_ids),
        }


@dataclass
class DispatchReport:
    """Outcome of one list dispatch call."""

    message_count: int = 0
    batches: List[Batch] = field(default_factory=list)
    failures: List[DispatchFailure] = field(default_factory=list)

    @property
    def batch_count(self) -> int:
        return len(self.batches)

    @property
    def sent_count(self) -> int:
        """Number of messages accepted by the transport."""
        return sum(b.accepted for b in self.batches)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def skipped_count(self) -> int:
        return sum(1 for b in self.batches if b.status == BatchStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        return not self.failures and self.skipped_count == 0

    def batches_for(self, destination: str) -> List[Batch]:
        """Get the batches sent to one destination, in batch order."""
        return sorted(
            (b for b in self.batches if b.destination == destination),
            key=lambda b: b.index,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "message_count": self.message_count,
            "batch_count": self.batch_count,
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "batches": [b.to_dict() for b in self.batches],
            "failures": [f.to_dict() for f in self.failures],
        }
