"""
Error definitions for the dispatcher.

Every failure raised by this package derives from DispatcherError so callers
can catch the whole family in one place.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from dispatcher.core.batch import DispatchReport


class DispatcherError(Exception):
    """Base exception for all dispatcher errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(DispatcherError):
    """Raised for invalid arguments or settings, before any I/O happens."""

    def __init__(self, field: str, value: Any, expected: str):
        message = f"Invalid value for {field}: got {value!r}, expected {expected}"
        super().__init__(message)
        self.field = field
        self.value = value
        self.expected = expected


class ResolutionError(DispatcherError):
    """Raised when a logical queue name has no corresponding queue."""

    def __init__(self, queue_name: str, reason: str = "queue does not exist"):
        super().__init__(f"Cannot resolve queue {queue_name!r}: {reason}")
        self.queue_name = queue_name
        self.reason = reason


class SerializationError(DispatcherError):
    """Raised when a payload cannot be turned into a message body."""

    def __init__(self, value: Any, reason: str):
        self.value_type = type(value).__name__
        super().__init__(f"Cannot serialize {self.value_type}: {reason}")
        self.reason = reason


class TransportError(DispatcherError):
    """Raised when a send or batch-send call is rejected or fails."""

    def __init__(
        self,
        message: str,
        destination: Optional[str] = None,
        error_code: Optional[str] = None,
        sender_fault: bool = False,
    ):
        details = {}
        if error_code:
            details["error_code"] = error_code
        super().__init__(message, details)
        self.destination = destination
        self.error_code = error_code
        self.sender_fault = sender_fault


class CancellationError(DispatcherError):
    """
    Raised when a dispatch call is cancelled.

    Batches that were already in flight ran to completion; their outcomes
    are available on ``report``.
    """

    def __init__(self, report: Optional["DispatchReport"] = None):
        details = {}
        if report is not None:
            details = {
                "sent": report.sent_count,
                "failed": report.failed_count,
                "skipped": report.skipped_count,
            }
        super().__init__("Dispatch cancelled", details)
        self.report = report


class DispatchError(DispatcherError):
    """
    Aggregate failure of a list dispatch.

    Raised once every batch has been attempted. ``report.failures`` holds one
    entry per failed batch (or unresolved queue, or unserializable item).
    """

    def __init__(self, report: "DispatchReport"):
        self.report = report
        lines = [
            f"Dispatch failed: {len(report.failures)} failure(s) "
            f"across {report.batch_count} batch(es)"
        ]
        for failure in report.failures:
            lines.append(f"  - {failure.describe()}")
        super().__init__("\n".join(lines))

    @property
    def failures(self):
        return self.report.failures
