"""
Group Dispatcher - fans a mixed-destination collection of requests out
into batch-send calls.

Requests are grouped by resolved queue URL, each group is partitioned into
batches, and every batch is sent concurrently under an optional limit.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

import structlog

from dispatcher.config import SQS_MAX_BATCH_SIZE, DispatcherConfig, get_config
from dispatcher.core.batch import Batch, DestinationGroup, DispatchFailure, DispatchReport
from dispatcher.core.partition import partition
from dispatcher.core.request import BatchEntry, OutboundRequest
from dispatcher.errors import CancellationError, ConfigurationError, DispatchError, TransportError
from dispatcher.resolve.resolver import QueueResolver
from dispatcher.transport.interface import BatchSendResult, Transport

logger = structlog.get_logger(__name__)


class GroupDispatcher:
    """
    Dispatches requests grouped by destination.

    Failure policy is complete-all: every batch is attempted, a failing batch
    never cancels its siblings, and all failures are raised together in one
    DispatchError once the last batch has finished.

    Usage:
        ```python
        dispatcher = GroupDispatcher(transport, resolver)
        report = await dispatcher.dispatch(requests, max_batch_size=10)
        ```
    """

    def __init__(
        self,
        transport: Transport,
        resolver: QueueResolver,
        config: Optional[DispatcherConfig] = None,
    ):
        """
        Initialize the group dispatcher.

        Args:
            transport: Transport used for batch-send calls
            resolver: Resolver for logical queue names
            config: Dispatcher configuration
        """
        self.config = config or get_config()
        self.transport = transport
        self.resolver = resolver

    async def dispatch(
        self,
        requests: Iterable[OutboundRequest],
        max_batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
        report: Optional[DispatchReport] = None,
    ) -> DispatchReport:
        """
        Send all requests, batched per destination.

        Args:
            requests: Requests to send
            max_batch_size: Entries per batch-send call (config default if None)
            max_concurrent_batches: Batch-send calls in flight (config default if None)
            cancel_event: When set, no further batch is started
            report: Report to extend (a new one is created if omitted)

        Returns:
            Report listing every batch sent

        Raises:
            ConfigurationError: For invalid arguments, before any I/O
            CancellationError: If cancellation kept any batch from starting
            DispatchError: If any destination or batch failed
        """
        if requests is None:
            raise ConfigurationError("requests", None, "a sequence of OutboundRequest")
        requests = list(requests)
        for request in requests:
            if not isinstance(request, OutboundRequest):
                raise ConfigurationError("requests", type(request).__name__, "OutboundRequest items")

        batch_size = self._check_batch_size(max_batch_size)
        concurrency = self._check_concurrency(max_concurrent_batches)

        if report is None:
            report = DispatchReport()
        report.message_count += len(requests)

        if cancel_event is not None and cancel_event.is_set():
            logger.info("dispatch_cancelled_before_start", request_count=len(requests))
            raise CancellationError(report)

        if requests:
            groups = await self._group(requests, report)
            report.batches.extend(self._build_batches(groups, batch_size))

            logger.info(
                "dispatch_started",
                request_count=len(requests),
                destination_count=len(groups),
                batch_count=report.batch_count,
                max_batch_size=batch_size,
                max_concurrent_batches=concurrency,
            )

            semaphore = asyncio.Semaphore(concurrency or max(report.batch_count, 1))
            outcomes = await asyncio.gather(
                *(self._send_batch(batch, semaphore, cancel_event) for batch in report.batches)
            )
            report.failures.extend(f for f in outcomes if f is not None)

        logger.info(
            "dispatch_finished",
            batch_count=report.batch_count,
            sent_count=report.sent_count,
            failed_count=report.failed_count,
            skipped_count=report.skipped_count,
        )

        if report.skipped_count:
            raise CancellationError(report)
        if report.failures:
            raise DispatchError(report)
        return report

    def _check_batch_size(self, max_batch_size: Optional[int]) -> int:
        size = self.config.max_batch_size if max_batch_size is None else max_batch_size
        if isinstance(size, bool) or not isinstance(size, int) or not 1 <= size <= SQS_MAX_BATCH_SIZE:
            raise ConfigurationError(
                "max_batch_size", size, f"an integer between 1 and {SQS_MAX_BATCH_SIZE}"
            )
        return size

    def _check_concurrency(self, max_concurrent_batches: Optional[int]) -> Optional[int]:
        limit = (
            self.config.max_concurrent_batches
            if max_concurrent_batches is None
            else max_concurrent_batches
        )
        if limit is None:
            return None
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ConfigurationError("max_concurrent_batches", limit, "a positive integer")
        return limit

    async def _group(
        self,
        requests: List[OutboundRequest],
        report: DispatchReport,
    ) -> List[DestinationGroup]:
        """
        Resolve each distinct destination once and group requests by queue URL.

        Requests whose destination fails to resolve are left out of the groups
        and recorded as one failure per destination.
        """
        names = list(dict.fromkeys(r.destination for r in requests))
        results = await asyncio.gather(
            *(self.resolver.resolve(name) for name in names),
            return_exceptions=True,
        )

        resolved: Dict[str, str] = {}
        unresolved: Dict[str, Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                unresolved[name] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                resolved[name] = result

        groups: Dict[str, DestinationGroup] = {}
        skipped: Dict[str, int] = {}
        for request in requests:
            if request.destination in unresolved:
                skipped[request.destination] = skipped.get(request.destination, 0) + 1
                continue
            url = resolved[request.destination]
            if url not in groups:
                groups[url] = DestinationGroup(destination=url)
            groups[url].members.append(request)

        for name, error in unresolved.items():
            logger.error(
                "destination_unresolved",
                queue_name=name,
                request_count=skipped[name],
                error=str(error),
            )
            report.failures.append(
                DispatchFailure(destination=name, cause=error, size=skipped[name])
            )

        return list(groups.values())

    def _build_batches(self, groups: List[DestinationGroup], batch_size: int) -> List[Batch]:
        """Partition each group into batches with fresh entry ids."""
        default_delay = self.config.default_delay_seconds
        batches = []
        for group in groups:
            for index, chunk in enumerate(partition(group.members, batch_size)):
                entries = tuple(BatchEntry.from_request(r, default_delay) for r in chunk)
                batches.append(Batch(destination=group.destination, index=index, entries=entries))
        return batches

    async def _send_batch(
        self,
        batch: Batch,
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[DispatchFailure]:
        """Send one batch and capture its outcome instead of raising."""
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                batch.mark_skipped()
                return None

            batch.mark_sending()
            try:
                result = await self.transport.send_batch(batch.destination, batch.entries)
                return self._settle(batch, result)
            except Exception as e:
                # Captured per batch; siblings keep running
                batch.accepted = 0
                batch.mark_failed(str(e))
                logger.error(
                    "batch_failed",
                    destination=batch.destination,
                    batch_index=batch.index,
                    size=batch.size,
                    error=str(e),
                )
                return DispatchFailure(
                    destination=batch.destination,
                    cause=e,
                    batch_index=batch.index,
                    size=batch.size,
                    entry_ids=tuple(batch.entry_ids),
                )

    def _settle(self, batch: Batch, result: BatchSendResult) -> Optional[DispatchFailure]:
        """Apply per-entry results to a batch."""
        batch.accepted = batch.size - len(result.failed)

        if result.failed:
            rejected = ", ".join(f"{f.id} ({f.code})" for f in result.failed)
            error = TransportError(
                f"{len(result.failed)} of {batch.size} entries rejected: {rejected}",
                destination=batch.destination,
                error_code=result.failed[0].code,
                sender_fault=all(f.sender_fault for f in result.failed),
            )
            batch.mark_failed(str(error))
            logger.error(
                "batch_entries_rejected",
                destination=batch.destination,
                batch_index=batch.index,
                rejected=len(result.failed),
                accepted=batch.accepted,
            )
            return DispatchFailure(
                destination=batch.destination,
                cause=error,
                batch_index=batch.index,
                size=len(result.failed),
                entry_ids=tuple(f.id for f in result.failed),
            )

        batch.mark_sent()
        logger.debug(
            "batch_sent",
            destination=batch.destination,
            batch_index=batch.index,
            size=batch.size,
        )
        return None
