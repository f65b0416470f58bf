"""
Queue poller.

Drives the control loop: on every tick, read all pages of scheduled jobs
for the queue and hand them to the reservation coordinator as one batch.
"""

import asyncio
import logging

from stackctl.constants import DEFAULT_PAGE_SIZE, SPAN_POLL_CYCLE, CycleStatus
from stackctl.controller.coordinator import ReservationCoordinator
from stackctl.exceptions import ConfigurationError, UpstreamError
from stackctl.ledger.jobs import JobLedger
from stackctl.observability.metrics import get_metrics
from stackctl.observability.tracing import get_tracer
from stackctl.types.dispatch import CycleResult
from stackctl.types.job import ScheduledJob
from stackctl.upstream.client import StacksClient

logger = logging.getLogger(__name__)


class QueuePoller:
    """
    Fixed-interval poll loop for one stack queue.

    Errors in a cycle are logged and the loop carries on at the next tick.
    stop() is cooperative: a page fetch in flight completes, then the loop
    exits without reserving.
    """

    def __init__(
        self,
        client: StacksClient,
        coordinator: ReservationCoordinator,
        stack_key: str,
        queue_key: str,
        interval: float,
        page_size: int = DEFAULT_PAGE_SIZE,
        ledger: JobLedger | None = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Upstream queue client.
            coordinator: Receives each polled batch.
            stack_key: Registered stack key.
            queue_key: Queue to poll.
            interval: Seconds between ticks.
            page_size: Jobs per page request.
            ledger: Ledger to purge of expired entries after each cycle.
        """
        if interval <= 0:
            raise ConfigurationError(f"poll interval must be positive, got {interval}")

        self._client = client
        self._coordinator = coordinator
        self._stack_key = stack_key
        self._queue_key = queue_key
        self._interval = interval
        self._page_size = page_size
        self._ledger = ledger
        self._stopping = asyncio.Event()
        self._metrics = get_metrics()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def start(self) -> None:
        """
        Run the poll loop until stop() is called.

        Task cancellation propagates as asyncio.CancelledError.
        """
        logger.info(
            "Starting monitor for queue",
            extra={"queue": self._queue_key, "interval": self._interval},
        )
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._interval

        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(
                    self._stopping.wait(),
                    timeout=max(0.0, next_tick - loop.time()),
                )
            except TimeoutError:
                pass
            if self._stopping.is_set():
                break

            # Ticks missed while a cycle ran are dropped
            next_tick = max(next_tick + self._interval, loop.time())

            try:
                await self.poll_cycle()
            except UpstreamError as e:
                logger.error(
                    "Error polling queue",
                    extra={"queue": self._queue_key, "error": str(e)},
                )
            except Exception as e:
                logger.exception(
                    f"Error in poll loop: {e}",
                    extra={"queue": self._queue_key},
                )

            self._tidy_ledger()

        logger.info("Monitor shutting down", extra={"queue": self._queue_key})

    async def stop(self) -> None:
        """Ask the loop to exit after the current page fetch."""
        logger.info("Monitor stopping", extra={"queue": self._queue_key})
        self._stopping.set()

    async def poll_cycle(self) -> CycleResult:
        """
        Run one poll cycle.

        Returns:
            CycleResult describing the cycle.

        Raises:
            UpstreamError: If a page request fails. Nothing is reserved.
        """
        with get_tracer().start_as_current_span(SPAN_POLL_CYCLE) as span:
            span.set_attribute("queue", self._queue_key)
            result = await self._poll()
            span.set_attribute("status", result.status.value)
            span.set_attribute("jobs", result.jobs)

        self._metrics.record_poll_cycle(self._queue_key, result.status.value, result.jobs)
        if result.reservation is not None and result.reservation.reserved:
            logger.info(
                "Processed jobs on queue",
                extra={
                    "queue": self._queue_key,
                    "jobs": result.jobs,
                    "reserved": len(result.reservation.reserved),
                },
            )
        return result

    async def _poll(self) -> CycleResult:
        jobs: list[ScheduledJob] = []
        cursor: str | None = None
        pages = 0

        while True:
            try:
                page = await self._client.list_scheduled_jobs(
                    stack_key=self._stack_key,
                    queue_key=self._queue_key,
                    page_size=self._page_size,
                    cursor=cursor,
                )
            except UpstreamError:
                self._metrics.record_poll_cycle(self._queue_key, CycleStatus.FAILED.value)
                raise
            pages += 1

            if page.cluster_queue.paused:
                logger.info("Queue is paused, skipping", extra={"queue": self._queue_key})
                return CycleResult(status=CycleStatus.PAUSED, pages=pages)

            jobs.extend(page.jobs)

            if self._stopping.is_set():
                return CycleResult(status=CycleStatus.CANCELLED, pages=pages)

            if not page.page_info.has_next_page:
                break
            if not page.page_info.end_cursor:
                logger.warning(
                    "Upstream reported another page without a cursor, stopping pagination",
                    extra={"queue": self._queue_key, "pages": pages},
                )
                break
            cursor = page.page_info.end_cursor

        if not jobs:
            return CycleResult(status=CycleStatus.EMPTY, pages=pages)

        reservation = await self._coordinator.reserve(jobs)
        return CycleResult(
            status=CycleStatus.COMPLETED,
            jobs=len(jobs),
            pages=pages,
            reservation=reservation,
        )

    def _tidy_ledger(self) -> None:
        if self._ledger is None:
            return
        purged = self._ledger.store.purge_expired()
        if purged:
            logger.info("Purged expired ledger entries", extra={"purged": purged})
        self._metrics.update_ledger_size(len(self._ledger))
