"""
Reservation coordinator.

Turns a polled batch into an upstream reservation and hands the reserved
jobs to the dispatch engine.
"""

import logging

from stackctl.constants import SPAN_RESERVE_JOBS
from stackctl.controller.dispatcher import DispatchEngine
from stackctl.exceptions import LedgerFullError, UpstreamError
from stackctl.ledger.jobs import JobLedger
from stackctl.nodes.registry import NodeRegistry
from stackctl.observability.metrics import get_metrics
from stackctl.observability.tracing import get_tracer
from stackctl.types.dispatch import ReservationResult
from stackctl.types.job import JobSnapshot, ScheduledJob
from stackctl.upstream.client import StacksClient

logger = logging.getLogger(__name__)


class ReservationCoordinator:
    """
    Reserves polled jobs and dispatches the ones granted to us.

    Every job is written to the ledger before the reservation call so an
    interrupted cycle leaves a trace. Ledger entries never decide whether a
    job is ours; the upstream reservation does.
    """

    def __init__(
        self,
        client: StacksClient,
        ledger: JobLedger,
        registry: NodeRegistry,
        dispatcher: DispatchEngine,
        stack_key: str,
        reservation_expiry_seconds: int,
    ):
        self._client = client
        self._ledger = ledger
        self._registry = registry
        self._dispatcher = dispatcher
        self._stack_key = stack_key
        self._reservation_expiry_seconds = reservation_expiry_seconds
        self._metrics = get_metrics()

    async def reserve(self, jobs: list[ScheduledJob]) -> ReservationResult:
        """
        Reserve and dispatch a batch of scheduled jobs.

        Args:
            jobs: Jobs in upstream order. Empty is a no-op.

        Returns:
            ReservationResult describing what happened to each job.
        """
        result = ReservationResult()
        if not jobs:
            return result

        with get_tracer().start_as_current_span(SPAN_RESERVE_JOBS) as span:
            span.set_attribute("batch_size", len(jobs))

            for job in self._unique(jobs):
                node = self._registry.select(job.id)
                snapshot = JobSnapshot.from_scheduled_job(job, sprite=node.name)
                try:
                    self._ledger.set(job.id, snapshot)
                except LedgerFullError as e:
                    # Not reserved without a local record
                    logger.warning(
                        "Ledger full, skipping job this cycle",
                        extra={"job_id": job.id, "error": str(e)},
                    )
                    self._metrics.record_ledger_rejected()
                    result.skipped.append(job.id)
                    continue
                result.requested.append(job.id)

            if not result.requested:
                return result

            try:
                response = await self._client.batch_reserve_jobs(
                    stack_key=self._stack_key,
                    job_ids=result.requested,
                    reservation_expiry_seconds=self._reservation_expiry_seconds,
                )
            except UpstreamError as e:
                # Entries stay until their TTL lapses or a later cycle overwrites them
                logger.error(
                    "Failed to reserve jobs",
                    extra={"jobs": len(result.requested), "error": str(e)},
                )
                self._metrics.record_reservations("failed", len(result.requested))
                result.error = str(e)
                return result

            requested = set(result.requested)
            result.not_reserved = [i for i in response.not_reserved if i in requested]
            result.reserved = [i for i in response.reserved if i in requested]

            for job_id in result.not_reserved:
                self._ledger.delete(job_id)
            if result.not_reserved:
                logger.warning(
                    "Some jobs were not reserved",
                    extra={"not_reserved": result.not_reserved},
                )

            answered = set(result.reserved) | set(result.not_reserved)
            unanswered = [i for i in result.requested if i not in answered]
            for job_id in unanswered:
                self._ledger.delete(job_id)
            if unanswered:
                logger.warning(
                    "Reservation response omitted requested jobs",
                    extra={"unanswered": unanswered},
                )

            self._metrics.record_reservations("reserved", len(result.reserved))
            self._metrics.record_reservations("not_reserved", len(result.not_reserved))
            span.set_attribute("reserved", len(result.reserved))
            span.set_attribute("not_reserved", len(result.not_reserved))

            if result.reserved:
                logger.info(
                    "Reserved jobs, starting agents",
                    extra={"jobs": len(result.reserved)},
                )
                result.outcomes = await self._dispatcher.dispatch_many(result.reserved)

        return result

    @staticmethod
    def _unique(jobs: list[ScheduledJob]) -> list[ScheduledJob]:
        seen: set[str] = set()
        unique = []
        for job in jobs:
            if job.id not in seen:
                seen.add(job.id)
                unique.append(job)
        return unique
