"""
Reports jobs that could not be started back to the upstream queue.
"""

import logging

from stackctl.constants import FAILED_TO_START_EXIT_STATUS, SPAN_REPORT_FAILURE
from stackctl.exceptions import UpstreamError
from stackctl.observability.metrics import get_metrics
from stackctl.observability.tracing import get_tracer
from stackctl.upstream.client import StacksClient

logger = logging.getLogger(__name__)


class FailureReporter:
    """
    Finishes a reserved job upstream with the failed-to-start exit status.

    Best effort: a failed report is logged and swallowed. The job then stays
    reserved until its lease expires, which is preferable to taking the
    control loop down.
    """

    def __init__(self, client: StacksClient, stack_key: str):
        self._client = client
        self._stack_key = stack_key
        self._metrics = get_metrics()

    async def report(self, job_id: str, detail: str) -> bool:
        """
        Report a job as failed to start.

        Args:
            job_id: The reserved job.
            detail: Human readable reason shown upstream.

        Returns:
            True if the report was accepted.
        """
        with get_tracer().start_as_current_span(SPAN_REPORT_FAILURE) as span:
            span.set_attribute("job_id", job_id)
            try:
                await self._client.finish_job(
                    stack_key=self._stack_key,
                    job_id=job_id,
                    exit_status=FAILED_TO_START_EXIT_STATUS,
                    detail=detail,
                )
            except UpstreamError as e:
                logger.error(
                    "Failed to report job failure",
                    extra={"job_id": job_id, "error": str(e)},
                )
                self._metrics.record_failure_report("error")
                return False
            except Exception:
                logger.exception("Unexpected error reporting job failure", extra={"job_id": job_id})
                self._metrics.record_failure_report("error")
                return False

        logger.info(
            "Reported job as failed to start",
            extra={"job_id": job_id, "detail": detail},
        )
        self._metrics.record_failure_report("sent")
        return True
