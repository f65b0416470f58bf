"""
Dispatch engine.

Starts a Buildkite agent on a compute node for each reserved job, retrying
transient failures with exponential backoff, and reports jobs that could
not be started.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from stackctl.constants import (
    DEFAULT_DISPATCH_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_DISPATCH_MAX_ATTEMPTS,
    DEFAULT_DISPATCH_RETRY_DELAY_SECONDS,
    SPAN_DISPATCH_JOB,
    DispatchStatus,
    NodeErrorKind,
)
from stackctl.controller.reporter import FailureReporter
from stackctl.exceptions import HealthCheckError, LedgerCorruptError, NodeError
from stackctl.ledger.jobs import JobLedger
from stackctl.nodes.health import HealthGate
from stackctl.nodes.registry import NodeRegistry
from stackctl.nodes.retry import backoff_delay, is_retryable
from stackctl.nodes.transport import CommandResult
from stackctl.observability.metrics import get_metrics
from stackctl.observability.tracing import get_tracer
from stackctl.types.dispatch import ComputeNode, DispatchOutcome

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class CommandRunner(Protocol):
    async def run_command(self, sprite: str, argv: list[str]) -> CommandResult:
        ...


class DispatchEngine:
    """
    Starts agents for reserved jobs.

    Features:
    - Health gate before every start attempt
    - Per-attempt deadline
    - Exponential backoff between retryable failures
    - Bounded concurrency across a batch, every result collected
    - Ledger entry cleared on every terminal outcome
    """

    def __init__(
        self,
        ledger: JobLedger,
        registry: NodeRegistry,
        health_gate: HealthGate,
        runner: CommandRunner,
        reporter: FailureReporter,
        agent_command: str,
        max_attempts: int = DEFAULT_DISPATCH_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_DISPATCH_RETRY_DELAY_SECONDS,
        attempt_timeout: float = DEFAULT_DISPATCH_ATTEMPT_TIMEOUT_SECONDS,
        max_concurrent: int = 8,
        health_port: str = "",
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize the dispatch engine.

        Args:
            ledger: Ledger of reserved jobs.
            registry: Compute node registry.
            health_gate: Liveness probe run before each attempt.
            runner: Runs the agent command on a node.
            reporter: Reports jobs that could not be started.
            agent_command: Path of the agent binary on the node.
            max_attempts: Attempt budget per job.
            retry_delay: Backoff base delay in seconds.
            attempt_timeout: Deadline for a single attempt in seconds.
            max_concurrent: Maximum dispatches in flight.
            health_port: Port passed to the health gate, empty for its default.
            sleep: Awaitable used for backoff delays.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._ledger = ledger
        self._registry = registry
        self._health_gate = health_gate
        self._runner = runner
        self._reporter = reporter
        self._agent_command = agent_command
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._attempt_timeout = attempt_timeout
        self._health_port = health_port
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self._metrics = get_metrics()

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt``."""
        return backoff_delay(attempt, self._retry_delay)

    def agent_argv(self, job_id: str) -> list[str]:
        """Command line that starts an agent acquiring exactly this job."""
        return [self._agent_command, "start", "--acquire-job", job_id]

    async def dispatch_many(self, job_ids: list[str]) -> list[DispatchOutcome]:
        """
        Dispatch a batch of reserved jobs concurrently.

        Returns:
            One outcome per job id, in input order.
        """
        if not job_ids:
            return []

        tasks = [asyncio.create_task(self._dispatch_bounded(job_id)) for job_id in job_ids]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: list[DispatchOutcome] = []
        for job_id, result in zip(job_ids, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Dispatch raised unexpectedly",
                    extra={"job_id": job_id, "error": repr(result)},
                )
                outcomes.append(DispatchOutcome.failure(job_id, f"dispatch error: {result!r}"))
            else:
                outcomes.append(result)
        return outcomes

    async def _dispatch_bounded(self, job_id: str) -> DispatchOutcome:
        async with self._semaphore:
            return await self.dispatch(job_id)

    async def dispatch(self, job_id: str) -> DispatchOutcome:
        """
        Start an agent for one reserved job.

        Args:
            job_id: The reserved job id.

        Returns:
            The terminal DispatchOutcome.
        """
        start_time = time.monotonic()

        with get_tracer().start_as_current_span(SPAN_DISPATCH_JOB) as span:
            span.set_attribute("job_id", job_id)

            # The entry is removed once, whatever the outcome
            try:
                try:
                    snapshot, _ = self._ledger.get(job_id)
                except LedgerCorruptError as e:
                    # Without a trustworthy record the job is not started again
                    logger.error(
                        "Ledger entry corrupt, not dispatching",
                        extra={"job_id": job_id, "error": str(e)},
                    )
                    outcome = DispatchOutcome.failure(job_id, str(e))
                else:
                    node = self._registry.select(job_id, snapshot)
                    span.set_attribute("node", node.name)
                    outcome = await self._run_with_retries(job_id, node)

                span.set_attribute("status", outcome.status.value)
                span.set_attribute("attempts", outcome.attempts)

                if not outcome.succeeded:
                    await self._reporter.report(job_id, outcome.detail)
            finally:
                self._ledger.delete(job_id)

        duration = time.monotonic() - start_time
        self._metrics.record_dispatch(outcome.status.value, duration)

        if outcome.succeeded:
            logger.info(
                "Started agent for job",
                extra={
                    "job_id": job_id,
                    "node": outcome.node,
                    "attempts": outcome.attempts,
                    "duration": f"{duration:.2f}s",
                },
            )
        else:
            logger.error(
                "Failed to start agent for job",
                extra={"job_id": job_id, "node": outcome.node, "detail": outcome.detail},
            )
        return outcome

    async def _run_with_retries(self, job_id: str, node: ComputeNode) -> DispatchOutcome:
        delays: list[float] = []
        last_error: BaseException | None = None
        attempt = 0

        for attempt in range(1, self._max_attempts + 1):
            self._metrics.record_dispatch_attempt(node.name)
            try:
                await self._attempt(job_id, node)
            except Exception as e:
                last_error = e
            else:
                return DispatchOutcome(
                    job_id=job_id,
                    status=DispatchStatus.SUCCEEDED,
                    attempts=attempt,
                    node=node.name,
                    delays=delays,
                )

            if not is_retryable(last_error) or attempt == self._max_attempts:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(
                "Agent start attempt failed, retrying",
                extra={
                    "job_id": job_id,
                    "node": node.name,
                    "attempt": attempt,
                    "max_attempts": self._max_attempts,
                    "retry_in": delay,
                    "error": str(last_error),
                },
            )
            delays.append(delay)
            await self._sleep(delay)

        return DispatchOutcome.failure(
            job_id,
            f"failed to start agent on {node.name} after {attempt} attempt(s): {last_error}",
            attempts=attempt,
            node=node.name,
            delays=delays,
        )

    async def _attempt(self, job_id: str, node: ComputeNode) -> None:
        try:
            async with asyncio.timeout(self._attempt_timeout):
                health = await self._health_gate.check(node.address, self._health_port)
                if not health.healthy:
                    raise HealthCheckError(
                        f"health check failed for {node.name}: {health.reason}",
                        status_code=health.status_code,
                    )
                await self._runner.run_command(node.name, self.agent_argv(job_id))
        except TimeoutError as e:
            raise NodeError(
                NodeErrorKind.TIMEOUT,
                f"attempt timed out after {self._attempt_timeout}s",
            ) from e
