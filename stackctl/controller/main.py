"""
Controller process.

Registers the stack, runs the queue poller in the background until an
interrupt or terminate signal arrives, then deregisters the stack.
"""

import asyncio
import logging
import signal

from stackctl import __version__
from stackctl.config import Settings, get_settings
from stackctl.controller.coordinator import ReservationCoordinator
from stackctl.controller.dispatcher import DispatchEngine
from stackctl.controller.poller import QueuePoller
from stackctl.controller.reporter import FailureReporter
from stackctl.exceptions import UpstreamError
from stackctl.ledger import JobLedger, Ledger
from stackctl.nodes import HealthGate, NodeRegistry, SpriteClient, build_registry
from stackctl.observability.logging import bind_context, setup_logging
from stackctl.observability.metrics import serve_metrics, setup_metrics
from stackctl.observability.tracing import setup_tracing
from stackctl.upstream import StacksClient

logger = logging.getLogger(__name__)


class Controller:
    """
    Wires the control loop components together.

    Every component receives its collaborators explicitly; the ledger is
    one instance shared by the coordinator, dispatch engine and poller.
    """

    def __init__(
        self,
        settings: Settings,
        client: StacksClient | None = None,
        sprite_client: SpriteClient | None = None,
        health_gate: HealthGate | None = None,
        registry: NodeRegistry | None = None,
        ledger: Ledger | None = None,
    ):
        self.settings = settings
        self.client = client or StacksClient(
            token=settings.buildkite_agent_token,
            base_url=settings.stacks_api_url,
            timeout=settings.stacks_request_timeout_seconds,
        )
        self.sprite_client = sprite_client or SpriteClient(
            token=settings.sprite_api_token,
            base_url=settings.sprites_api_url,
        )
        self.health_gate = health_gate or HealthGate(
            default_port=settings.node_health_port,
            path=settings.node_health_path,
            timeout=settings.node_health_timeout_seconds,
        )
        self.registry = registry or build_registry(settings)
        self.ledger = JobLedger(
            ledger or Ledger(max_entries=settings.ledger_max_entries),
            ttl_seconds=settings.ledger_entry_ttl_seconds,
        )

        self.reporter = FailureReporter(self.client, settings.stack_key)
        self.dispatcher = DispatchEngine(
            ledger=self.ledger,
            registry=self.registry,
            health_gate=self.health_gate,
            runner=self.sprite_client,
            reporter=self.reporter,
            agent_command=settings.agent_command,
            max_attempts=settings.dispatch_max_attempts,
            retry_delay=settings.dispatch_retry_delay_seconds,
            attempt_timeout=settings.dispatch_attempt_timeout_seconds,
            max_concurrent=settings.max_concurrent_dispatches,
        )
        self.coordinator = ReservationCoordinator(
            client=self.client,
            ledger=self.ledger,
            registry=self.registry,
            dispatcher=self.dispatcher,
            stack_key=settings.stack_key,
            reservation_expiry_seconds=settings.reservation_expiry_seconds,
        )
        self.poller = QueuePoller(
            client=self.client,
            coordinator=self.coordinator,
            stack_key=settings.stack_key,
            queue_key=settings.queue,
            interval=settings.poll_interval_seconds,
            page_size=settings.stacks_page_size,
            ledger=self.ledger,
        )

    async def run(self) -> None:
        """
        Register, poll until stopped, deregister.

        Raises:
            UpstreamError: If the stack cannot be registered. The loop never starts.
        """
        settings = self.settings
        logger.info(
            "Starting controller",
            extra={"stack_key": settings.stack_key, "queue": settings.queue},
        )

        try:
            stack = await self.client.register_stack(
                key=settings.stack_key,
                queue_key=settings.queue,
                metadata={"controller_version": __version__},
            )
        except UpstreamError:
            await self.aclose()
            raise

        try:
            await self.poller.start()
        finally:
            logger.info("Deregistering stack", extra={"stack_key": stack.key})
            try:
                await self.client.deregister_stack(stack.key)
            except UpstreamError as e:
                logger.error(
                    "There was an error deregistering the stack",
                    extra={"stack_key": stack.key, "error": str(e)},
                )
            await self.aclose()

        logger.info("Shutting down now, buh-bye!")

    async def stop(self) -> None:
        """Stop the poll loop gracefully."""
        await self.poller.stop()

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.sprite_client.aclose()


async def run_async(settings: Settings | None = None) -> None:
    """Run the controller asynchronously."""
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    setup_metrics()
    setup_tracing()
    serve_metrics(settings.prometheus_port)
    bind_context(stack_key=settings.stack_key, queue=settings.queue)

    controller = Controller(settings)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(controller.stop())
        )

    await controller.run()


def run(settings: Settings | None = None) -> None:
    """Run the controller."""
    try:
        asyncio.run(run_async(settings))
    except UpstreamError as e:
        logger.error("There was an error registering the stack", extra={"error": str(e)})
        raise SystemExit(1) from e


if __name__ == "__main__":
    run()
