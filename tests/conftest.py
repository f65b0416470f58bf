"""
Pytest configuration and shared fixtures.
"""

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from stackctl.config import Settings
from stackctl.controller.coordinator import ReservationCoordinator
from stackctl.controller.dispatcher import DispatchEngine
from stackctl.controller.reporter import FailureReporter
from stackctl.ledger import JobLedger, Ledger
from stackctl.nodes import HealthGate, NodeRegistry
from stackctl.nodes.transport import CommandResult
from stackctl.types.dispatch import ComputeNode
from stackctl.types.job import ScheduledJob
from stackctl.upstream import StacksClient

STACK_KEY = "test-stack"
QUEUE_KEY = "default"


def scheduled_job(job_id: str, priority: int = 0) -> dict[str, Any]:
    """Build a scheduled job record as returned by the stacks API."""
    return {
        "id": job_id,
        "priority": priority,
        "agent_query_rules": ["queue=default", "os=linux"],
        "scheduled_at": "2024-01-01T12:00:00Z",
        "pipeline": {"slug": "my-pipeline", "uuid": "pipe-123"},
        "build": {"uuid": "build-1", "number": 42, "branch": "main"},
        "step": {"key": "test"},
    }


class FakeStacksAPI:
    """
    In-memory stand-in for the stacks API, served through httpx.MockTransport.

    Pages are returned in order; reserve_response decides the partition of
    a reservation (default: everything reserved).
    """

    def __init__(self) -> None:
        self.pages: list[dict[str, Any]] = []
        self.paused = False
        self.reserve_response: dict[str, list[str]] | None = None
        self.fail_list_on_page: int | None = None
        self.fail_reserve = False
        self.fail_finish = False
        self.fail_register = False
        self.requests: list[httpx.Request] = []
        self.reserve_calls: list[dict[str, Any]] = []
        self.finish_calls: list[tuple[str, dict[str, Any]]] = []
        self.list_calls: list[dict[str, str]] = []
        self.deregistered: list[str] = []

    def set_jobs(self, *pages: list[str]) -> None:
        """Serve the given job ids, one list per page."""
        self.pages = []
        for index, ids in enumerate(pages):
            has_next = index < len(pages) - 1
            self.pages.append(
                {
                    "jobs": [scheduled_job(i) for i in ids],
                    "page_info": {
                        "has_next_page": has_next,
                        "end_cursor": f"cursor-{index + 1}" if has_next else None,
                    },
                }
            )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: self.handler(request))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/stacks/register"):
            if self.fail_register:
                return httpx.Response(503, text="unavailable")
            body = json.loads(request.content)
            return httpx.Response(200, json={**body, "state": "connected"})

        if path.endswith("/deregister"):
            self.deregistered.append(path.split("/")[-2])
            return httpx.Response(200, json={})

        if path.endswith("/scheduled_jobs"):
            params = dict(request.url.params)
            self.list_calls.append(params)
            index = len(self.list_calls) - 1
            if self.fail_list_on_page is not None and index == self.fail_list_on_page:
                return httpx.Response(502, text="bad gateway")
            page = self.pages[index] if index < len(self.pages) else {"jobs": []}
            return httpx.Response(
                200,
                json={
                    "cluster_queue": {"id": "q-1", "key": QUEUE_KEY, "paused": self.paused},
                    **page,
                },
            )

        if path.endswith("/batch_reserve"):
            body = json.loads(request.content)
            self.reserve_calls.append(body)
            if self.fail_reserve:
                return httpx.Response(500, text="boom")
            response = self.reserve_response or {
                "reserved": body["job_uuids"],
                "not_reserved": [],
            }
            return httpx.Response(200, json=response)

        if path.endswith("/finish"):
            if self.fail_finish:
                return httpx.Response(500, text="boom")
            job_id = path.split("/")[-2]
            self.finish_calls.append((job_id, json.loads(request.content)))
            return httpx.Response(200, json={})

        return httpx.Response(404)


class RecordingRunner:
    """
    Command runner that records invocations and raises scripted errors.

    Each call pops the next entry from errors; None means success.
    """

    def __init__(self, errors: list[BaseException | None] | None = None):
        self.errors = list(errors or [])
        self.calls: list[tuple[str, list[str]]] = []

    async def run_command(self, sprite: str, argv: list[str]) -> CommandResult:
        self.calls.append((sprite, argv))
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return CommandResult(exit_code=0)


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _health_transport(status_code: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code))


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        buildkite_agent_token="test-token",
        stack_key=STACK_KEY,
        queue=QUEUE_KEY,
        poll_interval="10ms",
        stacks_api_url="https://stacks.test/v3",
        sprites_api_url="https://sprites.test/v1",
        sprite_names="sprite-1",
        log_level="DEBUG",
        log_format="console",
        dispatch_retry_delay="0s",
        prometheus_port=0,
    )


@pytest.fixture
def stacks_api() -> FakeStacksAPI:
    return FakeStacksAPI()


@pytest_asyncio.fixture
async def stacks_client(stacks_api: FakeStacksAPI) -> AsyncGenerator[StacksClient]:
    """StacksClient talking to the fake stacks API."""
    async with StacksClient(
        token="test-token",
        base_url="https://stacks.test/v3",
        transport=stacks_api.transport,
    ) as client:
        yield client


@pytest.fixture
def job_ledger() -> JobLedger:
    return JobLedger(Ledger(max_entries=100), ttl_seconds=600)


@pytest.fixture
def node() -> ComputeNode:
    return ComputeNode(name="sprite-1", address="sprite-1.sprites.test")


@pytest.fixture
def registry(node: ComputeNode) -> NodeRegistry:
    return NodeRegistry([node])


@pytest.fixture
def runner() -> RecordingRunner:
    """Runner that succeeds unless errors are scripted on it."""
    return RecordingRunner()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def health_gate_factory() -> Callable[[int], HealthGate]:
    """Build a HealthGate whose probes all answer with the given status."""

    def factory(status_code: int = 200) -> HealthGate:
        return HealthGate(transport=_health_transport(status_code))

    return factory


@pytest.fixture
def reporter(stacks_client: StacksClient) -> FailureReporter:
    return FailureReporter(stacks_client, STACK_KEY)


@pytest.fixture
def dispatcher_factory(
    job_ledger: JobLedger,
    registry: NodeRegistry,
    health_gate_factory: Callable[[int], HealthGate],
    runner: RecordingRunner,
    reporter: FailureReporter,
    sleep: RecordingSleep,
) -> Callable[..., DispatchEngine]:
    """Build a DispatchEngine; keyword arguments override the defaults."""

    def factory(**overrides: Any) -> DispatchEngine:
        kwargs: dict[str, Any] = {
            "ledger": job_ledger,
            "registry": registry,
            "health_gate": health_gate_factory(200),
            "runner": runner,
            "reporter": reporter,
            "agent_command": ".buildkite-agent/bin/buildkite-agent",
            "max_attempts": 3,
            "retry_delay": 2.0,
            "attempt_timeout": 5.0,
            "max_concurrent": 4,
            "sleep": sleep,
        }
        kwargs.update(overrides)
        return DispatchEngine(**kwargs)

    return factory


@pytest.fixture
def dispatcher(dispatcher_factory: Callable[..., DispatchEngine]) -> DispatchEngine:
    """Dispatch engine with a healthy node and a recording runner."""
    return dispatcher_factory()


@pytest.fixture
def coordinator(
    stacks_client: StacksClient,
    job_ledger: JobLedger,
    registry: NodeRegistry,
    dispatcher: DispatchEngine,
) -> ReservationCoordinator:
    return ReservationCoordinator(
        client=stacks_client,
        ledger=job_ledger,
        registry=registry,
        dispatcher=dispatcher,
        stack_key=STACK_KEY,
        reservation_expiry_seconds=30,
    )


@pytest.fixture
def make_scheduled_job() -> Callable[..., ScheduledJob]:
    """Build a ScheduledJob model from an id."""

    def factory(job_id: str, priority: int = 0) -> ScheduledJob:
        return ScheduledJob.model_validate(scheduled_job(job_id, priority))

    return factory
