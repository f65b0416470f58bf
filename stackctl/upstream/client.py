"""
Async HTTP client for the upstream queue service (Buildkite stacks API).
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from stackctl import __version__
from stackctl.constants import DEFAULT_PAGE_SIZE, STACK_TYPE_CUSTOM
from stackctl.exceptions import UpstreamError
from stackctl.types.upstream import (
    BatchReserveRequest,
    BatchReserveResponse,
    FinishJobRequest,
    RegisterStackRequest,
    ScheduledJobsPage,
    Stack,
)

logger = logging.getLogger(__name__)


class StacksClient:
    """
    Client for the stack endpoints of the upstream queue.

    Every failure, whether transport or HTTP status, is raised as
    UpstreamError so callers only handle one type.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://agent.buildkite.com/v3",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: Agent token used for authentication.
            base_url: API base URL.
            timeout: Per-request timeout in seconds.
            transport: Optional transport, used by tests.
        """
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Token {token}",
                "User-Agent": f"stackctl/{__version__}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "StacksClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        body: BaseModel | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                path,
                json=body.model_dump() if body is not None else None,
                params=params,
            )
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            raise UpstreamError(f"{method} {path}: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"{method} {path}: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{method} {path}: invalid JSON response",
                status_code=response.status_code,
            ) from e

    async def register_stack(
        self,
        key: str,
        queue_key: str,
        metadata: dict[str, str] | None = None,
    ) -> Stack:
        """
        Register a stack identity with the upstream queue.

        Args:
            key: Unique stack key.
            queue_key: Queue the stack serves.
            metadata: Free-form labels.

        Returns:
            The registered stack.
        """
        body = RegisterStackRequest(
            key=key,
            type=STACK_TYPE_CUSTOM,
            queue_key=queue_key,
            metadata=metadata or {},
        )
        data = await self._request("POST", "/stacks/register", body=body)
        stack = self._parse(Stack, data or {"key": key}, "register stack")
        logger.info("Registered stack", extra={"stack_key": stack.key, "queue": queue_key})
        return stack

    async def deregister_stack(self, key: str) -> None:
        """Deregister a stack identity."""
        await self._request("POST", f"/stacks/{key}/deregister")
        logger.info("Deregistered stack", extra={"stack_key": key})

    async def list_scheduled_jobs(
        self,
        stack_key: str,
        queue_key: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ScheduledJobsPage:
        """
        Fetch one page of scheduled jobs.

        Args:
            stack_key: Registered stack key.
            queue_key: Queue to list.
            page_size: Maximum jobs per page.
            cursor: End cursor of the previous page.

        Returns:
            ScheduledJobsPage with jobs, queue state and pagination info.
        """
        params: dict[str, Any] = {"queue_key": queue_key, "limit": page_size}
        if cursor:
            params["cursor"] = cursor
        data = await self._request(
            "GET", f"/stacks/{stack_key}/scheduled_jobs", params=params
        )
        return self._parse(ScheduledJobsPage, data, "list scheduled jobs")

    async def batch_reserve_jobs(
        self,
        stack_key: str,
        job_ids: list[str],
        reservation_expiry_seconds: int,
    ) -> BatchReserveResponse:
        """
        Reserve a batch of jobs for this stack.

        Returns:
            The reserved / not reserved partition of job_ids.
        """
        body = BatchReserveRequest(
            job_uuids=job_ids,
            reservation_expiry_seconds=reservation_expiry_seconds,
        )
        data = await self._request(
            "PUT", f"/stacks/{stack_key}/scheduled_jobs/batch_reserve", body=body
        )
        return self._parse(BatchReserveResponse, data, "batch reserve jobs")

    async def finish_job(
        self,
        stack_key: str,
        job_id: str,
        exit_status: int,
        detail: str = "",
    ) -> None:
        """Report the outcome of a reserved job."""
        body = FinishJobRequest(exit_status=exit_status, detail=detail)
        await self._request("PUT", f"/stacks/{stack_key}/jobs/{job_id}/finish", body=body)

    @staticmethod
    def _parse(model: type[BaseModel], data: dict[str, Any], what: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(f"{what}: unexpected response shape: {e}") from e
