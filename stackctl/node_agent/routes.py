"""
Node agent routes.
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from stackctl.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

router = APIRouter()


class JobRequest(BaseModel):
    """Request body for starting an agent for a job."""

    job_uuid: str = Field(..., min_length=1, description="Job to acquire")


class JobAccepted(BaseModel):
    """Response body after accepting a job request."""

    status: str = "success"
    job_uuid: str


@router.get(
    "/health",
    tags=["Health"],
    summary="Liveness probe used by the controller",
)
async def health_check() -> Response:
    """
    Return 200 once the node is ready.

    The controller treats anything but 200 as unhealthy.
    """
    return Response(status_code=status.HTTP_200_OK)


@router.get("/live", tags=["Health"], summary="Liveness check")
async def liveness_check() -> dict:
    return {"alive": True}


@router.get("/metrics", tags=["Health"], summary="Prometheus metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )


@router.post(
    "/job",
    response_model=JobAccepted,
    tags=["Jobs"],
    summary="Accept a job for this node",
)
async def accept_job(body: JobRequest, request: Request) -> JobAccepted:
    """
    Record a request to run an agent for a job.

    Args:
        body: The job request.
        request: Used to reach the node state.

    Returns:
        JobAccepted acknowledging the job.
    """
    state = request.app.state
    state.received_jobs.append(body.job_uuid)
    logger.info(
        "Received job request",
        extra={"job_uuid": body.job_uuid, "max_agents": state.max_agents},
    )
    return JobAccepted(job_uuid=body.job_uuid)
