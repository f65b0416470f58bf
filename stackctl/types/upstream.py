"""
Request and response types for the upstream queue service.
"""

from pydantic import BaseModel, Field

from stackctl.types.job import ScheduledJob


class ClusterQueue(BaseModel):
    """Queue state returned alongside scheduled jobs."""

    id: str = ""
    key: str = ""
    paused: bool = False


class PageInfo(BaseModel):
    """Cursor pagination info."""

    has_next_page: bool = False
    end_cursor: str | None = None


class ScheduledJobsPage(BaseModel):
    """One page of scheduled jobs for a stack queue."""

    jobs: list[ScheduledJob] = Field(default_factory=list)
    cluster_queue: ClusterQueue = Field(default_factory=ClusterQueue)
    page_info: PageInfo = Field(default_factory=PageInfo)


class BatchReserveRequest(BaseModel):
    """Request body for reserving a batch of jobs."""

    job_uuids: list[str]
    reservation_expiry_seconds: int


class BatchReserveResponse(BaseModel):
    """Partition of requested job ids into reserved and not reserved."""

    reserved: list[str] = Field(default_factory=list)
    not_reserved: list[str] = Field(default_factory=list)


class FinishJobRequest(BaseModel):
    """Request body for reporting a job outcome."""

    exit_status: int
    detail: str = ""


class RegisterStackRequest(BaseModel):
    """Request body for registering a stack."""

    key: str
    type: str
    queue_key: str
    metadata: dict[str, str] = Field(default_factory=dict)


class Stack(BaseModel):
    """A registered stack."""

    key: str
    type: str = ""
    queue_key: str = ""
    state: str = ""
