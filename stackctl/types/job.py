"""
Job-related type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Pipeline(BaseModel):
    """Pipeline reference attached to a scheduled job."""

    slug: str = ""
    uuid: str = ""


class Build(BaseModel):
    """Build reference attached to a scheduled job."""

    uuid: str = ""
    number: int = 0
    branch: str = ""


class Step(BaseModel):
    """Step reference attached to a scheduled job."""

    key: str = ""


class ScheduledJob(BaseModel):
    """
    A unit of work read from the upstream queue.
    Read-only to the controller.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    priority: int = 0
    agent_query_rules: list[str] = Field(default_factory=list)
    scheduled_at: datetime | None = None
    pipeline: Pipeline = Field(default_factory=Pipeline)
    build: Build = Field(default_factory=Build)
    step: Step = Field(default_factory=Step)


class JobSnapshot(BaseModel):
    """
    Normalized copy of a scheduled job kept in the ledger while the job
    is reserved by this controller.
    """

    id: str
    sprite: str = ""
    priority: int = 0
    agent_query_rules: list[str] = Field(default_factory=list)
    scheduled_at: datetime | None = None
    pipeline: Pipeline = Field(default_factory=Pipeline)
    build: Build = Field(default_factory=Build)
    step: Step = Field(default_factory=Step)

    @classmethod
    def from_scheduled_job(cls, job: ScheduledJob, sprite: str = "") -> "JobSnapshot":
        """Build a snapshot from a job polled from the upstream queue."""
        return cls(
            id=job.id,
            sprite=sprite,
            priority=job.priority,
            agent_query_rules=sorted(job.agent_query_rules),
            scheduled_at=job.scheduled_at,
            pipeline=job.pipeline.model_copy(),
            build=job.build.model_copy(),
            step=job.step.model_copy(),
        )
