"""
Type definitions for the controller.
Contains input/output type definitions grouped by module.
"""

from stackctl.types.dispatch import (
    ComputeNode,
    CycleResult,
    DispatchOutcome,
    HealthStatus,
    ReservationResult,
)
from stackctl.types.job import Build, JobSnapshot, Pipeline, ScheduledJob, Step
from stackctl.types.upstream import (
    BatchReserveRequest,
    BatchReserveResponse,
    ClusterQueue,
    FinishJobRequest,
    PageInfo,
    RegisterStackRequest,
    ScheduledJobsPage,
    Stack,
)

__all__ = [
    # Job types
    "ScheduledJob",
    "JobSnapshot",
    "Pipeline",
    "Build",
    "Step",
    # Upstream types
    "ScheduledJobsPage",
    "ClusterQueue",
    "PageInfo",
    "BatchReserveRequest",
    "BatchReserveResponse",
    "FinishJobRequest",
    "RegisterStackRequest",
    "Stack",
    # Dispatch types
    "ComputeNode",
    "HealthStatus",
    "DispatchOutcome",
    "ReservationResult",
    "CycleResult",
]
