"""
Dispatch and compute node type definitions for internal use.
"""

from dataclasses import dataclass, field

from stackctl.constants import FAILED_TO_START_EXIT_STATUS, CycleStatus, DispatchStatus


@dataclass(frozen=True)
class ComputeNode:
    """An addressable execution target."""

    name: str
    address: str


@dataclass(frozen=True)
class HealthStatus:
    """
    Result of a single liveness probe.
    Never cached beyond one dispatch attempt.
    """

    healthy: bool
    reason: str | None = None
    status_code: int | None = None

    def __bool__(self) -> bool:
        return self.healthy


@dataclass
class DispatchOutcome:
    """Terminal result of dispatching one reserved job."""

    job_id: str
    status: DispatchStatus
    attempts: int = 0
    detail: str = ""
    exit_status: int | None = None
    node: str | None = None
    delays: list[float] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == DispatchStatus.SUCCEEDED

    @classmethod
    def failure(
        cls,
        job_id: str,
        detail: str,
        attempts: int = 0,
        node: str | None = None,
        delays: list[float] | None = None,
    ) -> "DispatchOutcome":
        """Build a failed-to-start outcome."""
        return cls(
            job_id=job_id,
            status=DispatchStatus.FAILED,
            attempts=attempts,
            detail=detail,
            exit_status=FAILED_TO_START_EXIT_STATUS,
            node=node,
            delays=list(delays or []),
        )


@dataclass
class ReservationResult:
    """Outcome of reserving one polled batch."""

    requested: list[str] = field(default_factory=list)
    reserved: list[str] = field(default_factory=list)
    not_reserved: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def dispatched(self) -> list[str]:
        return [o.job_id for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[str]:
        return [o.job_id for o in self.outcomes if not o.succeeded]


@dataclass
class CycleResult:
    """Outcome of a single poll cycle."""

    status: CycleStatus
    jobs: int = 0
    pages: int = 0
    reservation: ReservationResult | None = None
    error: str | None = None
