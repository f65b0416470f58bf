"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class DispatchStatus(StrEnum):
    """Terminal outcome of dispatching one reserved job."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CycleStatus(StrEnum):
    """
    Outcome of a single poll cycle.

    - COMPLETED: all pages fetched and the batch handed to the coordinator
    - EMPTY: all pages fetched, nothing scheduled
    - PAUSED: the upstream queue is paused, nothing consumed
    - FAILED: a page request failed, the cycle was abandoned
    - CANCELLED: the poller was stopped between page fetches
    """

    COMPLETED = "completed"
    EMPTY = "empty"
    PAUSED = "paused"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NodeErrorKind(StrEnum):
    """Closed set of compute node transport failures."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    UNHEALTHY = "unhealthy"
    COMMAND_FAILED = "command_failed"
    OTHER = "other"


class NodeSelection(StrEnum):
    """Strategies for picking a compute node for a job."""

    SINGLE = "single"
    ROUND_ROBIN = "round_robin"


# Exit status reported upstream when an agent could not be started
FAILED_TO_START_EXIT_STATUS = -1

# Stack type used when registering with the upstream queue
STACK_TYPE_CUSTOM = "custom"

# Default values
DEFAULT_RESERVATION_EXPIRY_SECONDS = 30
DEFAULT_PAGE_SIZE = 50
DEFAULT_HEALTH_PORT = "8080"
DEFAULT_HEALTH_PATH = "/health"
DEFAULT_DISPATCH_MAX_ATTEMPTS = 3
DEFAULT_DISPATCH_RETRY_DELAY_SECONDS = 2.0
DEFAULT_DISPATCH_ATTEMPT_TIMEOUT_SECONDS = 300.0
DEFAULT_LEDGER_MAX_ENTRIES = 1000
NODE_AGENT_JOB_HISTORY = 100

# Ledger key prefix for job snapshots
JOB_KEY_PREFIX = "job:"

# Error messages from outside our transport wrapper that indicate a transient failure
RETRYABLE_ERROR_PHRASES: tuple[str, ...] = (
    "i/o timeout",
    "failed to connect",
    "connection reset by peer",
)

# Metrics names
METRIC_POLL_CYCLES = "stackctl_poll_cycles_total"
METRIC_JOBS_POLLED = "stackctl_jobs_polled_total"
METRIC_RESERVATIONS = "stackctl_reservations_total"
METRIC_DISPATCH_ATTEMPTS = "stackctl_dispatch_attempts_total"
METRIC_DISPATCHES = "stackctl_dispatches_total"
METRIC_DISPATCH_DURATION = "stackctl_dispatch_duration_seconds"
METRIC_FAILURE_REPORTS = "stackctl_failure_reports_total"
METRIC_LEDGER_ENTRIES = "stackctl_ledger_entries"
METRIC_LEDGER_REJECTED = "stackctl_ledger_rejected_total"

# Trace span names
SPAN_POLL_CYCLE = "poll_cycle"
SPAN_RESERVE_JOBS = "reserve_jobs"
SPAN_DISPATCH_JOB = "dispatch_job"
SPAN_REPORT_FAILURE = "report_failure"
