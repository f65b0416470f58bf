"""
Exception hierarchy for the controller.
"""

from stackctl.constants import NodeErrorKind


class StackctlError(Exception):
    """Base class for all controller errors."""


class ConfigurationError(StackctlError, ValueError):
    """Invalid configuration detected before the control loop starts."""


class UpstreamError(StackctlError):
    """A request to the upstream queue service failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LedgerError(StackctlError):
    """Base class for ledger errors."""


class LedgerFullError(LedgerError):
    """The ledger is at capacity and the key is new."""


class LedgerCorruptError(LedgerError):
    """A stored value could not be deserialized."""


class NodeError(StackctlError):
    """
    Tagged error raised by the compute node transport.

    The kind is one of a closed set so callers can classify the failure
    without inspecting the message.
    """

    def __init__(
        self,
        kind: NodeErrorKind,
        message: str,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.exit_code = exit_code


class HealthCheckError(NodeError):
    """A compute node failed its liveness probe."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(NodeErrorKind.UNHEALTHY, message)
        self.status_code = status_code
