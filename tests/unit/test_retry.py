"""
Unit tests for retry classification and backoff.
"""

import httpx
import pytest

from stackctl.constants import NodeErrorKind
from stackctl.exceptions import HealthCheckError, NodeError
from stackctl.nodes.retry import backoff_delay, is_retryable, is_retryable_kind


class TestIsRetryable:
    """Tests for is_retryable."""

    def test_connection_reset_message(self):
        """Test a foreign error mentioning a reset is retryable."""
        assert is_retryable(RuntimeError("read tcp: connection reset by peer")) is True

    def test_message_match_is_case_insensitive(self):
        """Test phrases match regardless of case."""
        assert is_retryable(OSError("dial: I/O Timeout")) is True
        assert is_retryable(RuntimeError("Failed To Connect to sprite")) is True

    def test_permission_denied(self):
        """Test an unrelated error is not retryable."""
        assert is_retryable(RuntimeError("permission denied")) is False

    def test_timeout_by_type(self):
        """Test timeouts are retryable whatever their message says."""
        assert is_retryable(TimeoutError("permission denied")) is True
        assert is_retryable(httpx.ReadTimeout("permission denied")) is True

    def test_tagged_errors_use_kind_not_message(self):
        """Test NodeErrors are classified by kind only."""
        assert is_retryable(NodeError(NodeErrorKind.TIMEOUT, "permission denied")) is True
        assert (
            is_retryable(NodeError(NodeErrorKind.COMMAND_FAILED, "connection reset by peer"))
            is False
        )

    def test_health_failures_are_retryable(self):
        """Test an unhealthy node is retried, since it may be waking up."""
        assert is_retryable(HealthCheckError("node did not return 200")) is True

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (NodeErrorKind.TIMEOUT, True),
            (NodeErrorKind.CONNECTION_REFUSED, True),
            (NodeErrorKind.CONNECTION_RESET, True),
            (NodeErrorKind.UNHEALTHY, True),
            (NodeErrorKind.COMMAND_FAILED, False),
            (NodeErrorKind.OTHER, False),
        ],
    )
    def test_every_kind_classified(self, kind: NodeErrorKind, expected: bool):
        """Test the kind match covers the whole closed set."""
        assert is_retryable_kind(kind) is expected


class TestBackoffDelay:
    """Tests for backoff_delay."""

    def test_schedule(self):
        """Test delay doubles with each attempt."""
        assert [backoff_delay(n, 2.0) for n in range(1, 5)] == [2.0, 4.0, 8.0, 16.0]

    def test_rejects_attempt_zero(self):
        """Test attempts are counted from 1."""
        with pytest.raises(ValueError):
            backoff_delay(0, 2.0)
