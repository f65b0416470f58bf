"""
Unit tests for the health gate.
"""

import httpx
import pytest

from stackctl.nodes.health import HealthGate


class TestHealthGate:
    """Tests for HealthGate."""

    @pytest.mark.asyncio
    async def test_healthy_on_200(self):
        """Test exactly 200 is healthy."""
        gate = HealthGate(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        status = await gate.check("sprite-1.test")

        assert status.healthy is True
        assert status.reason is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [201, 204, 301, 404, 503])
    async def test_unhealthy_on_other_status(self, code: int):
        """Test any other status is unhealthy with a reason."""
        gate = HealthGate(transport=httpx.MockTransport(lambda r: httpx.Response(code)))

        status = await gate.check("sprite-1.test")

        assert status.healthy is False
        assert status.reason is not None
        assert status.status_code == code

    @pytest.mark.asyncio
    async def test_unhealthy_on_connection_error(self):
        """Test a connection failure is unhealthy with a reason."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gate = HealthGate(transport=httpx.MockTransport(handler))

        status = await gate.check("sprite-1.test")

        assert status.healthy is False
        assert "connection refused" in status.reason

    @pytest.mark.asyncio
    async def test_unhealthy_on_timeout(self):
        """Test a timed out probe is unhealthy."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gate = HealthGate(transport=httpx.MockTransport(handler))

        status = await gate.check("sprite-1.test")

        assert status.healthy is False
        assert "timed out" in status.reason

    @pytest.mark.asyncio
    async def test_probe_url_and_default_port(self):
        """Test the default port and liveness path are used for an empty port."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200)

        gate = HealthGate(transport=httpx.MockTransport(handler))

        await gate.check("sprite-1.test", "")
        await gate.check("sprite-1.test", "9000")

        assert seen == [
            "http://sprite-1.test:8080/health",
            "http://sprite-1.test:9000/health",
        ]

    def test_url_for_strips_scheme(self):
        """Test an address given as a URL is reduced to its host."""
        gate = HealthGate(default_port="8080", path="ready")

        assert gate.url_for("https://sprite-1.sprites.app") == "http://sprite-1.sprites.app:8080/ready"

    @pytest.mark.parametrize(
        "address,expected",
        [
            ("sprite-1.test", "http://sprite-1.test:8080/health"),
            ("sprite-1.test:9999", "http://sprite-1.test:8080/health"),
            ("10.0.0.7:22", "http://10.0.0.7:8080/health"),
            ("::1", "http://[::1]:8080/health"),
            ("fdaa:0:1::3", "http://[fdaa:0:1::3]:8080/health"),
            ("[fdaa:0:1::3]:22", "http://[fdaa:0:1::3]:8080/health"),
            ("http://[::1]:9000", "http://[::1]:8080/health"),
        ],
    )
    def test_url_for_host_forms(self, address: str, expected: str):
        """Test host names, IPv4 and IPv6 addresses keep their host and lose any port."""
        assert HealthGate(default_port="8080").url_for(address) == expected
