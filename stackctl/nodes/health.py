"""
Liveness probing for compute nodes.

A probe also wakes nodes that scale to zero when idle, so a failed probe
during cold start is expected and left to the caller to retry.
"""

import logging

import httpx

from stackctl.constants import DEFAULT_HEALTH_PATH, DEFAULT_HEALTH_PORT
from stackctl.types.dispatch import HealthStatus

logger = logging.getLogger(__name__)


class HealthGate:
    """
    Probes a node's liveness endpoint. Performs no retries.
    """

    def __init__(
        self,
        default_port: str = DEFAULT_HEALTH_PORT,
        path: str = DEFAULT_HEALTH_PATH,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._default_port = default_port
        self._path = path if path.startswith("/") else f"/{path}"
        self._timeout = timeout
        self._transport = transport

    def url_for(self, address: str, port: str = "") -> str:
        """Build the liveness URL for an address, dropping any scheme or port it carries."""
        if "://" not in address:
            # A bare IPv6 literal has no brackets and so no port
            if address.count(":") > 1 and not address.startswith("["):
                address = f"[{address}]"
            address = f"http://{address}"
        host = httpx.URL(address).host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{port or self._default_port}{self._path}"

    async def check(self, address: str, port: str = "") -> HealthStatus:
        """
        Probe a node once.

        Args:
            address: Node host name or URL.
            port: Port to probe. Empty uses the default.

        Returns:
            HealthStatus; healthy only on exactly HTTP 200.
        """
        url = self.url_for(address, port)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.warning("Health probe timed out", extra={"url": url})
            return HealthStatus(healthy=False, reason=f"health probe timed out: {e}")
        except httpx.HTTPError as e:
            logger.warning("Health probe failed", extra={"url": url, "error": str(e)})
            return HealthStatus(healthy=False, reason=f"health probe failed: {e}")

        if response.status_code != httpx.codes.OK:
            return HealthStatus(
                healthy=False,
                reason=f"node did not return 200, unhealthy (got {response.status_code})",
                status_code=response.status_code,
            )

        return HealthStatus(healthy=True, status_code=response.status_code)
