"""
Transport for running commands on compute nodes (Fly.io sprites).

All failures leave this module as NodeError tagged with a NodeErrorKind,
so retry decisions never depend on message text for our own calls.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from stackctl import __version__
from stackctl.constants import NodeErrorKind
from stackctl.exceptions import NodeError

logger = logging.getLogger(__name__)


def translate_error(exc: httpx.HTTPError) -> NodeError:
    """
    Map an httpx failure onto a tagged NodeError.

    Args:
        exc: The httpx exception.

    Returns:
        NodeError with the matching kind.
    """
    if isinstance(exc, httpx.TimeoutException):
        kind = NodeErrorKind.TIMEOUT
    elif isinstance(exc, httpx.ConnectError):
        kind = NodeErrorKind.CONNECTION_REFUSED
    elif isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        kind = NodeErrorKind.CONNECTION_RESET
    else:
        kind = NodeErrorKind.OTHER
    return NodeError(kind, f"{kind}: {exc}")


@dataclass
class CommandResult:
    """Output of a finished remote command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


class SpriteClient:
    """
    Minimal client for the sprites exec API.

    A non-zero exit code is raised as NodeError(COMMAND_FAILED).
    """

    def __init__(
        self,
        token: str | None,
        base_url: str = "https://api.sprites.dev/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"User-Agent": f"stackctl/{__version__}"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            transport=transport,
            # Per-attempt deadlines are enforced by the caller
            timeout=None,
        )

    async def __aenter__(self) -> "SpriteClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def run_command(self, sprite: str, argv: list[str]) -> CommandResult:
        """
        Run a command on a sprite and wait for it to exit.

        Args:
            sprite: Sprite name.
            argv: Command and arguments.

        Returns:
            CommandResult for a zero exit.

        Raises:
            NodeError: On transport failure or non-zero exit.
        """
        logger.debug("Running sprite command", extra={"sprite": sprite, "argv": argv})
        try:
            response = await self._client.post(
                f"/sprites/{sprite}/exec",
                json={"cmd": argv},
            )
        except httpx.HTTPError as e:
            raise translate_error(e) from e

        if not response.is_success:
            raise NodeError(
                NodeErrorKind.OTHER,
                f"exec on sprite {sprite} returned HTTP {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NodeError(
                NodeErrorKind.OTHER, f"exec on sprite {sprite} returned invalid JSON"
            ) from e

        result = CommandResult(
            exit_code=int(data.get("exit_code", 0)),
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
        )
        if result.exit_code != 0:
            raise NodeError(
                NodeErrorKind.COMMAND_FAILED,
                f"command exited with status {result.exit_code}: {result.stderr.strip()[:200]}",
                exit_code=result.exit_code,
            )
        return result
