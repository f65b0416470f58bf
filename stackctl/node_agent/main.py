"""
Node agent application.

Runs on a compute node; serves the liveness endpoint the controller probes
before starting an agent, and accepts job requests.
"""

import logging
from collections import deque
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from stackctl import __version__
from stackctl.config import Settings, get_settings
from stackctl.constants import NODE_AGENT_JOB_HISTORY
from stackctl.node_agent.routes import router
from stackctl.observability.logging import setup_logging
from stackctl.observability.metrics import setup_metrics
from stackctl.observability.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    setup_metrics()
    setup_tracing()

    logger.info("Node agent started", extra={"max_agents": app.state.max_agents})

    yield

    logger.info("Node agent shutdown")


def create_app(max_agents: int | None = None) -> FastAPI:
    """
    Create and configure the node agent application.

    Args:
        max_agents: Limit of agent processes on this node.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Sprite Node Agent",
        description="Node-side surface for the sprite stack controller",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.max_agents = max_agents or settings.node_agent_max_agents
    app.state.received_jobs = deque(maxlen=NODE_AGENT_JOB_HISTORY)

    app.include_router(router)

    instrument_fastapi(app)

    return app


def run(settings: Settings | None = None, max_agents: int | None = None) -> None:
    """Run the node agent server."""
    settings = settings or get_settings()
    app = create_app(max_agents=max_agents)

    uvicorn.run(
        app,
        host=settings.node_agent_host,
        port=settings.node_agent_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
