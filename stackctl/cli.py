"""
Command-line interface.
"""

import click
from pydantic import ValidationError

from stackctl import __version__
from stackctl.config import Settings


def _load_settings(**overrides) -> Settings:
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise click.UsageError(f"invalid configuration: {e}") from e


@click.group()
@click.version_option(__version__, prog_name="stackctl")
def cli():
    """Run Buildkite agents as Fly.io Sprites."""


@cli.command()
@click.option("--agent-token", envvar="BUILDKITE_AGENT_TOKEN", required=True, help="Buildkite agent token")
@click.option("--stack-key", envvar="STACK_KEY", default="bk-sprites", show_default=True, help="Unique stack key")
@click.option("--queue", envvar="QUEUE", default="default", show_default=True, help="Queue the stack will monitor")
@click.option("--poll-interval", envvar="POLL_INTERVAL", default="1s", show_default=True, help="Poll interval, e.g. 500ms, 1s, 1m")
@click.option("--log-level", envvar="LOG_LEVEL", default=None, help="Log level")
def controller(agent_token, stack_key, queue, poll_interval, log_level):
    """Start an instance of the sprite stack controller."""
    from stackctl.controller.main import run

    settings = _load_settings(
        buildkite_agent_token=agent_token,
        stack_key=stack_key,
        queue=queue,
        poll_interval=poll_interval,
        log_level=log_level,
    )
    run(settings)


@cli.command("node-agent")
@click.option("--max-agents", envvar="AGENT_LIMIT", type=int, default=None, help="Limit of agent processes on the node")
@click.option("--port", envvar="NODE_AGENT_PORT", type=int, default=None, help="Listen port")
def node_agent(max_agents, port):
    """Start the node agent on a compute node."""
    from stackctl.node_agent.main import run

    settings = _load_settings(
        node_agent_port=port,
        node_agent_max_agents=max_agents,
    )
    run(settings, max_agents=settings.node_agent_max_agents)


if __name__ == "__main__":
    cli()
