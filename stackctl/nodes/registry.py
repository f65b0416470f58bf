"""
Compute node registry and selection strategies.
"""

import itertools
import threading
from abc import ABC, abstractmethod

from stackctl.config import Settings
from stackctl.constants import NodeSelection
from stackctl.exceptions import ConfigurationError
from stackctl.types.dispatch import ComputeNode
from stackctl.types.job import JobSnapshot


class SelectionStrategy(ABC):
    """Picks a compute node for a job."""

    @abstractmethod
    def select(
        self,
        nodes: list[ComputeNode],
        job_id: str,
        snapshot: JobSnapshot | None,
    ) -> ComputeNode:
        ...


class SingleNodeStrategy(SelectionStrategy):
    """Always the first node."""

    def select(self, nodes, job_id, snapshot):
        return nodes[0]


class RoundRobinStrategy(SelectionStrategy):
    """Cycles through nodes in order."""

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def select(self, nodes, job_id, snapshot):
        with self._lock:
            index = next(self._counter)
        return nodes[index % len(nodes)]


class NodeRegistry:
    """
    The set of compute nodes jobs can be dispatched to.

    Callers only use select(); how a node is chosen is up to the strategy.
    """

    def __init__(
        self,
        nodes: list[ComputeNode],
        strategy: SelectionStrategy | None = None,
    ):
        if not nodes:
            raise ConfigurationError("node registry needs at least one compute node")
        self._nodes = list(nodes)
        self._strategy = strategy or SingleNodeStrategy()

    @property
    def nodes(self) -> list[ComputeNode]:
        return list(self._nodes)

    def select(self, job_id: str, snapshot: JobSnapshot | None = None) -> ComputeNode:
        """
        Pick the node that should run a job.

        A snapshot that already names a known node keeps the job there.
        """
        if snapshot is not None and snapshot.sprite:
            for node in self._nodes:
                if node.name == snapshot.sprite:
                    return node
        return self._strategy.select(self._nodes, job_id, snapshot)


def build_registry(settings: Settings) -> NodeRegistry:
    """Build the node registry described by settings."""
    nodes = [
        ComputeNode(name=name, address=settings.sprite_address_template.format(name=name))
        for name in settings.sprite_name_list
    ]
    strategy: SelectionStrategy
    if settings.node_selection == NodeSelection.ROUND_ROBIN:
        strategy = RoundRobinStrategy()
    else:
        strategy = SingleNodeStrategy()
    return NodeRegistry(nodes, strategy)
