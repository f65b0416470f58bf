"""
Compute node module.
Transport, liveness probing, retry classification and node selection.
"""

from stackctl.nodes.health import HealthGate
from stackctl.nodes.registry import (
    NodeRegistry,
    RoundRobinStrategy,
    SelectionStrategy,
    SingleNodeStrategy,
    build_registry,
)
from stackctl.nodes.retry import backoff_delay, is_retryable
from stackctl.nodes.transport import CommandResult, SpriteClient, translate_error

__all__ = [
    "HealthGate",
    "NodeRegistry",
    "SelectionStrategy",
    "SingleNodeStrategy",
    "RoundRobinStrategy",
    "build_registry",
    "is_retryable",
    "backoff_delay",
    "SpriteClient",
    "CommandResult",
    "translate_error",
]
