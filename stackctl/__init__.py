"""
Sprite Stack Controller

Polls a Buildkite stack queue for scheduled jobs, reserves them under a short
lease, and starts a Buildkite agent for each reserved job on a compute node.
"""

__version__ = "1.0.0"
