"""
Upstream queue service client.
"""

from stackctl.upstream.client import StacksClient

__all__ = ["StacksClient"]
