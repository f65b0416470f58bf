"""
Node agent module.
HTTP surface running on each compute node.
"""
