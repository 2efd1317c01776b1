"""
Tools package.
"""

from .registry import tool_registry, Tool, ToolCall, ToolRegistry

# Import vehicle tools to register them
from . import vehicle

__all__ = [
    "tool_registry",
    "Tool",
    "ToolCall",
    "ToolRegistry",
    "vehicle",
]
