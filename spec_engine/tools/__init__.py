"""Spec engine tools for external agents: package barrel exports."""

from .definitions import get_tool_definitions
from .dispatcher import execute_tool

__all__ = [
    "get_tool_definitions",
    "execute_tool",
]
