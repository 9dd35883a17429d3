"""Built-in tools."""

from urchin.tools.builtin.memory import register_memory_tools
from urchin.tools.builtin.web import register_web_tools
from urchin.tools.registry import ToolRegistry


def register_builtin_tools(registry: ToolRegistry) -> None:
    """Register all built-in tools with a registry."""
    register_web_tools(registry)
    register_memory_tools(registry)


__all__ = ["register_builtin_tools"]
