"""Tool registry for managing available tools."""

from urchin.core.logging import get_logger
from urchin.tools.base import Tool

logger = get_logger("tools.registry")

TOOL_USAGE = """TOOLS - include the exact tag to invoke:
{tools}

You can use several tools in one response; they run concurrently and
their results come back in the next message."""


class ToolRegistry:
    """Registry of tools addressable by tag name."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool. A later registration with the same name wins."""
        if tool.name in self._tools:
            logger.warning(f"Tool {tool.name} already registered, overwriting")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        """Get tool by name."""
        return self._tools.get(name)

    def get_all(self) -> list[Tool]:
        """Get all registered tools."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if tool exists."""
        return name in self._tools

    def get_context_string(self) -> str:
        """Tool listing for the system directive."""
        if not self._tools:
            return "No tools available."
        return TOOL_USAGE.format(tools="\n".join(t.to_context_string() for t in self._tools.values()))
