"""Tool calling framework for tag-driven tool execution."""

from urchin.tools.base import Tool, ToolContext, tool
from urchin.tools.executor import ToolDispatcher
from urchin.tools.parser import TagParser
from urchin.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolContext", "tool", "ToolRegistry", "ToolDispatcher", "TagParser"]
