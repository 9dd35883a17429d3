"""Base tool definitions and decorators."""

import json
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from urchin.core.config import Settings
from urchin.core.types import ActionResult

if TYPE_CHECKING:
    from urchin.memory.accessor import MemoryAccessor
    from urchin.memory.relevance import RelevanceFilter


@dataclass
class ToolContext:
    """Shared services handed to every tool handler."""

    memory: "MemoryAccessor"
    relevance: "RelevanceFilter | None" = None
    settings: Settings | None = None
    extra: dict[str, Any] = field(default_factory=dict)


ToolHandler = Callable[[str, ToolContext], Awaitable[Any]]


@dataclass
class Tool:
    """Definition of a callable tool."""

    name: str
    description: str
    handler: ToolHandler
    usage: str = ""
    examples: list[str] = field(default_factory=list)

    def to_context_string(self) -> str:
        """Format tool for the system directive."""
        tag = f"<<TOOL:{self.name}:{self.usage}>>" if self.usage else f"<<TOOL:{self.name}>>"
        lines = [f"{tag} - {self.description}"]
        for ex in self.examples:
            lines.append(f"    e.g. {ex}")
        return "\n".join(lines)


F = TypeVar("F", bound=ToolHandler)


def tool(
    name: str,
    description: str,
    usage: str = "",
    examples: list[str] | None = None,
) -> Callable[[F], F]:
    """
    Decorator to declare a function as a tool.

    Args:
        name: Tool name as used in tags (e.g., "WEB_SEARCH")
        description: Human-readable description
        usage: Parameter placeholder shown to the model (e.g., "query")
        examples: Example tags

    Example:
        @tool("ECHO", "Echo the parameter back", usage="text")
        async def echo(parameter: str, context: ToolContext) -> ActionResult:
            return ActionResult(success=True, data={"echo": parameter})
    """

    def decorator(func: F) -> F:
        func._tool = Tool(  # type: ignore[attr-defined]
            name=name,
            description=description,
            handler=func,
            usage=usage,
            examples=examples or [],
        )
        return func

    return decorator


def extract_json(raw: str) -> Any:
    """Parse JSON from model or tool text, tolerating markdown fences.

    Returns None when nothing parses.
    """
    cleaned = re.sub(r"```json\s*", "", raw)
    cleaned = re.sub(r"```\s*", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError:
            pass
    return None


def normalize_result(result: Any) -> ActionResult:
    """Coerce a handler's return value into an ActionResult."""
    if isinstance(result, ActionResult):
        return result
    if isinstance(result, dict) and result.get("error"):
        return ActionResult(success=False, error=str(result["error"]))
    return ActionResult(success=True, data=result)
