"""Memory tools - save, recall and search persistent memory, learn skills."""

from urchin.core.logging import get_logger
from urchin.core.types import ActionResult
from urchin.memory.accessor import is_manual_key, is_reserved_key
from urchin.memory.relevance import SEARCH_THRESHOLD, filter_by_keyword
from urchin.tools.base import ToolContext, extract_json, tool
from urchin.tools.registry import ToolRegistry

logger = get_logger("tools.builtin.memory")

MAX_MATCH_VALUE = 200
NOTHING_SAVED = "Nothing saved under this key."


@tool(
    "REMEMBER",
    "Save to persistent memory.",
    usage='{"key":"...","value":"..."}',
)
async def remember(parameter: str, context: ToolContext) -> ActionResult:
    data = extract_json(parameter)
    if not isinstance(data, dict) or not data.get("key"):
        return ActionResult(success=False, error='REMEMBER needs {"key":"...","value":"..."}')

    key = str(data["key"])
    if is_reserved_key(key):
        return ActionResult(success=False, error=f'REMEMBER cannot use reserved key "{key}"')
    await context.memory.remember(key, data.get("value"))
    return ActionResult(success=True, data={"success": True, "message": f'Remembered "{key}".'})


@tool(
    "RECALL",
    'Recall saved info. Use "all" for everything.',
    usage="key",
)
async def recall(parameter: str, context: ToolContext) -> ActionResult:
    key = parameter.strip()
    entries = await context.memory.get_entries()
    if key == "all":
        manual = {k: v for k, v in entries.items() if is_manual_key(k)}
        return ActionResult(success=True, data={"success": True, "memory": manual})
    value = entries.get(key)
    return ActionResult(
        success=True,
        data={"success": True, "key": key, "value": value if value is not None else NOTHING_SAVED},
    )


@tool(
    "SEARCH_MEMORY",
    "Fuzzy search across saved memories and the user profile.",
    usage="query",
)
async def search_memory(parameter: str, context: ToolContext) -> ActionResult:
    query = parameter.strip()
    entries = await context.memory.get_entries()
    profile = await context.memory.get_profile()

    combined = {k: v for k, v in entries.items() if is_manual_key(k)}
    combined.update({f"profile_{k}": v for k, v in profile.items()})

    if context.relevance is not None:
        ranked = await context.relevance.rank(query, combined, threshold=SEARCH_THRESHOLD)
    else:
        ranked = filter_by_keyword(query, combined)

    matches = [{"key": c.key, "value": str(c.value)[:MAX_MATCH_VALUE]} for c in ranked]
    return ActionResult(success=True, data={"success": True, "query": query, "matches": matches})


@tool(
    "LEARN_SKILL",
    "Save a reusable behavior to apply in future conversations.",
    usage='{"name":"...","instruction":"..."}',
)
async def learn_skill(parameter: str, context: ToolContext) -> ActionResult:
    data = extract_json(parameter)
    if not isinstance(data, dict) or not data.get("name") or not data.get("instruction"):
        return ActionResult(success=False, error='LEARN_SKILL needs {"name":"...","instruction":"..."}')

    skill = await context.memory.add_skill(str(data["name"]), str(data["instruction"]))
    logger.info(f"Learned skill: {skill.name}")
    return ActionResult(success=True, data={"success": True, "message": f'Learned skill "{skill.name}".'})


def register_memory_tools(registry: ToolRegistry) -> None:
    """Register memory tools."""
    for func in (remember, recall, search_memory, learn_skill):
        registry.register(func._tool)  # type: ignore[attr-defined]
