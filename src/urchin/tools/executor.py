"""Dispatch parsed tool jobs and render their results for the model."""

import asyncio
import json
from datetime import datetime
from typing import Any

from urchin.core.logging import get_logger
from urchin.core.types import ActionResult, ToolJob
from urchin.tools.base import ToolContext, normalize_result
from urchin.tools.registry import ToolRegistry

logger = get_logger("tools.executor")

# Results serializing to at most this many characters pass through unchanged
MAX_RESULT_CHARS = 3000
TRUNCATED_CHARS = 2500
TRUNCATION_MARKER = "…[truncated]"

# Fetch results only lose their text preview, other fields are kept
FETCH_TOOL = "FETCH_URL"
FETCH_PREVIEW_FIELD = "content_preview"

FAILURE_HINT = "[HINT: Tool failed. Try a different approach.]"

# Maximum length for logged content (characters)
MAX_LOG_LENGTH = 500


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime and other non-JSON objects."""

    def default(self, obj: object) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)


def to_json(payload: Any) -> str:
    return json.dumps(payload, cls=DateTimeEncoder, ensure_ascii=False)


def summarize_result(tool_name: str, payload: Any) -> str:
    """Serialize a result, truncating it when it would crowd the context."""
    raw = to_json(payload)
    if len(raw) <= MAX_RESULT_CHARS:
        return raw
    if tool_name == FETCH_TOOL and isinstance(payload, dict) and payload.get(FETCH_PREVIEW_FIELD):
        preview = str(payload[FETCH_PREVIEW_FIELD])[:TRUNCATED_CHARS] + TRUNCATION_MARKER
        return to_json({**payload, FETCH_PREVIEW_FIELD: preview})
    return raw[:TRUNCATED_CHARS] + TRUNCATION_MARKER


class ToolDispatcher:
    """Executes tool jobs, isolating failures per job."""

    def __init__(self, registry: ToolRegistry) -> None:
        """
        Initialize dispatcher.

        Args:
            registry: Tool registry to look up tools
        """
        self.registry = registry

    async def execute(self, job: ToolJob, context: ToolContext) -> ActionResult:
        """
        Execute a single tool job.

        Unknown tools and handler exceptions become error results.
        """
        tool = self.registry.get(job.name)
        if not tool:
            return ActionResult(success=False, error=f"Unknown tool: {job.name}")

        try:
            logger.info(f"Executing tool: {job.name} with parameter: {job.parameter[:MAX_LOG_LENGTH]}")
            result = normalize_result(await tool.handler(job.parameter, context))
            if result.success:
                logger.debug(f"Tool {job.name} result: {to_json(result.data)[:MAX_LOG_LENGTH]}")
            else:
                logger.warning(f"Tool {job.name} returned error: {result.error}")
            return result
        except Exception as e:
            logger.error(f"Tool {job.name} failed: {e}", exc_info=True)
            return ActionResult(success=False, error=str(e) or type(e).__name__)

    async def dispatch(self, jobs: list[ToolJob], context: ToolContext) -> list[ActionResult]:
        """
        Execute tool jobs, concurrently when there is more than one.

        Returns:
            List of action results (same order as input)
        """
        if not jobs:
            return []
        if len(jobs) == 1:
            return [await self.execute(jobs[0], context)]
        return list(await asyncio.gather(*(self.execute(job, context) for job in jobs)))

    @staticmethod
    def render_results(jobs: list[ToolJob], results: list[ActionResult]) -> str:
        """Render results as one conversation entry, one line per tool."""
        lines = []
        for job, result in zip(jobs, results):
            lines.append(f"[Tool result for {job.name}]: {summarize_result(job.name, result.to_payload())}")
            if not result.success:
                lines.append(f"\n{FAILURE_HINT}")
        return "\n".join(lines).strip()
