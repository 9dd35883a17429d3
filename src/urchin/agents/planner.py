"""Subtask orchestrator - splits multi-phase requests into nested loop runs."""

import re
import time
from dataclasses import dataclass, field

from urchin.agents.loop import ReasoningLoop, StepCallback, ThinkCallback, new_request_id
from urchin.core.logging import get_logger
from urchin.core.types import CapturedItem, ExecutionLog, PageContext, RequestResult
from urchin.core.typing import HistoryTurn, MessageDict
from urchin.llm.base import LLMConfig, TaskType
from urchin.tools.base import extract_json

logger = get_logger("agents.planner")

MIN_SUBTASKS = 2
MAX_SUBTASKS = 4
MIN_INPUT_CHARS = 20
LONG_INPUT_CHARS = 400

ACTION_VERBS = {
    "analyze", "build", "calculate", "check", "compare", "create", "draft",
    "explain", "fetch", "find", "get", "investigate", "list", "look", "read",
    "research", "review", "search", "summarize", "translate", "verify", "write",
}
CONNECTORS = ("then", "after that", "and also", "next", "finally", "followed by", "as well as")
_CONNECTOR_RE = re.compile(r"\b(" + "|".join(re.escape(c) for c in CONNECTORS) + r")\b", re.IGNORECASE)
_WORD_RE = re.compile(r"[a-z]+")

PLAN_SYSTEM = "You are a task planner. Output ONLY a JSON object."
PLAN_PROMPT = """Split this request into 2-4 subtasks that can each be solved on their own.
A subtask may depend on the output of earlier subtasks.

Request:
{request}

Return ONLY JSON:
{{"subtasks": [{{"id": 1, "task": "...", "depends_on": []}}, {{"id": 2, "task": "...", "depends_on": [1]}}]}}"""

SYNTHESIS_SYSTEM = "You merge partial results into one complete, concise answer for the user."
SYNTHESIS_PROMPT = """Original request:
{request}

Subtask results:
{results}

Write the final answer. Cover every part of the request."""


@dataclass
class Subtask:
    id: int
    task: str
    depends_on: list[int] = field(default_factory=list)


def is_multi_phase(text: str) -> bool:
    """Heuristic: several action verbs joined by a sequencing phrase, or a long multi-verb request."""
    if len(text) < MIN_INPUT_CHARS:
        return False
    verbs = ACTION_VERBS.intersection(_WORD_RE.findall(text.lower()))
    if len(verbs) >= 2 and _CONNECTOR_RE.search(text):
        return True
    return len(text) > LONG_INPUT_CHARS and len(verbs) >= 3


def parse_plan(raw: str) -> list[Subtask] | None:
    """Validate a proposed decomposition; None when it is not usable."""
    data = extract_json(raw)
    if not isinstance(data, dict) or not isinstance(data.get("subtasks"), list):
        return None

    subtasks = []
    seen: set[int] = set()
    for item in data["subtasks"]:
        if not isinstance(item, dict) or not str(item.get("task", "")).strip():
            return None
        try:
            subtask_id = int(item.get("id", len(subtasks) + 1))
            depends_on = [int(d) for d in item.get("depends_on") or []]
        except (TypeError, ValueError):
            return None
        # Dependencies must point at earlier subtasks
        if subtask_id in seen or any(d not in seen for d in depends_on):
            return None
        seen.add(subtask_id)
        subtasks.append(Subtask(id=subtask_id, task=str(item["task"]).strip(), depends_on=depends_on))

    if not MIN_SUBTASKS <= len(subtasks) <= MAX_SUBTASKS:
        return None
    return subtasks


def build_subtask_input(request: str, subtask: Subtask, outputs: dict[int, str]) -> str:
    text = f"{subtask.task}\n\n[Part of a larger request: {request}]"
    if subtask.depends_on:
        earlier = "\n".join(f"[Step {d}] {outputs.get(d, '')}" for d in subtask.depends_on)
        text += f"\n\n[Results from earlier steps:\n{earlier}]"
    return text


class SubtaskOrchestrator:
    """Front door for requests: decomposes multi-phase input, otherwise defers to the loop."""

    def __init__(self, loop: ReasoningLoop):
        self.loop = loop
        self.llm = loop.llm

    async def propose(self, user_input: str) -> list[Subtask] | None:
        config = LLMConfig(max_tokens=1024, temperature=0.2, system_prompt=PLAN_SYSTEM)
        messages = [{"role": "user", "content": PLAN_PROMPT.format(request=user_input)}]
        response = await self.llm.complete(messages, config, task=TaskType.PLANNING)
        plan = parse_plan(response.content)
        if plan is None:
            logger.info("Decomposition rejected, handling as a single request")
        return plan

    async def handle(
        self,
        user_input: str,
        history: list[HistoryTurn] | None = None,
        page_context: PageContext | None = None,
        captured: list[CapturedItem] | None = None,
        on_step: StepCallback | None = None,
        on_think: ThinkCallback | None = None,
        run_post_jobs: bool = True,
    ) -> RequestResult:
        history = history or []
        direct = dict(
            history=history,
            page_context=page_context,
            captured=captured,
            on_step=on_step,
            on_think=on_think,
            run_post_jobs=run_post_jobs,
        )
        if not is_multi_phase(user_input):
            return await self.loop.run(user_input, **direct)

        plan = await self.propose(user_input)
        if plan is None:
            return await self.loop.run(user_input, **direct)

        logger.info(f"Decomposed request into {len(plan)} subtasks")
        log = ExecutionLog()
        outputs: dict[int, str] = {}
        active_skills: list[str] = []

        for subtask in plan:
            result = await self.loop.run(
                build_subtask_input(user_input, subtask, outputs),
                history=history,
                page_context=page_context,
                captured=captured,
                on_step=on_step,
                on_think=on_think,
                record=False,
            )
            outputs[subtask.id] = result.answer
            log.steps.extend(result.log.steps)
            active_skills.extend(s for s in result.active_skills if s not in active_skills)
            logger.debug(f"Subtask {subtask.id} done: {result.answer[:100]}")

        answer = await self.synthesize(user_input, plan, outputs)
        log.end_time = time.time()

        transcript: list[MessageDict] = [
            *({"role": h.get("role", "user"), "content": h.get("text", "")} for h in history),
            {"role": "user", "content": user_input},
            *({"role": "assistant", "content": f"[Step {s.id}: {s.task}]\n{outputs[s.id]}"} for s in plan),
        ]
        await self.loop.finish_turn(
            user_input,
            answer,
            transcript,
            history,
            active_skills,
            run_post_jobs=run_post_jobs,
        )

        return RequestResult(
            answer=answer,
            log=log,
            request_id=new_request_id(),
            active_skills=active_skills,
        )

    async def synthesize(self, user_input: str, plan: list[Subtask], outputs: dict[int, str]) -> str:
        results = "\n\n".join(f"[Step {s.id}: {s.task}]\n{outputs[s.id]}" for s in plan)
        config = LLMConfig(max_tokens=4096, temperature=0.5, system_prompt=SYNTHESIS_SYSTEM)
        messages = [{"role": "user", "content": SYNTHESIS_PROMPT.format(request=user_input, results=results)}]
        response = await self.llm.complete(messages, config, task=TaskType.SYNTHESIS)
        return response.content.strip() or results
