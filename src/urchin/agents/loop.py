"""Reasoning loop - think, act, observe, decide.

Each request composes a fresh message stack from memory, then alternates
between calling the model and dispatching the tool tags it emits until the
model answers without tools or the step budget runs out.
"""

import time
from collections.abc import Callable
from enum import Enum
from uuid import uuid4

from urchin.agents.maintenance import MaintenanceScheduler
from urchin.core.background import BackgroundRunner
from urchin.core.config import Settings, get_settings
from urchin.core.logging import get_logger
from urchin.core.types import CapturedItem, ExecutionLog, PageContext, RequestResult, StepLog
from urchin.core.typing import HistoryTurn, MessageDict
from urchin.llm.base import LLMConfig, LLMProvider, TaskType
from urchin.memory.accessor import MemoryAccessor
from urchin.memory.base import Storage
from urchin.memory.composer import MemoryComposer, trim_to_budget
from urchin.memory.embeddings import Embedder
from urchin.memory.relevance import RelevanceFilter
from urchin.tools.base import Tool, ToolContext
from urchin.tools.builtin import register_builtin_tools
from urchin.tools.executor import ToolDispatcher
from urchin.tools.parser import ParsedResponse, TagParser
from urchin.tools.registry import ToolRegistry

logger = get_logger("agents.loop")

NO_RESPONSE = "No response."

# Seconds between delivering a response and starting maintenance
MAINTENANCE_DELAY = 0.1

SYSTEM_TEMPLATE = """You are a helpful AI assistant with access to tools. You think step-by-step and use tools when needed.

MEMORY: You have access to condensed history, recent messages, user profile, session summaries, and saved memories. Use REMEMBER to save important facts. Use RECALL or SEARCH_MEMORY to retrieve them.

{tools}

RULES:
1. ALWAYS start non-trivial responses with <<THINK>>...your reasoning...<</THINK>>
2. Use tools when you need external data, don't guess.
3. Be concise. After using a tool, summarize the result clearly.
4. Only output one tool tag per tool use (you can use multiple tools in one response).
5. When unsure, say so. Never confidently state something you're not sure about."""

StepCallback = Callable[[int, int, list[MessageDict]], None]
ThinkCallback = Callable[[str], None]


class LoopState(Enum):
    AWAIT_MODEL = "await_model"
    PARSE = "parse"
    DISPATCH_TOOLS = "dispatch_tools"
    DONE = "done"


def new_request_id() -> str:
    return f"ul-{int(time.time() * 1000)}-{uuid4().hex[:4]}"


class ReasoningLoop:
    """Runs one request at a time against shared persistent memory.

    Holds no per-request state; concurrent ``run`` calls only share the
    storage backend.
    """

    def __init__(
        self,
        llm: LLMProvider,
        storage: Storage,
        settings: Settings | None = None,
        tools: list[Tool] | None = None,
        embedder: Embedder | None = None,
        system_prompt: str | None = None,
        runner: BackgroundRunner | None = None,
    ):
        self.llm = llm
        self.settings = settings or get_settings()
        self.memory = MemoryAccessor(storage)

        if embedder is None:
            embedder = Embedder(
                model=self.settings.embedding_model,
                api_key=self.settings.embedding_credentials,
                api_base=self.settings.llm_api_base,
                timeout=self.settings.embedding_timeout,
            )
        self.relevance = RelevanceFilter(embedder, self.memory)
        self.composer = MemoryComposer(self.memory, self.relevance, max_history=self.settings.max_history)

        self.registry = ToolRegistry()
        register_builtin_tools(self.registry)
        for custom in tools or []:
            self.registry.register(custom)
        self.dispatcher = ToolDispatcher(self.registry)

        self.system_prompt = system_prompt or SYSTEM_TEMPLATE.format(tools=self.registry.get_context_string())
        self.maintenance = MaintenanceScheduler(llm, self.memory)
        self.runner = runner or BackgroundRunner()

    def _llm_config(self) -> LLMConfig:
        return LLMConfig(
            max_tokens=self.settings.llm_max_tokens,
            temperature=self.settings.llm_temperature,
            system_prompt=self.system_prompt,
            timeout=self.settings.llm_timeout,
        )

    async def run(
        self,
        user_input: str,
        history: list[HistoryTurn] | None = None,
        page_context: PageContext | None = None,
        captured: list[CapturedItem] | None = None,
        on_step: StepCallback | None = None,
        on_think: ThinkCallback | None = None,
        run_post_jobs: bool = True,
        record: bool = True,
        max_steps: int | None = None,
    ) -> RequestResult:
        """Process one user message.

        Model-call errors propagate. Tool errors are fed back to the model.
        With ``record=False`` the turn is neither written to chat history nor
        handed to maintenance (used for nested subtask runs).
        """
        history = history or []
        max_steps = max_steps or self.settings.max_steps
        request_id = new_request_id()

        composed = await self.composer.compose(user_input, history, page_context, captured)
        messages = composed.messages
        trim_to_budget(messages, self.settings.max_context_chars)

        context = ToolContext(memory=self.memory, relevance=self.relevance, settings=self.settings)
        config = self._llm_config()
        log = ExecutionLog()

        final_answer = ""
        answered = False
        raw = ""
        parsed = ParsedResponse()
        step = 0
        state = LoopState.AWAIT_MODEL

        while state != LoopState.DONE:
            if state == LoopState.AWAIT_MODEL:
                if step >= max_steps:
                    logger.warning(f"[{request_id}] Step budget exhausted after {step} iterations")
                    state = LoopState.DONE
                    continue
                step += 1
                if on_step:
                    on_step(step, max_steps, messages)

                trim_to_budget(messages, self.settings.max_context_chars)
                response = await self.llm.complete(messages, config, task=TaskType.CHAT)
                raw = response.content or ""
                log.steps.append(StepLog(step=step, raw_length=len(raw)))
                logger.debug(f"[{request_id}] Step {step}: {len(raw)} chars from model")
                state = LoopState.PARSE

            elif state == LoopState.PARSE:
                parsed = TagParser.parse(raw)
                if on_think:
                    for thought in parsed.thoughts:
                        on_think(thought)

                if not parsed.has_tools:
                    final_answer = parsed.cleaned
                    answered = True
                    state = LoopState.DONE
                else:
                    messages.append({"role": "assistant", "content": parsed.cleaned})
                    log.steps[-1].tool_names = [job.name for job in parsed.tool_jobs]
                    state = LoopState.DISPATCH_TOOLS

            elif state == LoopState.DISPATCH_TOOLS:
                results = await self.dispatcher.dispatch(parsed.tool_jobs, context)
                messages.append({
                    "role": "user",
                    "content": self.dispatcher.render_results(parsed.tool_jobs, results),
                })
                logger.debug(
                    f"[{request_id}] Tools {[j.name for j in parsed.tool_jobs]} -> "
                    f"{[r.success for r in results]}"
                )
                state = LoopState.AWAIT_MODEL

        log.end_time = time.time()

        if record:
            await self.finish_turn(
                user_input,
                final_answer,
                messages,
                history,
                composed.active_skills,
                run_post_jobs=run_post_jobs,
            )

        logger.info(
            f"[{request_id}] Completed in {len(log.steps)} step(s), "
            f"answered={answered}, {len(final_answer)} chars"
        )
        return RequestResult(
            answer=final_answer or NO_RESPONSE,
            log=log,
            request_id=request_id,
            exhausted=not answered,
            active_skills=composed.active_skills,
        )

    async def finish_turn(
        self,
        user_input: str,
        answer: str,
        messages: list[MessageDict],
        history: list[HistoryTurn],
        active_skills: list[str],
        run_post_jobs: bool = True,
    ) -> None:
        """Persist the exchange and schedule maintenance off the response path."""
        turn = [{"role": "user", "text": user_input}, {"role": "assistant", "text": answer}]
        await self.memory.append_chat_history(turn)

        if run_post_jobs and answer:
            new_history = [*history, *turn]
            transcript = [*messages, {"role": "assistant", "content": answer}]
            self.runner.submit(
                "maintenance",
                lambda: self.maintenance.run(transcript, new_history, active_skills),
                delay=MAINTENANCE_DELAY,
            )
