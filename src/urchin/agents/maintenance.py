"""Post-response maintenance - cadence-gated memory upkeep after each turn.

Jobs (gated by the persisted conversation counter):
1. Session summary every 3rd turn
2. Profile extraction every 5th turn
3. History condensation whenever raw history exceeds 40 turns
4. Skill evaluation and pruning every 10th turn

Each job runs on its own failure boundary: an exception is logged and the
remaining jobs still run.
"""

from datetime import datetime
from typing import Any

from urchin.core.logging import get_logger
from urchin.core.typing import HistoryTurn, MessageDict
from urchin.llm.base import LLMConfig, LLMError, LLMProvider, TaskType
from urchin.memory.accessor import MAX_CONDENSED_CHARS, MemoryAccessor
from urchin.memory.skills import apply_evaluations, prune_skills
from urchin.tools.base import extract_json

logger = get_logger("agents.maintenance")

SUMMARY_EVERY = 3
PROFILE_EVERY = 5
SKILL_EVAL_EVERY = 10
MIN_MESSAGES = 3
SUMMARY_WINDOW = 10
PROFILE_WINDOW = 6
CONDENSE_THRESHOLD = 40
KEEP_RAW = 30
PROFILE_SNIPPET = 300
CONDENSE_SNIPPET = 300
RAW_FALLBACK_SNIPPET = 200
EVAL_WINDOW = 10

SUMMARY_SYSTEM = "You are a memory system. Output ONLY the bullet-point summary."
SUMMARY_PROMPT = (
    "Summarize this conversation in 3-5 bullet points. "
    "Extract: key topics, decisions, entities mentioned. Be specific."
)

PROFILE_SYSTEM = "Output ONLY a JSON object."
PROFILE_PROMPT = """Current profile:
{profile}

Recent conversation:
{conversation}

Extract NEW user info (name, preferences, projects). Return ONLY valid JSON. If nothing new, return {{}}."""

CONDENSE_SYSTEM = "You are a memory compressor. Output ONLY the compressed narrative."
CONDENSE_PROMPT = """Existing condensed:
{existing}

New to condense:
{turns}

Compress into a dense narrative (max 2000 chars). Preserve key facts, entities, decisions."""

SKILL_EVAL_SYSTEM = "You evaluate assistant behavior. Output ONLY a JSON object."
SKILL_EVAL_PROMPT = """These learned skills were applied in the conversation below:
{skills}

Conversation:
{conversation}

Rate how much each skill helped, 0-100. Return ONLY JSON like {{"skill name": 75}}."""


def _format_turns(history: list[HistoryTurn], snippet: int) -> str:
    return "\n".join(f"[{h.get('role')}] {str(h.get('text', ''))[:snippet]}" for h in history)


def _format_messages(messages: list[MessageDict], snippet: int) -> str:
    return "\n".join(f"{m['role']}: {str(m.get('content', ''))[:snippet]}" for m in messages)


def condense_raw(existing: str, old_turns: list[HistoryTurn]) -> str:
    """Non-summarized condensation: append old turns and keep the tail."""
    text = (existing + "\n---\n" if existing else "") + _format_turns(old_turns, RAW_FALLBACK_SNIPPET)
    return text[-MAX_CONDENSED_CHARS:]


class MaintenanceScheduler:
    """Runs background memory jobs after a response has been delivered."""

    def __init__(self, llm: LLMProvider, memory: MemoryAccessor):
        self.llm = llm
        self.memory = memory

    async def _complete(self, system: str, messages: list[MessageDict], task: TaskType) -> str:
        config = LLMConfig(max_tokens=1024, temperature=0.3, system_prompt=system)
        response = await self.llm.complete(messages, config, task=task)
        return response.content.strip()

    async def run(
        self,
        messages: list[MessageDict],
        history: list[HistoryTurn],
        active_skills: list[str] | None = None,
    ) -> dict[str, Any]:
        """Increment the conversation counter and run every job that is due."""
        count = await self.memory.increment_conversation_count()
        result: dict[str, Any] = {
            "conversation_count": count,
            "summarized": False,
            "profile_updated": False,
            "condensed": False,
            "skills_evaluated": [],
            "skills_pruned": [],
        }

        if count % SUMMARY_EVERY == 0 and len(messages) >= MIN_MESSAGES:
            try:
                result["summarized"] = await self.summarize_session(messages) is not None
            except Exception as e:
                logger.warning(f"Session summary failed: {e}")

        if count % PROFILE_EVERY == 0 and len(messages) >= MIN_MESSAGES:
            try:
                result["profile_updated"] = bool(await self.extract_profile(messages))
            except Exception as e:
                logger.warning(f"Profile extraction failed: {e}")

        if len(history) > CONDENSE_THRESHOLD:
            try:
                await self.condense_history(history)
                result["condensed"] = True
            except Exception as e:
                logger.warning(f"History condensation failed: {e}")

        if count % SKILL_EVAL_EVERY == 0 and active_skills:
            try:
                evaluated, pruned = await self.evaluate_skills(messages, active_skills)
                result["skills_evaluated"] = evaluated
                result["skills_pruned"] = pruned
            except Exception as e:
                logger.warning(f"Skill evaluation failed: {e}")

        logger.info(f"Maintenance pass #{count}: {result}")
        return result

    async def summarize_session(self, messages: list[MessageDict]) -> str | None:
        """Summarize the recent exchange into a session memory entry."""
        prompt = [*messages[-SUMMARY_WINDOW:], {"role": "user", "content": SUMMARY_PROMPT}]
        summary = await self._complete(SUMMARY_SYSTEM, prompt, TaskType.SUMMARIZATION)
        if not summary:
            return None
        key = await self.memory.add_session_summary(summary)
        logger.info(f"Stored session summary {key}: {summary[:100]}")
        return summary

    async def extract_profile(self, messages: list[MessageDict]) -> dict[str, Any]:
        """Ask the model for newly observed user facts and merge them."""
        profile = await self.memory.get_profile()
        current = "\n".join(f"{k}: {v}" for k, v in profile.items()) or "(empty)"
        prompt = PROFILE_PROMPT.format(
            profile=current,
            conversation=_format_messages(messages[-PROFILE_WINDOW:], PROFILE_SNIPPET),
        )
        raw = await self._complete(PROFILE_SYSTEM, [{"role": "user", "content": prompt}], TaskType.FACT_EXTRACTION)

        new_facts = extract_json(raw)
        if not isinstance(new_facts, dict) or not new_facts:
            logger.debug("No new profile facts")
            return {}

        await self.memory.merge_profile(new_facts)
        logger.info(f"Profile updated with {len(new_facts)} fact(s): {list(new_facts)}")
        return new_facts

    async def condense_history(self, history: list[HistoryTurn]) -> str:
        """Compress all but the most recent turns; raw concatenation if the model is unreachable."""
        existing = await self.memory.get_condensed()
        old_turns = history[:-KEEP_RAW]
        try:
            condensed = await self.condense_with_model(existing, old_turns)
        except Exception as e:
            logger.warning(f"Model condensation failed, using raw fallback: {e}")
            condensed = condense_raw(existing, old_turns)
        await self.memory.set_condensed(condensed)
        return condensed

    async def condense_with_model(self, existing: str, old_turns: list[HistoryTurn]) -> str:
        prompt = CONDENSE_PROMPT.format(
            existing=existing or "(none)",
            turns=_format_turns(old_turns, CONDENSE_SNIPPET),
        )
        condensed = await self._complete(CONDENSE_SYSTEM, [{"role": "user", "content": prompt}], TaskType.CONDENSATION)
        if not condensed:
            raise LLMError("Condensation returned an empty reply")
        return condensed[:MAX_CONDENSED_CHARS]

    async def evaluate_skills(
        self,
        messages: list[MessageDict],
        active_skills: list[str],
    ) -> tuple[list[str], list[str]]:
        """Score the skills used this turn, then prune the skill set."""
        skills = await self.memory.get_skills()
        active = [s for s in skills if s.name in active_skills]
        if not active:
            return [], []

        prompt = SKILL_EVAL_PROMPT.format(
            skills="\n".join(f"- {s.name}: {s.instruction}" for s in active),
            conversation=_format_messages(messages[-EVAL_WINDOW:], PROFILE_SNIPPET),
        )
        raw = await self._complete(SKILL_EVAL_SYSTEM, [{"role": "user", "content": prompt}], TaskType.SKILL_EVALUATION)

        parsed = extract_json(raw)
        scores: dict[str, float] = {}
        if isinstance(parsed, dict):
            for name, value in parsed.items():
                if name not in active_skills:
                    continue
                try:
                    scores[name] = float(value)
                except (TypeError, ValueError):
                    logger.debug(f"Ignoring non-numeric score for {name}: {value!r}")

        now = datetime.now()
        evaluated = apply_evaluations(skills, scores, now)
        kept, pruned = prune_skills(skills, now)
        await self.memory.save_skills(kept)

        if pruned:
            logger.info(f"Pruned skills: {pruned}")
        return evaluated, pruned
