"""Memory layer composer - builds the per-request message stack.

Layer order:
1. Condensed narrative as a synthetic prior exchange
2. Recent chat turns, verbatim
3. Current user message (page / captured context + input)
4. Profile block
5. Session summaries and saved memories (relevance-filtered when numerous)
6. Viable learned skills
Layers 4-6 are appended to the current user message.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from urchin.core.logging import get_logger
from urchin.core.types import CapturedItem, PageContext
from urchin.core.typing import HistoryTurn, MessageDict
from urchin.memory.accessor import (
    MAX_PROFILE_KEYS,
    MemoryAccessor,
    MemorySnapshot,
    cap_memory_entries,
    keep_newest,
)
from urchin.memory.relevance import COMPOSE_THRESHOLD, TOP_K, RelevanceFilter
from urchin.memory.skills import is_viable

logger = get_logger("memory.composer")

MAX_HISTORY = 30
MAX_CONTEXT_CHARS = 80000
MAX_PAGE_TEXT = 3000
RECENT_SESSIONS = 10
# At or below this many candidates everything is injected unfiltered
DIRECT_INJECT_LIMIT = 6
SMALL_MANUAL_SET = 10
TRIMMED_HEAD = 200
TRIM_MARKER = "…[trimmed]"

CONDENSED_ACK = "Understood."


@dataclass
class ComposedContext:
    """Message stack for one request plus the skills injected into it."""

    messages: list[MessageDict]
    active_skills: list[str] = field(default_factory=list)


def trim_to_budget(messages: list[MessageDict], budget: int = MAX_CONTEXT_CHARS) -> list[MessageDict]:
    """Truncate the oldest entries in place until the stack fits ``budget``.

    Entries are shortened, never dropped, and the last two entries are
    left untouched even if the budget is still exceeded.
    """
    total = sum(len(m.get("content") or "") for m in messages)
    i = 0
    while total > budget and i < len(messages) - 2:
        content = messages[i].get("content") or ""
        if len(content) > TRIMMED_HEAD + len(TRIM_MARKER):
            shortened = content[:TRIMMED_HEAD] + TRIM_MARKER
            messages[i]["content"] = shortened
            total -= len(content) - len(shortened)
        i += 1
    return messages


def format_current_message(
    user_input: str,
    page_context: PageContext | None = None,
    captured: list[CapturedItem] | None = None,
) -> str:
    text = ""
    if page_context and page_context.url:
        text += f"[Page: {page_context.title} - {page_context.url}]\n"
        if page_context.selection:
            text += f"[Selected text: {page_context.selection}]\n"
        if page_context.visible_text:
            text += f"[Page content: {page_context.visible_text[:MAX_PAGE_TEXT]}]\n"
    if captured:
        text += "\nCaptured context:\n" + "\n".join(f"[{c.type}] {c.value}" for c in captured) + "\n"
    text += "\n" + user_input
    return text.strip()


def _key_value_lines(mapping: dict[str, Any]) -> str:
    return "\n".join(f"  {k}: {v}" for k, v in mapping.items())


class MemoryComposer:
    """Assembles the layered message stack from persistent memory."""

    def __init__(self, memory: MemoryAccessor, relevance: RelevanceFilter, max_history: int = MAX_HISTORY):
        self.memory = memory
        self.relevance = relevance
        self.max_history = max_history

    async def compose(
        self,
        user_input: str,
        history: list[HistoryTurn] | None = None,
        page_context: PageContext | None = None,
        captured: list[CapturedItem] | None = None,
    ) -> ComposedContext:
        snapshot = await self.memory.snapshot()
        messages: list[MessageDict] = []

        # Layer 1: condensed history
        if snapshot.condensed:
            messages.append({
                "role": "user",
                "content": f"[Previous history (condensed):\n{snapshot.condensed}]",
            })
            messages.append({"role": "assistant", "content": CONDENSED_ACK})

        # Layer 2: recent turns
        for turn in (history or [])[-self.max_history:]:
            messages.append({
                "role": "user" if turn.get("role") == "user" else "assistant",
                "content": turn.get("text") or "",
            })

        # Layer 3: current turn
        current = {"role": "user", "content": format_current_message(user_input, page_context, captured)}
        messages.append(current)

        # Layer 4: profile
        profile = snapshot.profile
        if len(profile) > MAX_PROFILE_KEYS:
            profile = await self.memory.save_profile(keep_newest(profile, MAX_PROFILE_KEYS))
        if profile:
            current["content"] += f"\n\n[User profile (permanent):\n{_key_value_lines(profile)}]"

        # Layer 5: session summaries + saved memories
        current["content"] += await self._memory_blocks(user_input, snapshot.entries)

        # Layer 6: learned skills
        active_skills = []
        viable = [s for s in snapshot.skills if is_viable(s)]
        if viable:
            block = "\n".join(f"  • {s.name}: {s.instruction}" for s in viable)
            current["content"] += f"\n\n[Learned skills (apply these):\n{block}]"
            now = datetime.now()
            for skill in viable:
                skill.usage_count += 1
                skill.last_used_at = now
                active_skills.append(skill.name)
            await self.memory.save_skills(snapshot.skills)

        logger.debug(
            f"Composed {len(messages)} messages, profile={len(profile)}, skills={len(active_skills)}"
        )
        return ComposedContext(messages=messages, active_skills=active_skills)

    async def _memory_blocks(self, user_input: str, entries: dict[str, Any]) -> str:
        capped = cap_memory_entries(entries)
        if len(capped) != len(entries):
            capped = await self.memory.save_entries(capped)

        view = MemorySnapshot(entries=capped)
        sessions = dict(list(view.session_entries.items())[:RECENT_SESSIONS])
        manual = view.manual_entries

        if not sessions and not manual:
            return ""

        if len(sessions) + len(manual) <= DIRECT_INJECT_LIMIT:
            return self._format_blocks(sessions, manual)

        union = {**sessions, **manual}
        ranked = await self.relevance.rank(user_input, union, threshold=COMPOSE_THRESHOLD, limit=TOP_K)
        relevant = {c.key for c in ranked}

        # The newest session summary is always kept for continuity
        if sessions:
            relevant.add(next(iter(sessions)))

        relevant_sessions = {k: v for k, v in sessions.items() if k in relevant}
        relevant_manual = {c.key: c.value for c in ranked if c.key in manual}
        if not relevant_manual and len(manual) <= SMALL_MANUAL_SET:
            relevant_manual = manual

        logger.debug(
            f"Relevance filter kept {len(relevant_sessions)}/{len(sessions)} sessions, "
            f"{len(relevant_manual)}/{len(manual)} memories"
        )
        return self._format_blocks(relevant_sessions, relevant_manual)

    @staticmethod
    def _format_blocks(sessions: dict[str, Any], manual: dict[str, Any]) -> str:
        text = ""
        if sessions:
            text += "\n\n[Past session summaries:\n" + "\n---\n".join(str(v) for v in sessions.values()) + "]"
        if manual:
            text += f"\n\n[Saved memories:\n{_key_value_lines(manual)}]"
        return text
