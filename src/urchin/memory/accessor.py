"""Typed read/write over the memory regions with write-time caps."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from urchin.core.logging import get_logger
from urchin.core.types import Skill
from urchin.core.typing import HistoryTurn, Vector
from urchin.memory.base import Storage

logger = get_logger("memory.accessor")

# Region keys
CONDENSED_KEY = "urchin_condensed"
PROFILE_KEY = "urchin_profile"
MEMORY_KEY = "urchin_memory"
SKILLS_KEY = "urchin_skills"
CHAT_HISTORY_KEY = "urchin_chat_history"
EMBEDDINGS_KEY = "urchin_embeddings"
COUNTERS_KEY = "urchin_counters"

# Caps
MAX_MANUAL_ENTRIES = 100
MAX_SESSION_SUMMARIES = 20
MAX_PROFILE_KEYS = 50
MAX_CHAT_HISTORY = 200
MAX_EMBEDDINGS = 300
MAX_CONDENSED_CHARS = 4000
MAX_SESSION_CHARS = 1500

SESSION_PREFIX = "session_"
INTERNAL_PREFIX = "_"


def is_session_key(key: str) -> bool:
    return key.startswith(SESSION_PREFIX)


def is_manual_key(key: str) -> bool:
    return not key.startswith(SESSION_PREFIX) and not key.startswith(INTERNAL_PREFIX)


def is_reserved_key(key: str) -> bool:
    """Keys the memory layer manages itself; callers may not write them."""
    return key.startswith((SESSION_PREFIX, INTERNAL_PREFIX))


def _session_timestamp(key: str) -> int:
    try:
        return int(key[len(SESSION_PREFIX):])
    except ValueError:
        return 0


def session_keys_by_age(entries: dict[str, Any]) -> list[str]:
    """Session keys sorted oldest first."""
    return sorted((k for k in entries if is_session_key(k)), key=_session_timestamp)


def keep_newest(mapping: dict[str, Any], limit: int) -> dict[str, Any]:
    """Keep the last ``limit`` insertions of a mapping."""
    if len(mapping) <= limit:
        return dict(mapping)
    return dict(list(mapping.items())[-limit:])


def cap_memory_entries(
    entries: dict[str, Any],
    max_manual: int = MAX_MANUAL_ENTRIES,
    max_sessions: int = MAX_SESSION_SUMMARIES,
) -> dict[str, Any]:
    """Evict oldest manual entries (insertion order) and oldest session summaries (timestamp)."""
    capped = dict(entries)

    manual = [k for k in capped if is_manual_key(k)]
    for key in manual[: max(0, len(manual) - max_manual)]:
        del capped[key]

    sessions = session_keys_by_age(capped)
    for key in sessions[: max(0, len(sessions) - max_sessions)]:
        del capped[key]

    return capped


def cap_condensed(text: str, limit: int = MAX_CONDENSED_CHARS) -> str:
    """Keep the most recent ``limit`` characters."""
    return text[-limit:] if len(text) > limit else text


@dataclass
class MemorySnapshot:
    """All regions the composer reads, fetched in one storage call."""

    condensed: str = ""
    profile: dict[str, Any] = field(default_factory=dict)
    entries: dict[str, Any] = field(default_factory=dict)
    skills: list[Skill] = field(default_factory=list)

    @property
    def manual_entries(self) -> dict[str, Any]:
        return {k: v for k, v in self.entries.items() if is_manual_key(k)}

    @property
    def session_entries(self) -> dict[str, Any]:
        """Session summaries, newest first."""
        return {k: self.entries[k] for k in reversed(session_keys_by_age(self.entries))}


class MemoryAccessor:
    """Typed access to the memory regions of a ``Storage``.

    Every write applies the region cap. Storage errors propagate.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    async def snapshot(self) -> MemorySnapshot:
        data = await self.storage.get([CONDENSED_KEY, PROFILE_KEY, MEMORY_KEY, SKILLS_KEY])
        return MemorySnapshot(
            condensed=data.get(CONDENSED_KEY) or "",
            profile=data.get(PROFILE_KEY) or {},
            entries=data.get(MEMORY_KEY) or {},
            skills=[Skill.from_dict(s) for s in data.get(SKILLS_KEY) or []],
        )

    # Condensed narrative

    async def get_condensed(self) -> str:
        data = await self.storage.get(CONDENSED_KEY)
        return data.get(CONDENSED_KEY) or ""

    async def set_condensed(self, text: str) -> None:
        await self.storage.set({CONDENSED_KEY: cap_condensed(text)})

    # Profile

    async def get_profile(self) -> dict[str, Any]:
        data = await self.storage.get(PROFILE_KEY)
        return data.get(PROFILE_KEY) or {}

    async def save_profile(self, profile: dict[str, Any]) -> dict[str, Any]:
        capped = keep_newest(profile, MAX_PROFILE_KEYS)
        await self.storage.set({PROFILE_KEY: capped})
        return capped

    async def merge_profile(self, new_facts: dict[str, Any]) -> dict[str, Any]:
        """Additive merge; later values overwrite same keys and move them to newest."""
        profile = await self.get_profile()
        for key, value in new_facts.items():
            profile.pop(key, None)
            profile[key] = value
        return await self.save_profile(profile)

    # Memory entries (manual + session summaries)

    async def get_entries(self) -> dict[str, Any]:
        data = await self.storage.get(MEMORY_KEY)
        return data.get(MEMORY_KEY) or {}

    async def save_entries(self, entries: dict[str, Any]) -> dict[str, Any]:
        capped = cap_memory_entries(entries)
        evicted = len(entries) - len(capped)
        if evicted:
            logger.debug(f"Evicted {evicted} memory entries over cap")
        await self.storage.set({MEMORY_KEY: capped})
        return capped

    async def remember(self, key: str, value: Any) -> None:
        """Save a manual entry as the newest one.

        Overwriting a key also drops its cached embedding so the next
        ranking re-embeds the new value.

        Raises:
            ValueError: key uses a reserved prefix
        """
        if is_reserved_key(key):
            raise ValueError(f"Memory key {key!r} uses a reserved prefix")

        data = await self.storage.get([MEMORY_KEY, EMBEDDINGS_KEY])
        entries = data.get(MEMORY_KEY) or {}
        cache = data.get(EMBEDDINGS_KEY) or {}
        entries.pop(key, None)
        entries[key] = value
        await self.save_entries(entries)
        if cache.pop(key, None) is not None:
            await self.storage.set({EMBEDDINGS_KEY: cache})

    async def add_session_summary(self, summary: str, timestamp_ms: int | None = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(datetime.now().timestamp() * 1000)
        key = f"{SESSION_PREFIX}{timestamp_ms}"
        entries = await self.get_entries()
        entries[key] = summary[:MAX_SESSION_CHARS]
        await self.save_entries(entries)
        return key

    # Skills

    async def get_skills(self) -> list[Skill]:
        data = await self.storage.get(SKILLS_KEY)
        return [Skill.from_dict(s) for s in data.get(SKILLS_KEY) or []]

    async def save_skills(self, skills: list[Skill]) -> None:
        await self.storage.set({SKILLS_KEY: [s.to_dict() for s in skills]})

    async def add_skill(self, name: str, instruction: str) -> Skill:
        skills = [s for s in await self.get_skills() if s.name != name]
        skill = Skill(name=name, instruction=instruction)
        skills.append(skill)
        await self.save_skills(skills)
        return skill

    # Chat history

    async def get_chat_history(self) -> list[HistoryTurn]:
        data = await self.storage.get(CHAT_HISTORY_KEY)
        return data.get(CHAT_HISTORY_KEY) or []

    async def append_chat_history(self, turns: list[HistoryTurn]) -> list[HistoryTurn]:
        history = await self.get_chat_history()
        history = (history + turns)[-MAX_CHAT_HISTORY:]
        await self.storage.set({CHAT_HISTORY_KEY: history})
        return history

    # Embedding cache

    async def get_embedding_cache(self) -> dict[str, Vector]:
        data = await self.storage.get(EMBEDDINGS_KEY)
        return data.get(EMBEDDINGS_KEY) or {}

    async def save_embedding_cache(self, cache: dict[str, Vector]) -> dict[str, Vector]:
        capped = keep_newest(cache, MAX_EMBEDDINGS)
        await self.storage.set({EMBEDDINGS_KEY: capped})
        return capped

    # Counters

    async def get_conversation_count(self) -> int:
        data = await self.storage.get(COUNTERS_KEY)
        return int((data.get(COUNTERS_KEY) or {}).get("conversations", 0))

    async def increment_conversation_count(self) -> int:
        data = await self.storage.get(COUNTERS_KEY)
        counters = data.get(COUNTERS_KEY) or {}
        count = int(counters.get("conversations", 0)) + 1
        counters["conversations"] = count
        await self.storage.set({COUNTERS_KEY: counters})
        return count
