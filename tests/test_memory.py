"""Tests for storage backends and the memory accessor."""

from pathlib import Path

import pytest

from urchin.memory.accessor import (
    CHAT_HISTORY_KEY,
    EMBEDDINGS_KEY,
    MEMORY_KEY,
    MemoryAccessor,
    MemorySnapshot,
    cap_memory_entries,
    keep_newest,
)
from urchin.memory.base import InMemoryStorage, Storage
from urchin.memory.store import SQLiteStorage


@pytest.fixture
async def sqlite_storage(tmp_path: Path):
    """Create a temporary SQLite storage."""
    store = SQLiteStorage(tmp_path / "test.db")
    await store.connect()
    yield store
    await store.close()


# Storage backends


@pytest.mark.asyncio
async def test_in_memory_missing_keys_map_to_none():
    storage = InMemoryStorage()
    assert await storage.get(["a", "b"]) == {"a": None, "b": None}
    assert await storage.get("a") == {"a": None}


@pytest.mark.asyncio
async def test_in_memory_values_are_copied():
    """Mutating a read value does not change stored state."""
    storage = InMemoryStorage()
    await storage.set({"profile": {"name": "Ada"}})
    data = await storage.get("profile")
    data["profile"]["name"] = "Changed"
    assert (await storage.get("profile"))["profile"] == {"name": "Ada"}


def test_storages_satisfy_protocol(tmp_path: Path):
    assert isinstance(InMemoryStorage(), Storage)
    assert isinstance(SQLiteStorage(tmp_path / "x.db"), Storage)


@pytest.mark.asyncio
async def test_sqlite_roundtrip(sqlite_storage: SQLiteStorage):
    """SQLite storage persists JSON values per key."""
    await sqlite_storage.set({"urchin_profile": {"name": "Ada", "lang": "en"}, "urchin_condensed": "text"})
    data = await sqlite_storage.get(["urchin_profile", "urchin_condensed", "missing"])
    assert data == {
        "urchin_profile": {"name": "Ada", "lang": "en"},
        "urchin_condensed": "text",
        "missing": None,
    }


@pytest.mark.asyncio
async def test_sqlite_overwrite(sqlite_storage: SQLiteStorage):
    await sqlite_storage.set({"k": [1, 2]})
    await sqlite_storage.set({"k": [3]})
    assert (await sqlite_storage.get("k"))["k"] == [3]


@pytest.mark.asyncio
async def test_sqlite_preserves_mapping_order(sqlite_storage: SQLiteStorage):
    """Insertion order survives storage, which eviction relies on."""
    entries = {f"k{i}": i for i in (3, 1, 2)}
    await sqlite_storage.set({MEMORY_KEY: entries})
    restored = (await sqlite_storage.get(MEMORY_KEY))[MEMORY_KEY]
    assert list(restored) == ["k3", "k1", "k2"]


@pytest.mark.asyncio
async def test_sqlite_requires_connect(tmp_path: Path):
    store = SQLiteStorage(tmp_path / "nc.db")
    with pytest.raises(RuntimeError):
        await store.get("k")


@pytest.mark.asyncio
async def test_accessor_over_sqlite(sqlite_storage: SQLiteStorage):
    memory = MemoryAccessor(sqlite_storage)
    await memory.remember("wallet", "0xabc")
    assert (await memory.get_entries()) == {"wallet": "0xabc"}


# Caps


def test_keep_newest():
    mapping = {str(i): i for i in range(10)}
    assert list(keep_newest(mapping, 3)) == ["7", "8", "9"]
    assert keep_newest(mapping, 20) == mapping


def test_cap_memory_entries_splits_manual_and_sessions():
    entries = {f"note_{i}": i for i in range(105)}
    entries.update({f"session_{1000 + i}": f"s{i}" for i in range(25)})
    entries["_internal"] = "x"

    capped = cap_memory_entries(entries)

    manual = [k for k in capped if k.startswith("note_")]
    sessions = [k for k in capped if k.startswith("session_")]
    assert len(manual) == 100
    assert "note_0" not in capped
    assert "note_104" in capped
    assert len(sessions) == 20
    assert "session_1004" not in capped
    assert "session_1005" in capped
    assert capped["_internal"] == "x"


def test_cap_sessions_by_timestamp_not_lexicographic():
    """A shorter timestamp is older even though it sorts after a longer one as text."""
    entries = {"session_999": "old", **{f"session_{1000 + i}": "new" for i in range(20)}}
    capped = cap_memory_entries(entries)
    assert "session_999" not in capped
    assert len(capped) == 20


@pytest.mark.asyncio
async def test_manual_memory_cap(memory: MemoryAccessor):
    for i in range(105):
        await memory.remember(f"fact_{i:03d}", i)
    entries = await memory.get_entries()
    assert len(entries) == 100
    assert list(entries)[0] == "fact_005"


@pytest.mark.asyncio
async def test_remember_moves_key_to_newest(memory: MemoryAccessor):
    await memory.remember("a", 1)
    await memory.remember("b", 2)
    await memory.remember("a", 3)
    assert list(await memory.get_entries()) == ["b", "a"]


@pytest.mark.asyncio
async def test_session_summary_cap(memory: MemoryAccessor):
    for i in range(25):
        await memory.add_session_summary(f"summary {i}", timestamp_ms=1_700_000_000_000 + i)
    entries = await memory.get_entries()
    assert len(entries) == 20
    assert "summary 5" in entries.values()
    assert "summary 4" not in entries.values()


@pytest.mark.asyncio
async def test_session_summary_truncated(memory: MemoryAccessor):
    key = await memory.add_session_summary("x" * 2000, timestamp_ms=1)
    assert key == "session_1"
    assert len((await memory.get_entries())[key]) == 1500


@pytest.mark.asyncio
async def test_profile_cap(memory: MemoryAccessor):
    profile = {f"k{i}": i for i in range(55)}
    saved = await memory.save_profile(profile)
    assert len(saved) == 50
    assert "k4" not in saved
    assert "k5" in saved
    assert await memory.get_profile() == saved


@pytest.mark.asyncio
async def test_merge_profile_overwrites_and_adds(memory: MemoryAccessor):
    await memory.save_profile({"name": "Ada", "lang": "en"})
    merged = await memory.merge_profile({"lang": "fr", "city": "Paris"})
    assert merged == {"name": "Ada", "lang": "fr", "city": "Paris"}
    assert list(merged) == ["name", "lang", "city"]


@pytest.mark.asyncio
async def test_chat_history_cap(memory: MemoryAccessor, storage: InMemoryStorage):
    turns = [{"role": "user", "text": str(i)} for i in range(210)]
    await memory.append_chat_history(turns)
    history = (await storage.get(CHAT_HISTORY_KEY))[CHAT_HISTORY_KEY]
    assert len(history) == 200
    assert history[0]["text"] == "10"
    assert history[-1]["text"] == "209"


@pytest.mark.asyncio
async def test_embedding_cache_cap(memory: MemoryAccessor):
    cache = {f"k{i}": [float(i)] for i in range(310)}
    await memory.save_embedding_cache(cache)
    stored = await memory.get_embedding_cache()
    assert len(stored) == 300
    assert "k9" not in stored
    assert "k10" in stored


@pytest.mark.asyncio
async def test_condensed_keeps_tail(memory: MemoryAccessor):
    await memory.set_condensed("a" * 100 + "b" * 4000)
    condensed = await memory.get_condensed()
    assert len(condensed) == 4000
    assert set(condensed) == {"b"}


@pytest.mark.asyncio
async def test_conversation_counter(memory: MemoryAccessor):
    assert await memory.get_conversation_count() == 0
    assert await memory.increment_conversation_count() == 1
    assert await memory.increment_conversation_count() == 2
    assert await memory.get_conversation_count() == 2


@pytest.mark.asyncio
async def test_add_skill_replaces_same_name(memory: MemoryAccessor):
    await memory.add_skill("concise", "Be brief")
    await memory.add_skill("cite", "Cite sources")
    await memory.add_skill("concise", "Be very brief")
    skills = await memory.get_skills()
    assert [s.name for s in skills] == ["cite", "concise"]
    assert skills[1].instruction == "Be very brief"
    assert skills[1].score == 50


@pytest.mark.asyncio
async def test_snapshot_views(memory: MemoryAccessor, storage: InMemoryStorage):
    await memory.add_session_summary("older", timestamp_ms=1)
    await memory.add_session_summary("newer", timestamp_ms=2)
    entries = await memory.get_entries()
    await storage.set({MEMORY_KEY: {**entries, "_hidden": "x"}})
    await memory.remember("wallet", "0xabc")

    snapshot = await memory.snapshot()
    assert isinstance(snapshot, MemorySnapshot)
    assert snapshot.manual_entries == {"wallet": "0xabc"}
    assert list(snapshot.session_entries.values()) == ["newer", "older"]
    assert snapshot.condensed == ""
    assert snapshot.skills == []


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["_k1", "session_123"])
async def test_remember_rejects_reserved_keys(memory: MemoryAccessor, key: str):
    with pytest.raises(ValueError):
        await memory.remember(key, "v")
    assert await memory.get_entries() == {}


@pytest.mark.asyncio
async def test_remember_drops_cached_vector(memory: MemoryAccessor, storage: InMemoryStorage):
    await storage.set({EMBEDDINGS_KEY: {"wallet": [1.0, 0.0], "pet": [0.0, 1.0]}})
    await memory.remember("wallet", "new value")
    assert await memory.get_embedding_cache() == {"pet": [0.0, 1.0]}
