"""Tests for built-in memory and web tools."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from urchin.tools.base import ToolContext
from urchin.tools.builtin.memory import NOTHING_SAVED, learn_skill, recall, remember, search_memory
from urchin.tools.builtin.web import fetch_url, html_to_text, parse_instant_answer, web_search


@pytest.fixture
def context(memory, settings) -> ToolContext:
    return ToolContext(memory=memory, settings=settings)


class TestMemoryTools:
    @pytest.mark.asyncio
    async def test_remember_then_recall(self, context):
        saved = await remember('{"key": "wallet", "value": "0xabc"}', context)
        assert saved.success
        assert saved.data["success"] is True

        result = await recall("wallet", context)
        assert result.data == {"success": True, "key": "wallet", "value": "0xabc"}

    @pytest.mark.asyncio
    async def test_remember_rejects_bad_payload(self, context):
        result = await remember("not json", context)
        assert result.success is False
        assert "REMEMBER" in result.error

    @pytest.mark.asyncio
    async def test_recall_missing_key(self, context):
        result = await recall("nothing", context)
        assert result.success
        assert result.data["value"] == NOTHING_SAVED

    @pytest.mark.asyncio
    async def test_recall_all_hides_sessions(self, context, memory):
        await memory.remember("wallet", "0xabc")
        await memory.add_session_summary("talked about tokens", timestamp_ms=1)
        result = await recall("all", context)
        assert result.data["memory"] == {"wallet": "0xabc"}

    @pytest.mark.asyncio
    async def test_search_memory_covers_profile(self, context, memory):
        await memory.remember("wallet", "main wallet 0xabc")
        await memory.remember("pet", "a cat named Tom")
        await memory.save_profile({"language": "Python developer"})

        result = await search_memory("python", context)
        keys = [m["key"] for m in result.data["matches"]]
        assert keys == ["profile_language"]

        result = await search_memory("wallet address", context)
        assert [m["key"] for m in result.data["matches"]] == ["wallet"]

    @pytest.mark.asyncio
    async def test_search_memory_truncates_values(self, context, memory):
        await memory.remember("essay", "python " * 100)
        result = await search_memory("python", context)
        assert len(result.data["matches"][0]["value"]) == 200

    @pytest.mark.asyncio
    async def test_learn_skill(self, context, memory):
        result = await learn_skill('{"name": "concise", "instruction": "Keep answers short"}', context)
        assert result.success
        skills = await memory.get_skills()
        assert [s.name for s in skills] == ["concise"]
        assert skills[0].score == 50

    @pytest.mark.asyncio
    async def test_learn_skill_requires_fields(self, context):
        result = await learn_skill('{"name": "concise"}', context)
        assert result.success is False


class TestWebHelpers:
    def test_html_to_text(self):
        html = "<html><head><style>p{}</style><script>var x=1;</script></head><body><p>Hello</p>\n<b>world</b></body></html>"
        assert html_to_text(html) == "Hello world"

    def test_parse_instant_answer(self):
        data = {
            "Heading": "Python",
            "AbstractText": "A programming language.",
            "AbstractURL": "https://python.org",
            "RelatedTopics": [
                {"Text": "CPython", "FirstURL": "https://x/cpython"},
                {"Name": "Group", "Topics": [{"Text": "PyPy", "FirstURL": "https://x/pypy"}]},
            ],
        }
        results = parse_instant_answer(data, "python")
        assert results[0] == {
            "title": "Python",
            "snippet": "A programming language.",
            "url": "https://python.org",
        }
        assert [r["snippet"] for r in results[1:]] == ["CPython", "PyPy"]

    def test_parse_empty_answer(self):
        assert parse_instant_answer({}, "q") == []


def mock_client(response=None, error=None):
    """Patch target for httpx.AsyncClient used as an async context manager."""
    client = MagicMock()
    if error is not None:
        client.get = AsyncMock(side_effect=error)
    else:
        client.get = AsyncMock(return_value=response)
    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=client)
    manager.__aexit__ = AsyncMock(return_value=None)
    return MagicMock(return_value=manager), client


class TestWebTools:
    @pytest.mark.asyncio
    async def test_search_requires_query(self, context):
        result = await web_search("   ", context)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_search_results(self, context):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.json = MagicMock(return_value={"AbstractText": "Answer", "Heading": "Q"})
        factory, client = mock_client(response)

        with patch("urchin.tools.builtin.web.httpx.AsyncClient", factory):
            result = await web_search("question", context)

        assert result.success
        assert result.data["results"][0]["snippet"] == "Answer"
        assert client.get.call_args.kwargs["params"]["q"] == "question"

    @pytest.mark.asyncio
    async def test_search_timeout(self, context):
        factory, _ = mock_client(error=httpx.ReadTimeout("slow"))
        with patch("urchin.tools.builtin.web.httpx.AsyncClient", factory):
            result = await web_search("question", context)
        assert result.success is False
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_fetch_rejects_invalid_url(self, context):
        result = await fetch_url("ftp://example.com", context)
        assert result.success is False
        assert "http" in result.error

    @pytest.mark.asyncio
    async def test_fetch_returns_preview(self, context):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.text = "<html><body><h1>Title</h1><p>Body text</p></body></html>"
        factory, _ = mock_client(response)

        with patch("urchin.tools.builtin.web.httpx.AsyncClient", factory):
            result = await fetch_url("https://example.com", context)

        assert result.data == {
            "success": True,
            "url": "https://example.com",
            "content_preview": "Title Body text",
        }
        assert json.dumps(result.data)


@pytest.mark.asyncio
async def test_remember_reserved_keys_never_stored(context, memory):
    for i in range(150):
        result = await remember(f'{{"key": "_k{i}", "value": "v"}}', context)
        assert result.success is False
    result = await remember('{"key": "session_1", "value": "v"}', context)
    assert result.success is False
    assert await memory.get_entries() == {}
