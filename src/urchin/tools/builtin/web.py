"""Web tools - DuckDuckGo instant answers and plain page fetching."""

import re

import httpx

from urchin.core.types import ActionResult
from urchin.tools.base import ToolContext, tool
from urchin.tools.registry import ToolRegistry

SEARCH_URL = "https://api.duckduckgo.com/"
USER_AGENT = "Mozilla/5.0 (compatible; Urchin/1.0)"
MAX_RESULTS = 8
MAX_TOPICS = 5
MAX_SUBTOPICS = 2
MAX_PREVIEW_CHARS = 8000

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def html_to_text(html: str) -> str:
    """Strip scripts, styles and tags; collapse whitespace."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def parse_instant_answer(data: dict, query: str) -> list[dict]:
    """Flatten a DuckDuckGo instant-answer payload into result snippets."""
    results = []
    if data.get("AbstractText"):
        results.append({
            "title": data.get("Heading") or query,
            "snippet": data["AbstractText"],
            "url": data.get("AbstractURL", ""),
        })
    for topic in (data.get("RelatedTopics") or [])[:MAX_TOPICS]:
        if topic.get("Text"):
            results.append({"snippet": topic["Text"], "url": topic.get("FirstURL", "")})
        for sub in (topic.get("Topics") or [])[:MAX_SUBTOPICS]:
            if sub.get("Text"):
                results.append({"snippet": sub["Text"], "url": sub.get("FirstURL", "")})
    return results[:MAX_RESULTS]


def _timeout(context: ToolContext, field: str, default: float) -> float:
    if context.settings is None:
        return default
    return getattr(context.settings, field)


@tool(
    "WEB_SEARCH",
    "Search the web for real-time info.",
    usage="query",
    examples=["<<TOOL:WEB_SEARCH:latest python release>>"],
)
async def web_search(parameter: str, context: ToolContext) -> ActionResult:
    query = parameter.strip()
    if not query:
        return ActionResult(success=False, error="WEB_SEARCH needs a query")

    params = {"q": query, "format": "json", "no_html": 1, "skip_disambig": 1}
    try:
        async with httpx.AsyncClient(timeout=_timeout(context, "search_timeout", 10.0)) as client:
            response = await client.get(SEARCH_URL, params=params)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        return ActionResult(success=False, error=f"HTTP {e.response.status_code}: search failed")
    except httpx.TimeoutException:
        return ActionResult(success=False, error="Search request timed out")
    except Exception as e:
        return ActionResult(success=False, error=f"Search failed: {e!s}")

    return ActionResult(success=True, data={"success": True, "results": parse_instant_answer(data, query)})


@tool(
    "FETCH_URL",
    "Fetch and read webpage content.",
    usage="url",
    examples=["<<TOOL:FETCH_URL:https://example.com>>"],
)
async def fetch_url(parameter: str, context: ToolContext) -> ActionResult:
    url = parameter.strip()
    if not url.startswith(("http://", "https://")):
        return ActionResult(success=False, error="Fetch failed: URL must start with http:// or https://")

    try:
        async with httpx.AsyncClient(
            timeout=_timeout(context, "fetch_timeout", 15.0),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            html = response.text
    except httpx.HTTPStatusError as e:
        return ActionResult(success=False, error=f"Fetch failed: HTTP {e.response.status_code}")
    except httpx.TimeoutException:
        return ActionResult(success=False, error="Fetch failed: request timed out")
    except Exception as e:
        return ActionResult(success=False, error=f"Fetch failed: {e!s}")

    text = html_to_text(html)
    return ActionResult(
        success=True,
        data={"success": True, "url": url, "content_preview": text[:MAX_PREVIEW_CHARS]},
    )


def register_web_tools(registry: ToolRegistry) -> None:
    """Register web tools."""
    registry.register(web_search._tool)  # type: ignore[attr-defined]
    registry.register(fetch_url._tool)  # type: ignore[attr-defined]
