"""Web tools: search (Brave or Tavily) and page fetch."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger
from lxml import etree
from lxml.html import fromstring
from readability import Document
from readability.readability import Unparseable

from ..config.schema import WebSearchConfig
from .base import Tool

SNIPPET_MAX_CHARS = 150


class WebSearchError(Exception):
    """Raised when no search backend could answer."""


class WebSearchNotConfigured(WebSearchError):
    pass


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str = ""


class WebSearchClient:
    """Thin async client over the Brave and Tavily search APIs.

    With ``provider="auto"`` Brave is tried first when it has a key, then
    Tavily.
    """

    def __init__(self, config: WebSearchConfig) -> None:
        self._config = config

    @property
    def configured(self) -> bool:
        return bool(self._config.api_key or self._config.tavily_api_key)

    def _backends(self) -> list[str]:
        provider = self._config.provider.lower()
        if provider in ("brave", "tavily"):
            return [provider]
        order = []
        if self._config.api_key:
            order.append("brave")
        if self._config.tavily_api_key:
            order.append("tavily")
        return order

    async def search(self, query: str, count: int | None = None) -> tuple[str, list[SearchResult]]:
        """Return ``(provider_name, results)``."""
        backends = self._backends()
        if not backends or not self.configured:
            raise WebSearchNotConfigured("no web search API key configured")

        limit = min(count or self._config.max_results, 10)
        last_error = ""
        for backend in backends:
            try:
                if backend == "brave":
                    return "Brave", await self._search_brave(query, limit)
                return "Tavily", await self._search_tavily(query, limit)
            except (httpx.HTTPError, ValueError) as e:
                last_error = f"{backend} search failed: {e}"
                logger.warning(last_error)
        raise WebSearchError(last_error or "search failed")

    async def _search_brave(self, query: str, limit: int) -> list[SearchResult]:
        if not self._config.api_key:
            raise WebSearchNotConfigured("Brave API key not set")
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self._config.brave_base_url.rstrip('/')}/res/v1/web/search",
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self._config.api_key,
                },
                params={"q": query, "count": limit},
                timeout=self._config.timeout,
            )
            response.raise_for_status()
            data = response.json()

        results = []
        for r in data.get("web", {}).get("results", [])[:limit]:
            if r.get("title"):
                results.append(SearchResult(r["title"], r.get("url", ""), r.get("description", "")))
        return results

    async def _search_tavily(self, query: str, limit: int) -> list[SearchResult]:
        if not self._config.tavily_api_key:
            raise WebSearchNotConfigured("Tavily API key not set")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self._config.tavily_base_url.rstrip('/')}/search",
                json={
                    "api_key": self._config.tavily_api_key,
                    "query": query,
                    "max_results": limit,
                },
                timeout=self._config.timeout,
            )
            response.raise_for_status()
            data = response.json()

        results = []
        for r in data.get("results", [])[:limit]:
            if r.get("title"):
                results.append(SearchResult(r["title"], r.get("url", ""), r.get("content", "")))
        return results


def format_results(provider: str, query: str, results: list[SearchResult]) -> str:
    out = f'🔍 {provider} results for "{query}":\n\n'
    for i, r in enumerate(results, 1):
        out += f"{i}. {r.title}\n   {r.url}\n"
        if r.snippet:
            snippet = r.snippet
            if len(snippet) > SNIPPET_MAX_CHARS:
                snippet = snippet[: SNIPPET_MAX_CHARS - 3] + "..."
            out += f'   "{snippet}"\n'
        out += "\n"
    return out.rstrip("\n")


async def run_web_job(client: WebSearchClient, task: str) -> str:
    """Run a research task once and format the answer for chat.

    Raises WebSearchNotConfigured, or WebSearchError("No quick result.")
    when the backend answered with nothing usable.
    """
    provider, results = await client.search(task)
    if not results:
        raise WebSearchError("No quick result.")
    return format_results(provider, task, results)


class WebSearchTool(Tool):
    """Search the web through the configured search backend."""

    def __init__(self, client: WebSearchClient):
        self._client = client

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return "Search the web for current information. Returns titles, URLs and snippets."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "count": {
                    "type": "integer",
                    "description": "Number of results (default: 3, max: 10)",
                    "default": 3,
                },
            },
            "required": ["query"],
        }

    async def execute(self, query: str, count: int = 3, **kwargs: Any) -> str:
        try:
            provider, results = await self._client.search(query, count)
        except WebSearchError as e:
            return f"Error searching: {e}"
        if not results:
            return f"No results found for: {query}"
        return format_results(provider, query, results)


class WebFetchTool(Tool):
    """Fetch a URL and return its visible text."""

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return "Fetch a URL and return the readable text of the page."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "URL to fetch"},
                "max_length": {
                    "type": "integer",
                    "description": "Max content length in chars (default: 4000)",
                    "default": 4000,
                },
            },
            "required": ["url"],
        }

    async def execute(self, url: str, max_length: int = 4000, **kwargs: Any) -> str:
        if not url.startswith(("http://", "https://")):
            return "Error: URL must start with http:// or https://"

        try:
            async with httpx.AsyncClient(follow_redirects=True, max_redirects=5) as client:
                response = await client.get(
                    url,
                    headers={"User-Agent": "Mozilla/5.0 (compatible; brainbot/0.3)"},
                    timeout=20.0,
                )
                response.raise_for_status()
                html = response.text
        except httpx.HTTPError as e:
            return f"Error fetching URL: {e}"

        try:
            doc = Document(html)
            text = fromstring(doc.summary()).text_content().strip()
            result = f"Title: {doc.title()}\nURL: {url}\n\n{text}"
        except (Unparseable, etree.LxmlError, ValueError) as e:
            logger.debug(f"Readability failed for {url}: {e}")
            text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", html, flags=re.S | re.I)
            text = re.sub(r"<[^>]+>", " ", text)
            text = re.sub(r"\s+", " ", text).strip()
            result = f"URL: {url}\n\n{text}"

        if len(result) > max_length:
            result = result[:max_length] + f"\n\n... (truncated, {len(result) - max_length} more chars)"
        return result
