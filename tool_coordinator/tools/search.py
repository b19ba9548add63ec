"""
web_search tool: queries a SearXNG instance's JSON API and renders the
top hits as plain text for the model.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from ..config import config
from ..models import SearxngConfig
from .base import Tool, ToolError

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 200


class WebSearchParams(BaseModel):
    query: str = Field(..., description="search query")
    categories: Optional[str] = Field(
        default=None, description="optional category (general, images, news)"
    )
    num_results: int = Field(default=5, ge=1, le=20, description="max results to return")


def format_results_for_llm(query: str, results: list[dict[str, Any]]) -> str:
    """Number each hit with its title and URL, plus a snippet when it has content."""
    if not results:
        return "No results found."

    blocks = []
    for rank, hit in enumerate(results, 1):
        lines = [f"{rank}. {hit['title']}", f"   URL: {hit['url']}"]
        if hit["content"]:
            lines.append(f"   {hit['content'][:SNIPPET_CHARS]}...")
        blocks.append("\n".join(lines) + "\n")
    return f"Search results for '{query}':\n\n" + "\n".join(blocks) + "\n"


class WebSearch(Tool):
    """Searches the web through a SearXNG JSON endpoint."""

    name = "web_search"
    description = "Search the web for current information"
    Params = WebSearchParams

    def __init__(
        self,
        settings: Optional[SearxngConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or config.tools.searxng
        self._client = client

    async def call(self, params: WebSearchParams) -> str:
        if not params.query.strip():
            raise ToolError("Search query is empty")

        query_params = {"q": params.query, "format": "json"}
        if params.categories:
            query_params["categories"] = params.categories

        try:
            if self._client is not None:
                response = await self._client.get(self.settings.url, params=query_params)
            else:
                async with httpx.AsyncClient(timeout=self.settings.timeout) as client:
                    response = await client.get(self.settings.url, params=query_params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"SearXNG request to {self.settings.url} failed: {e}")
            raise ToolError(f"Search request failed: {e}") from e
        except ValueError as e:
            raise ToolError(f"Search returned invalid JSON: {e}") from e

        results = [
            {
                "title": item.get("title", ""),
                "url": item.get("url", ""),
                "content": item.get("content", ""),
            }
            for item in data.get("results", [])[: params.num_results]
        ]
        return format_results_for_llm(params.query, results)
