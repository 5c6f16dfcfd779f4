"""Web search with Tavily and DuckDuckGo fallback support."""

import asyncio
import logging
import os
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ddgs import DDGS
from ddgs.exceptions import DDGSException, RatelimitException

from .errors import SearchError

logger = logging.getLogger(__name__)

# DuckDuckGo region per response language; anything else searches worldwide
DDG_REGIONS = {
    "en": "us-en",
    "zh": "cn-zh",
    "de": "de-de",
    "fr": "fr-fr",
    "es": "es-es",
    "ja": "jp-jp",
    "ru": "ru-ru",
}
DEFAULT_REGION = "wt-wt"


@dataclass(frozen=True)
class WebSearchResult:
    """A single search hit with the page content used for extraction."""
    url: str
    content: str
    title: str = ""


SearchProvider = Callable[[str, int, str | None], Awaitable[list[WebSearchResult]]]


def search(query: str, max_results: int = 5, lang: str | None = None) -> list[WebSearchResult]:
    """
    Run one SERP query and return page contents for learning extraction.

    Tavily is used when TAVILY_API_KEY is set because it returns full page
    text; DuckDuckGo snippets are the fallback when Tavily is not
    configured, fails, or finds nothing.

    Args:
        query: The search query
        max_results: Maximum number of results to return
        lang: Locale code of the response language, used to pick a region

    Returns:
        List of WebSearchResult objects

    Raises:
        SearchError: If both providers fail or nothing is found
    """
    tavily_key = os.environ.get("TAVILY_API_KEY")

    if tavily_key:
        try:
            results = _search_tavily(query, max_results, tavily_key)
            if results:
                return results
            logger.warning("Tavily returned no results, falling back to DuckDuckGo")
        except Exception as e:
            logger.warning("Tavily search failed: %s, falling back to DuckDuckGo", e)

    results = _search_duckduckgo(query, max_results, region=DDG_REGIONS.get(lang or "", DEFAULT_REGION))

    if not results:
        raise SearchError(f"No results found for query: {query}")

    return results


async def search_async(query: str, max_results: int = 5, lang: str | None = None) -> list[WebSearchResult]:
    """Run :func:`search` in a worker thread so the event loop keeps going."""
    return await asyncio.to_thread(search, query, max_results, lang)


def _search_tavily(query: str, max_results: int, api_key: str) -> list[WebSearchResult]:
    """
    Search using Tavily API.

    Raw page content is requested so the extraction step sees more than
    the snippet; the snippet is used when no raw content came back.
    """
    # Import here to avoid requiring tavily-python when not used
    from tavily import TavilyClient

    client = TavilyClient(api_key=api_key)

    response = client.search(
        query=query,
        max_results=max_results,
        search_depth="basic",
        include_raw_content=True,
    )

    results = []
    for item in response.get("results", []):
        url = item.get("url")
        if not url:
            continue
        results.append(WebSearchResult(
            url=url,
            title=item.get("title") or "",
            content=item.get("raw_content") or item.get("content") or "",
        ))

    logger.info("Tavily returned %d results", len(results))
    return results


def _search_duckduckgo(
    query: str, max_results: int, region: str = DEFAULT_REGION, retries: int = 2,
) -> list[WebSearchResult]:
    """Query DuckDuckGo, backing off and retrying when rate limited."""
    last_error = None

    for attempt in range(retries + 1):
        try:
            with DDGS() as ddgs:
                raw_results = list(ddgs.text(query, region=region, max_results=max_results))

            return [
                WebSearchResult(
                    url=r.get("href", ""),
                    title=r.get("title", ""),
                    content=r.get("body", ""),
                )
                for r in raw_results
                if r.get("href")
            ]

        except (DDGSException, RatelimitException) as e:
            last_error = e
            if attempt < retries:
                # Exponential backoff with jitter
                wait_time = 2 ** attempt * 2 + random.uniform(0, 1)
                logger.warning("Search rate limited, waiting %.1fs...", wait_time)
                time.sleep(wait_time)
            continue

        except (ConnectionError, TimeoutError, OSError) as e:
            last_error = e
            break

    if last_error:
        raise SearchError(f"Search failed: {last_error}")

    return []
