"""Shared fixtures for deep_research tests."""

import asyncio
import json
import re
from collections import deque
from html import unescape

import pytest

from deep_research.search import WebSearchResult
from deep_research.stream import ReasoningDelta, StreamFailure, TextDelta


def json_fragments(value, pieces: int = 3) -> list[TextDelta]:
    """Split the JSON text of ``value`` into roughly equal text deltas."""
    text = json.dumps(value)
    size = max(1, len(text) // pieces)
    return [TextDelta(text=text[i:i + size]) for i in range(0, len(text), size)]


async def fragment_stream(fragments):
    """Yield fragments the way a provider stream would, one per event loop turn."""
    for fragment in fragments:
        await asyncio.sleep(0)
        yield fragment


class FakeModel:
    """Scripted stand-in for AnthropicModel.

    ``scripts`` maps an operation name to either a list of fragment lists
    (consumed one per call, the last one repeating) or a callable that
    builds the fragments from the prompt.
    """

    def __init__(self, scripts=None):
        self.scripts = {}
        for operation, script in (scripts or {}).items():
            self.scripts[operation] = script if callable(script) else deque(script)
        self.calls: list[tuple[str, str]] = []

    def calls_for(self, operation: str) -> list[str]:
        return [prompt for op, prompt in self.calls if op == operation]

    async def stream(self, system, prompt, *, operation="", on_error=None):
        self.calls.append((operation, prompt))
        script = self.scripts.get(operation)
        if script is None:
            fragments = [StreamFailure(message=f"no script for {operation}")]
        elif callable(script):
            fragments = script(prompt)
        else:
            fragments = script.popleft() if len(script) > 1 else script[0]
        for fragment in fragments:
            await asyncio.sleep(0)
            yield fragment


def prompt_query(prompt: str) -> str:
    """Pull the research query back out of a search-queries or processing prompt."""
    match = re.search(r"<(?:prompt|query)>(.*?)</(?:prompt|query)>", prompt, re.S)
    return unescape(match.group(1)) if match else ""


def prompt_urls(prompt: str) -> list[str]:
    return [unescape(u) for u in re.findall(r'<content url="([^"]+)"', prompt)]


def prompt_count(prompt: str) -> int:
    match = re.search(r"Return a maximum of (\d+)", prompt)
    return int(match.group(1)) if match else 1


def numbered_queries(prefix: str = "q"):
    """Build a query-generation script that returns as many unique queries as asked."""
    counter = {"n": 0}

    def script(prompt):
        queries = []
        for _ in range(prompt_count(prompt)):
            counter["n"] += 1
            queries.append({"query": f"{prefix}{counter['n']}", "researchGoal": f"goal {counter['n']}"})
        return [ReasoningDelta(text="thinking about angles")] + json_fragments({"queries": queries})

    return script


def one_learning_per_url(follow_ups: int = 0):
    """Build a processing script that returns one learning per content URL."""
    def script(prompt):
        query = prompt_query(prompt)
        learnings = [{"url": url, "learning": f"fact about {query}"} for url in prompt_urls(prompt)]
        questions = [f"follow up {i} on {query}" for i in range(follow_ups)]
        return json_fragments({"learnings": learnings, "followUpQuestions": questions})

    return script


class FakeSearch:
    """Async search provider returning one result per query, keyed by the query text."""

    def __init__(self, fail_for=(), urls=None):
        self.fail_for = set(fail_for)
        self.urls = urls or {}
        self.calls: list[tuple[str, int, str | None]] = []

    async def __call__(self, query, max_results=5, lang=None):
        self.calls.append((query, max_results, lang))
        await asyncio.sleep(0)
        if query in self.fail_for:
            from deep_research.errors import SearchError
            raise SearchError(f"search exploded for {query}")
        url = self.urls.get(query, f"https://example.com/{query.replace(' ', '-')}")
        return [WebSearchResult(url=url, content=f"Content about {query}", title=f"Title {query}")]


@pytest.fixture
def fake_search():
    return FakeSearch()


@pytest.fixture
def sample_results():
    """Search results with a duplicate URL carrying a second title."""
    return [
        WebSearchResult(url="https://a.example/1", content="Alpha content", title="Alpha"),
        WebSearchResult(url="https://b.example/2", content="Beta content", title=""),
        WebSearchResult(url="https://a.example/1", content="Alpha again", title="Alpha mirror"),
    ]


@pytest.fixture
def collected_events():
    """A progress callback that records every event it receives."""
    events = []

    def on_progress(step):
        events.append(step)

    on_progress.events = events
    return on_progress


@pytest.fixture
def mock_ddgs_results():
    """Factory for raw DuckDuckGo result dicts."""
    def _make(n=3):
        return [
            {
                "title": f"Result {i}",
                "href": f"https://example{i}.com/page",
                "body": f"Snippet for result {i}",
            }
            for i in range(1, n + 1)
        ]
    return _make
