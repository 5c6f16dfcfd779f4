"""Generation of divergent sub-queries for a research node."""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from .llm import LanguageModel
from .models import PartialSearchQueries, PartialSearchQuery, SearchQueries
from .node_id import child_node_id
from .prompts import search_queries_prompt, system_prompt
from .stream import StreamChunk, parse_streaming_json

logger = logging.getLogger(__name__)

# Some models write this literal instead of leaving a field out
UNDEFINED_QUERY = "undefined"


@dataclass(frozen=True)
class ChildQuery:
    """A sub-query together with the id of the node that will run it."""
    node_id: str
    query: PartialSearchQuery

    @property
    def text(self) -> str | None:
        return self.query.query

    @property
    def research_goal(self) -> str:
        return self.query.research_goal or ""


def has_first_query(value: PartialSearchQueries) -> bool:
    """Accept the stream once the first query has some text."""
    return bool(value.queries) and bool(value.queries[0].query)


def child_queries(value: PartialSearchQueries, parent_node_id: str) -> list[ChildQuery]:
    """Assign child node ids to a snapshot of generated queries.

    Order follows the model output; ``"undefined"`` entries are dropped
    before numbering so ids stay contiguous.
    """
    kept = [q for q in value.queries or [] if q.query != UNDEFINED_QUERY]
    return [
        ChildQuery(node_id=child_node_id(parent_node_id, i), query=q)
        for i, q in enumerate(kept)
    ]


def generate_search_queries(
    llm: LanguageModel,
    query: str,
    *,
    language: str,
    num_queries: int = 3,
    learnings: list[str] | None = None,
    search_language: str | None = None,
) -> AsyncIterator[StreamChunk]:
    """
    Ask the model for up to ``num_queries`` SERP queries about a topic.

    Args:
        llm: Model to stream from
        query: The topic, or for deeper levels the previous goal plus follow-up questions
        language: Display name of the response language
        num_queries: Maximum number of queries to request
        learnings: Plain-text learnings gathered by ancestors, if any
        search_language: Display name of the language to write queries in

    Returns:
        Parsed stream chunks over the SearchQueries shape
    """
    prompt = search_queries_prompt(
        query,
        num_queries=num_queries,
        schema=SearchQueries,
        language=language,
        learnings=learnings,
        search_language=search_language,
    )
    fragments = llm.stream(system_prompt(), prompt, operation="generate_search_queries")
    return parse_streaming_json(fragments, SearchQueries, has_first_query)
