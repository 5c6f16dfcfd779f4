"""Extraction of learnings and follow-up questions from search results."""

import logging
from collections.abc import AsyncIterator

from .llm import LanguageModel
from .models import Learning, PartialProcessedSearchResult, ProcessedSearchResult
from .prompts import process_results_prompt, system_prompt
from .search import WebSearchResult
from .stream import StreamChunk, parse_streaming_json
from .token_budget import trim_prompt

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_SIZE = 128_000


def has_learnings(value: PartialProcessedSearchResult) -> bool:
    """Accept the stream once at least one learning is present."""
    return bool(value.learnings)


def process_search_result(
    llm: LanguageModel,
    query: str,
    results: list[WebSearchResult],
    *,
    language: str,
    num_learnings: int = 5,
    num_follow_up_questions: int = 3,
    context_size: int = DEFAULT_CONTEXT_SIZE,
) -> AsyncIterator[StreamChunk]:
    """
    Ask the model to extract learnings from the contents of one search.

    The context budget is split evenly across results so that one huge
    page cannot crowd out the others.

    Returns:
        Parsed stream chunks over the ProcessedSearchResult shape
    """
    per_result = max(1, context_size // max(1, len(results)))
    contents = [(r.url, trim_prompt(r.content, per_result)) for r in results]
    prompt = process_results_prompt(
        query,
        contents,
        num_learnings=num_learnings,
        num_follow_up_questions=num_follow_up_questions,
        schema=ProcessedSearchResult,
        language=language,
    )
    fragments = llm.stream(system_prompt(), prompt, operation="process_search_result")
    return parse_streaming_json(fragments, ProcessedSearchResult, has_learnings)


def assign_titles(learnings: list[Learning], results: list[WebSearchResult]) -> list[Learning]:
    """Fill each learning's title from the first search result with the same URL."""
    titles: dict[str, str] = {}
    for r in results:
        titles.setdefault(r.url, r.title)
    return [
        learning.model_copy(update={"title": titles.get(learning.url) or None})
        for learning in learnings
    ]
