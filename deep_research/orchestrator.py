"""Recursive research tree orchestration.

Each call to ``DeepResearcher.research`` handles one node: it obtains the
node's sub-queries, runs every sub-query as an independent branch under the
shared concurrency limiter (search, extract learnings, maybe recurse one
level deeper) and merges the branches' learnings, deduplicated by URL.
Failures stay inside the branch or node that produced them and surface
only as ``error`` progress events; the root call always returns.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable
from contextlib import aclosing

from .config import ResearchSettings
from .events import (
    Complete,
    GeneratedQuery,
    GeneratingQuery,
    GeneratingQueryReasoning,
    NodeComplete,
    ProcessingSearchResult,
    ProcessingSearchResultReasoning,
    ProgressCallback,
    ResearchFailed,
    ResearchStep,
    SearchComplete,
    Searching,
)
from .languages import language_name
from .limiter import ConcurrencyLimiter
from .llm import LanguageModel
from .models import Learning, PartialSearchQuery, ProcessedSearchResult, RetryNode
from .node_id import ROOT_NODE_ID, is_root
from .processing import assign_titles, process_search_result
from .queries import ChildQuery, child_queries, generate_search_queries
from .results import ResearchResult
from .search import SearchProvider, WebSearchResult, search_async
from .stream import BadEndChunk, ErrorChunk, ObjectChunk, ReasoningChunk

logger = logging.getLogger(__name__)

INVALID_STRUCTURED_OUTPUT = "The model returned invalid structured output"
UNKNOWN_ERROR = "Something went wrong"


def dedupe_learnings(groups: Iterable[Iterable[Learning]]) -> list[Learning]:
    """Merge learning lists keeping the first learning seen for each URL."""
    seen: set[str] = set()
    merged: list[Learning] = []
    for group in groups:
        for learning in group:
            if learning.url in seen:
                continue
            seen.add(learning.url)
            merged.append(learning)
    return merged


def follow_up_query(research_goal: str, questions: list[str]) -> str:
    """Build the query for the next level from a goal and its follow-up questions."""
    directions = "".join(f"\n{q}" for q in questions)
    return f"Previous research goal: {research_goal}\nFollow-up research directions: {directions}".strip()


def _safe_emitter(on_progress: ProgressCallback) -> ProgressCallback:
    """Wrap a progress callback so a broken consumer cannot derail research."""
    def emit(step: ResearchStep) -> None:
        try:
            on_progress(step)
        except Exception:
            logger.exception("Progress callback failed on %s event", step.type)
    return emit


class DeepResearcher:
    """
    Runs the research tree for a query.

    The limiter is shared by every node of a run; pass a fresh one per run
    unless concurrent runs should share one budget.

    Usage:
        researcher = DeepResearcher(AnthropicModel(), ConcurrencyLimiter(2))
        result = await researcher.research(
            "Solid-state battery startups", breadth=3, max_depth=2,
            language_code="en", on_progress=print,
        )
    """

    def __init__(
        self,
        llm: LanguageModel,
        limiter: ConcurrencyLimiter,
        search: SearchProvider = search_async,
        settings: ResearchSettings | None = None,
    ):
        self.llm = llm
        self.limiter = limiter
        self.search = search
        self.settings = settings or ResearchSettings()

    async def research(
        self,
        query: str,
        *,
        breadth: int,
        max_depth: int,
        language_code: str,
        on_progress: ProgressCallback,
        search_language_code: str | None = None,
        learnings: list[Learning] | None = None,
        current_depth: int = 0,
        node_id: str = ROOT_NODE_ID,
        retry_node: RetryNode | None = None,
    ) -> ResearchResult:
        """
        Research one node of the tree and everything below it.

        Args:
            query: Topic for this node
            breadth: Maximum number of sub-queries for this node
            max_depth: Deepest level a branch may recurse to
            language_code: Locale code of the response language
            on_progress: Called synchronously with every progress event
            search_language_code: Locale code for SERP queries, if different
            learnings: Learnings inherited from ancestors
            current_depth: Depth of this node (0 at the root)
            node_id: Id of this node
            retry_node: Re-run this (non-root) node with its existing question
                instead of generating new queries

        Returns:
            ResearchResult with the node's deduplicated learnings. Never
            raises; failures are reported as error events and yield empty
            learnings.
        """
        emit = _safe_emitter(on_progress)
        learnings = list(learnings or [])

        try:
            language = language_name(language_code)
            search_language = language_name(search_language_code) if search_language_code else None

            if retry_node is not None and not is_root(retry_node.id):
                node_id = retry_node.id
                children = [ChildQuery(
                    node_id=node_id,
                    query=PartialSearchQuery(query=retry_node.label, research_goal=retry_node.research_goal),
                )]
            else:
                children = await self._generate_children(
                    query, node_id=node_id, breadth=breadth, learnings=learnings,
                    language=language, search_language=search_language, emit=emit,
                )

            branch_results = await asyncio.gather(*[
                self.limiter.run(
                    self._run_branch, child,
                    breadth=breadth, max_depth=max_depth, current_depth=current_depth,
                    learnings=learnings, language=language, language_code=language_code,
                    search_language_code=search_language_code, emit=emit,
                )
                for child in children
            ])

            final_learnings = tuple(dedupe_learnings(branch_results))
            if is_root(node_id):
                emit(Complete(learnings=final_learnings))
            return ResearchResult(learnings=final_learnings)

        except Exception as e:
            logger.error("Research failed at node %s: %s", node_id, e, exc_info=True)
            emit(ResearchFailed(node_id=node_id, message=str(e) or UNKNOWN_ERROR))
            return ResearchResult()

    async def _generate_children(
        self,
        query: str,
        *,
        node_id: str,
        breadth: int,
        learnings: list[Learning],
        language: str,
        search_language: str | None,
        emit: ProgressCallback,
    ) -> list[ChildQuery]:
        """Stream sub-queries for a node, reporting progress as they form."""
        children: list[ChildQuery] = []
        stream = generate_search_queries(
            self.llm,
            query,
            language=language,
            num_queries=breadth,
            learnings=[item.learning for item in learnings] or None,
            search_language=search_language,
        )

        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, ObjectChunk):
                    if not chunk.value.queries:
                        continue
                    children = child_queries(chunk.value, node_id)
                    for child in children:
                        emit(GeneratingQuery(node_id=child.node_id, result=child.query, parent_node_id=node_id))
                elif isinstance(chunk, ReasoningChunk):
                    # Commentary on the still-forming child list belongs to this node
                    emit(GeneratingQueryReasoning(node_id=node_id, delta=chunk.delta))
                elif isinstance(chunk, ErrorChunk):
                    emit(ResearchFailed(node_id=node_id, message=chunk.message))
                    break
                elif isinstance(chunk, BadEndChunk):
                    emit(ResearchFailed(node_id=node_id, message=INVALID_STRUCTURED_OUTPUT))
                    break

        emit(NodeComplete(node_id=node_id))
        for child in children:
            emit(GeneratedQuery(node_id=child.node_id, query=child.text or "", result=child.query))

        logger.info("Node %s: generated %d queries", node_id, len(children))
        return children

    async def _run_branch(
        self,
        child: ChildQuery,
        *,
        breadth: int,
        max_depth: int,
        current_depth: int,
        learnings: list[Learning],
        language: str,
        language_code: str,
        search_language_code: str | None,
        emit: ProgressCallback,
    ) -> list[Learning]:
        """Search, extract and maybe recurse for one sub-query.

        Runs inside a limiter slot. Any failure is reported against the
        child's node and turns into empty learnings for this branch only.
        """
        if not child.text:
            return []

        emit(Searching(node_id=child.node_id, query=child.text))
        try:
            results = await self.search(child.text, self.settings.max_search_results, language_code)
            logger.info('Searched "%s", found %d contents', child.text, len(results))
            emit(SearchComplete(node_id=child.node_id, results=tuple(results)))

            # Breadth for the next level is half of the current breadth
            next_breadth = math.ceil(breadth / 2)

            processed = await self._process_results(
                child, results, num_follow_up_questions=next_breadth, language=language, emit=emit,
            )
            own = ProcessedSearchResult(
                learnings=assign_titles(processed.learnings, results),
                follow_up_questions=processed.follow_up_questions,
            )
            all_learnings = [*learnings, *own.learnings]
            emit(NodeComplete(node_id=child.node_id, result=own))

            next_depth = current_depth + 1
            if next_depth > max_depth or not own.follow_up_questions:
                return all_learnings

            logger.info(
                "Node %s: researching deeper, breadth: %d, depth: %d",
                child.node_id, next_breadth, next_depth,
            )
            # This branch keeps its slot while it waits on its children
            async with self.limiter.headroom():
                deeper = await self.research(
                    follow_up_query(child.research_goal, own.follow_up_questions),
                    breadth=next_breadth,
                    max_depth=max_depth,
                    language_code=language_code,
                    search_language_code=search_language_code,
                    learnings=all_learnings,
                    current_depth=next_depth,
                    node_id=child.node_id,
                    on_progress=emit,
                )
            return list(deeper.learnings)

        except Exception as e:
            logger.error(
                "Error in node %s for query %s: %s", child.node_id, child.text, e, exc_info=True,
            )
            emit(ResearchFailed(node_id=child.node_id, message=str(e) or UNKNOWN_ERROR))
            return []

    async def _process_results(
        self,
        child: ChildQuery,
        results: list[WebSearchResult],
        *,
        num_follow_up_questions: int,
        language: str,
        emit: ProgressCallback,
    ) -> ProcessedSearchResult:
        """Stream learnings for one search, relaying progress under the child's id."""
        latest = None
        stream = process_search_result(
            self.llm,
            child.text or "",
            results,
            language=language,
            num_learnings=self.settings.num_learnings,
            num_follow_up_questions=num_follow_up_questions,
            context_size=self.settings.context_size,
        )

        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, ObjectChunk):
                    latest = chunk.value
                    emit(ProcessingSearchResult(node_id=child.node_id, query=child.text or "", result=latest))
                elif isinstance(chunk, ReasoningChunk):
                    emit(ProcessingSearchResultReasoning(node_id=child.node_id, delta=chunk.delta))
                elif isinstance(chunk, ErrorChunk):
                    emit(ResearchFailed(node_id=child.node_id, message=chunk.message))
                    break
                elif isinstance(chunk, BadEndChunk):
                    emit(ResearchFailed(node_id=child.node_id, message=INVALID_STRUCTURED_OUTPUT))
                    break

        processed = ProcessedSearchResult.from_partial(latest)
        logger.info(
            "Processed search result for %s: %d learnings, %d follow-up questions",
            child.text, len(processed.learnings), len(processed.follow_up_questions),
        )
        return processed
