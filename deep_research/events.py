"""Progress events reported while the research tree runs.

Each event is a frozen dataclass with a fixed ``type`` discriminant. All
events except ``Complete`` carry the id of the node they pertain to.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Literal, Union

from .models import (
    Learning,
    PartialProcessedSearchResult,
    PartialSearchQuery,
    ProcessedSearchResult,
)
from .search import WebSearchResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratingQuery:
    """A child query is still being written by the model."""
    node_id: str
    result: PartialSearchQuery
    parent_node_id: str | None = None
    type: Literal["generating_query"] = field(default="generating_query", init=False)


@dataclass(frozen=True)
class GeneratingQueryReasoning:
    node_id: str
    delta: str
    type: Literal["generating_query_reasoning"] = field(
        default="generating_query_reasoning", init=False
    )


@dataclass(frozen=True)
class GeneratedQuery:
    """A child query is final and about to be searched."""
    node_id: str
    query: str
    result: PartialSearchQuery
    type: Literal["generated_query"] = field(default="generated_query", init=False)


@dataclass(frozen=True)
class Searching:
    node_id: str
    query: str
    type: Literal["searching"] = field(default="searching", init=False)


@dataclass(frozen=True)
class SearchComplete:
    node_id: str
    results: tuple[WebSearchResult, ...]
    type: Literal["search_complete"] = field(default="search_complete", init=False)


@dataclass(frozen=True)
class ProcessingSearchResult:
    node_id: str
    query: str
    result: PartialProcessedSearchResult
    type: Literal["processing_search_result"] = field(
        default="processing_search_result", init=False
    )


@dataclass(frozen=True)
class ProcessingSearchResultReasoning:
    node_id: str
    delta: str
    type: Literal["processing_search_result_reasoning"] = field(
        default="processing_search_result_reasoning", init=False
    )


@dataclass(frozen=True)
class NodeComplete:
    """A node finished its own work.

    ``result`` is None for a node that only generated queries, and holds the
    node's own learnings and follow-up questions for a searched node.
    """
    node_id: str
    result: ProcessedSearchResult | None = None
    type: Literal["node_complete"] = field(default="node_complete", init=False)


@dataclass(frozen=True)
class ResearchFailed:
    node_id: str
    message: str
    type: Literal["error"] = field(default="error", init=False)


@dataclass(frozen=True)
class Complete:
    """Emitted once per run, by the root node, after full aggregation."""
    learnings: tuple[Learning, ...]
    type: Literal["complete"] = field(default="complete", init=False)


ResearchStep = Union[
    GeneratingQuery,
    GeneratingQueryReasoning,
    GeneratedQuery,
    Searching,
    SearchComplete,
    ProcessingSearchResult,
    ProcessingSearchResultReasoning,
    NodeComplete,
    ResearchFailed,
    Complete,
]

ProgressCallback = Callable[[ResearchStep], None]


def log_progress(step: ResearchStep) -> None:
    """Default progress callback: log each event at debug level."""
    node = getattr(step, "node_id", "-")
    logger.debug("[%s] %s", node, step.type)
