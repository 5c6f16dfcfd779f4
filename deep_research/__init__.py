"""Deep research: recursive web research trees and long-form reports."""

__version__ = "0.1.0"

import asyncio
from collections.abc import Callable

from .config import ResearchSettings, require_api_key
from .errors import ResearchError
from .events import ProgressCallback, ResearchStep, log_progress
from .languages import language_name
from .limiter import ConcurrencyLimiter
from .llm import AnthropicModel
from .models import Learning, RetryNode
from .modes import ResearchMode
from .orchestrator import DeepResearcher
from .report import append_references, collect_report, write_final_report
from .results import ReportResult, ResearchResult

__all__ = [
    "ConcurrencyLimiter",
    "DeepResearcher",
    "Learning",
    "ReportResult",
    "ResearchError",
    "ResearchMode",
    "ResearchResult",
    "ResearchSettings",
    "ResearchStep",
    "RetryNode",
    "run_research",
    "run_research_async",
    "write_report_async",
]


def _resolve_shape(mode: str, breadth: int | None, depth: int | None) -> tuple[int, int]:
    try:
        research_mode = ResearchMode.from_name(mode)
    except ValueError:
        raise ResearchError(
            f"Invalid mode: {mode!r}. Must be one of: deep, quick, standard"
        ) from None
    breadth = research_mode.breadth if breadth is None else breadth
    depth = research_mode.depth if depth is None else depth
    if breadth < 1:
        raise ResearchError(f"breadth must be >= 1, got {breadth}")
    if depth < 0:
        raise ResearchError(f"depth must be >= 0, got {depth}")
    return breadth, depth


def _build_researcher(settings: ResearchSettings) -> DeepResearcher:
    require_api_key("ANTHROPIC_API_KEY")
    llm = AnthropicModel(
        model=settings.model,
        max_tokens=settings.max_tokens,
        thinking_budget=settings.thinking_budget,
    )
    # One limiter per run bounds every model and search call in the tree
    limiter = ConcurrencyLimiter(settings.concurrency, settings.max_concurrency)
    return DeepResearcher(llm, limiter, settings=settings)


async def run_research_async(
    query: str,
    mode: str = "standard",
    breadth: int | None = None,
    depth: int | None = None,
    language_code: str = "en",
    search_language_code: str | None = None,
    on_progress: ProgressCallback | None = None,
    settings: ResearchSettings | None = None,
    retry_node: RetryNode | None = None,
) -> ResearchResult:
    """Run a research tree and return its deduplicated learnings.

    Args:
        query: The research question.
        mode: Preset for breadth and depth ("quick", "standard" or "deep").
        breadth: Override the mode's root breadth.
        depth: Override the mode's maximum depth.
        language_code: Locale code of the response language.
        search_language_code: Locale code for SERP queries, if different.
        on_progress: Called with every progress event; logs at debug level
            when omitted.
        settings: Runtime settings; read from the environment when omitted.
        retry_node: Re-run a single non-root node with its existing question.

    Returns:
        ResearchResult with the learnings also carried by the ``complete``
        event.

    Raises:
        ResearchError: If the query is empty, the mode or shape is invalid,
            or configuration is missing. Failures during research are
            reported through ``on_progress`` and never raise.
    """
    if not query or not query.strip():
        raise ResearchError("Query cannot be empty")

    breadth, depth = _resolve_shape(mode, breadth, depth)
    settings = settings or ResearchSettings.from_env()
    researcher = _build_researcher(settings)

    return await researcher.research(
        query,
        breadth=breadth,
        max_depth=depth,
        language_code=language_code,
        search_language_code=search_language_code,
        on_progress=on_progress or log_progress,
        retry_node=retry_node,
    )


def run_research(
    query: str,
    mode: str = "standard",
    breadth: int | None = None,
    depth: int | None = None,
    language_code: str = "en",
    search_language_code: str | None = None,
    on_progress: ProgressCallback | None = None,
    settings: ResearchSettings | None = None,
    retry_node: RetryNode | None = None,
) -> ResearchResult:
    """Synchronous version of run_research_async.

    Raises:
        ResearchError: Same as run_research_async, plus when called from a
            running event loop (use ``await run_research_async()`` there).
    """
    try:
        return asyncio.run(run_research_async(
            query, mode=mode, breadth=breadth, depth=depth,
            language_code=language_code, search_language_code=search_language_code,
            on_progress=on_progress, settings=settings, retry_node=retry_node,
        ))
    except RuntimeError as e:
        if "cannot be called from a running event loop" in str(e):
            raise ResearchError(
                "run_research() cannot be called from async context. "
                "Use 'await run_research_async()' instead."
            ) from e
        raise


async def write_report_async(
    query: str,
    mode: str = "standard",
    breadth: int | None = None,
    depth: int | None = None,
    language_code: str = "en",
    search_language_code: str | None = None,
    on_progress: ProgressCallback | None = None,
    on_report_text: Callable[[str], None] | None = None,
    settings: ResearchSettings | None = None,
) -> ReportResult:
    """Research a query, then write the final report from its learnings.

    ``on_report_text`` receives report text as it streams in.

    Raises:
        ResearchError: As run_research_async.
        ReportError: If the report call fails or returns nothing.
    """
    if not query or not query.strip():
        raise ResearchError("Query cannot be empty")

    breadth, depth = _resolve_shape(mode, breadth, depth)
    settings = settings or ResearchSettings.from_env()
    researcher = _build_researcher(settings)

    result = await researcher.research(
        query,
        breadth=breadth,
        max_depth=depth,
        language_code=language_code,
        search_language_code=search_language_code,
        on_progress=on_progress or log_progress,
    )

    learnings = list(result.learnings)

    async def _relay():
        async for text in write_final_report(
            researcher.llm,
            query,
            learnings,
            language=language_name(language_code),
            context_size=settings.context_size,
            limiter=researcher.limiter,
        ):
            if on_report_text is not None:
                on_report_text(text)
            yield text

    report = await collect_report(_relay())
    return ReportResult(
        query=query,
        learnings=result.learnings,
        report=append_references(report, learnings),
    )
