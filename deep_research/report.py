"""Final report writing from the aggregated learnings."""

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

from .errors import ReportError
from .limiter import ConcurrencyLimiter
from .llm import LanguageModel
from .models import Learning
from .prompts import final_report_prompt, sanitize_content, system_prompt
from .stream import ReasoningDelta, StreamFailure, TextDelta
from .token_budget import trim_prompt

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_SIZE = 128_000


def render_learnings(learnings: list[Learning]) -> str:
    """Render learnings as a numbered block the report cites by index (1-based)."""
    return "\n".join(
        f'<learning index="{i}" url="{sanitize_content(item.url)}">\n'
        f"{sanitize_content(item.learning)}\n</learning>"
        for i, item in enumerate(learnings, start=1)
    )


async def write_final_report(
    llm: LanguageModel,
    prompt: str,
    learnings: list[Learning],
    *,
    language: str,
    context_size: int = DEFAULT_CONTEXT_SIZE,
    limiter: ConcurrencyLimiter | None = None,
) -> AsyncIterator[str]:
    """
    Stream a long-form Markdown report written from the research learnings.

    Args:
        llm: Model to stream from
        prompt: The user's original query
        learnings: Deduplicated learnings from the research tree
        language: Display name of the response language
        context_size: Token budget for the learnings block
        limiter: Optional shared limiter to run the call under

    Yields:
        Text deltas of the report body

    Raises:
        ReportError: If the model call fails mid-stream
    """
    learnings_block = trim_prompt(render_learnings(learnings), context_size)
    report_prompt = final_report_prompt(prompt, learnings_block, language=language)

    async with AsyncExitStack() as stack:
        if limiter is not None:
            await stack.enter_async_context(limiter.slot())
        async for fragment in llm.stream(system_prompt(), report_prompt, operation="write_final_report"):
            if isinstance(fragment, TextDelta):
                yield fragment.text
            elif isinstance(fragment, ReasoningDelta):
                logger.debug("Report reasoning: %s", fragment.text)
            elif isinstance(fragment, StreamFailure):
                raise ReportError(f"Report generation failed: {fragment.message}")


async def collect_report(chunks: AsyncIterator[str]) -> str:
    """Drain a report stream into one string.

    Raises:
        ReportError: If the stream fails or produces no text.
    """
    parts: list[str] = []
    async for text in chunks:
        parts.append(text)
    report = "".join(parts).strip()
    if not report:
        raise ReportError("Model returned empty report")
    return report


def append_references(report: str, learnings: list[Learning]) -> str:
    """Append the numbered source list matching the report's citation indexes."""
    if not learnings:
        return report
    lines = []
    for i, item in enumerate(learnings, start=1):
        label = item.title or item.url
        lines.append(f"{i}. [{label}]({item.url})")
    return f"{report}\n\n## Sources\n\n" + "\n".join(lines)
