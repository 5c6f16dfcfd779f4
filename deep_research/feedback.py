"""Clarifying questions asked before research starts."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import aclosing

from .llm import LanguageModel
from .models import Feedback, PartialFeedback
from .prompts import feedback_prompt, system_prompt
from .stream import BadEndChunk, ErrorChunk, ObjectChunk, StreamChunk, parse_streaming_json

logger = logging.getLogger(__name__)


def has_questions(value: PartialFeedback) -> bool:
    return bool(value.questions)


def generate_feedback(
    llm: LanguageModel,
    query: str,
    *,
    language: str,
    num_questions: int = 3,
) -> AsyncIterator[StreamChunk]:
    """
    Ask the model for questions that would sharpen the research direction.

    Returns:
        Parsed stream chunks over the Feedback shape
    """
    prompt = feedback_prompt(query, num_questions=num_questions, schema=Feedback, language=language)
    fragments = llm.stream(system_prompt(), prompt, operation="generate_feedback")
    return parse_streaming_json(fragments, Feedback, has_questions)


async def collect_feedback(chunks: AsyncGenerator[StreamChunk, None], max_questions: int | None = None) -> list[str]:
    """Drain a feedback stream and return the final non-empty questions.

    A failed or malformed stream is logged and yields whatever questions
    had arrived; clarification is optional so it never fails the run.
    """
    latest: PartialFeedback | None = None
    async with aclosing(chunks) as stream:
        async for chunk in stream:
            if isinstance(chunk, ObjectChunk):
                latest = chunk.value
            elif isinstance(chunk, ErrorChunk):
                logger.warning("Feedback generation failed: %s", chunk.message)
                break
            elif isinstance(chunk, BadEndChunk):
                logger.warning("Feedback generation returned invalid structured output")
                break

    questions = [q.strip() for q in (latest.questions or []) if q and q.strip()] if latest else []
    if max_questions is not None:
        questions = questions[:max_questions]
    return questions
