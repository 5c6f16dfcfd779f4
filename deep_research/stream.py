"""Incremental parsing of streamed model output into structured values.

A model call produces a sequence of fragments (text deltas, reasoning
deltas, whole-object snapshots, or a terminal failure). ``parse_streaming_json``
folds that sequence into a cumulative best-effort value and reports it as
soon as the caller's acceptance predicate holds, so callers can act on a
usable prefix (one query, one learning) without waiting for the full value.
"""

import logging
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, TypeVar, Union

from pydantic import BaseModel, ValidationError
from pydantic_core import from_json

from .models import partial_shape_for

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)


# --- Upstream fragments ---


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class ObjectSnapshot:
    """A provider-side parse of the structured value so far."""
    value: dict[str, Any]


@dataclass(frozen=True)
class StreamFailure:
    message: str


Fragment = Union[TextDelta, ReasoningDelta, ObjectSnapshot, StreamFailure]


# --- Parsed chunks ---


@dataclass(frozen=True)
class ReasoningChunk:
    delta: str


@dataclass(frozen=True)
class ObjectChunk:
    """Cumulative parse of everything received so far; later chunks supersede it."""
    value: BaseModel


@dataclass(frozen=True)
class ErrorChunk:
    message: str


@dataclass(frozen=True)
class BadEndChunk:
    raw_text: str


StreamChunk = Union[ReasoningChunk, ObjectChunk, ErrorChunk, BadEndChunk]


_FENCE_START = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
_FENCE_END = re.compile(r"\s*```")


def strip_json_markdown(text: str) -> str:
    """Cut the JSON document out of model output that may carry prose.

    A Markdown code fence opened before the first ``{`` wins; the document
    is what follows it, up to the closing fence if that has arrived.
    Otherwise parsing starts at the first ``{``.
    """
    brace = text.find("{")
    fence = _FENCE_START.search(text)
    if fence and (brace < 0 or fence.start() < brace):
        body = text[fence.end():]
        end = _FENCE_END.search(body)
        return body[:end.start()] if end else body.rstrip("`")
    if brace > 0:
        return text[brace:]
    return text


def parse_partial_json(text: str) -> Any:
    """Parse a possibly truncated JSON document.

    Unterminated strings, arrays and objects at the end are closed; a
    trailing string keeps the characters received so far.

    Raises:
        ValueError: If the text is not a JSON prefix at all.
    """
    text = strip_json_markdown(text)
    if not text.strip():
        raise ValueError("empty JSON text")
    return from_json(text, allow_partial="trailing-strings")


def _validate_partial(shape: type[S], value: Any) -> S | None:
    if not isinstance(value, dict):
        return None
    try:
        return shape.model_validate(value)
    except ValidationError:
        return None


async def parse_streaming_json(
    fragments: AsyncIterator[Fragment],
    schema: type[BaseModel],
    is_valid: Callable[[Any], bool],
) -> AsyncIterator[StreamChunk]:
    """
    Turn a fragment stream into reasoning, object, error and bad-end chunks.

    Args:
        fragments: Fragments of one model call, in arrival order
        schema: The complete shape the model was asked for
        is_valid: Early-acceptance predicate over the partial value; an
            ObjectChunk is only yielded once it returns True

    Yields:
        ReasoningChunk for each reasoning delta, ObjectChunk with the
        cumulative partial value, ErrorChunk on a stream failure, and a
        final BadEndChunk if the output never parsed into an acceptable
        value.
    """
    shape = partial_shape_for(schema)
    raw_text = ""
    parsed_ok = False
    accepted = False

    try:
        async for fragment in fragments:
            if isinstance(fragment, ReasoningDelta):
                yield ReasoningChunk(delta=fragment.text)
                continue

            if isinstance(fragment, StreamFailure):
                yield ErrorChunk(message=fragment.message)
                continue

            if isinstance(fragment, ObjectSnapshot):
                value = fragment.value
            elif isinstance(fragment, TextDelta):
                raw_text += fragment.text
                try:
                    value = parse_partial_json(raw_text)
                except ValueError:
                    parsed_ok = False
                    continue
            else:
                logger.debug("Ignoring unknown stream fragment: %r", fragment)
                continue

            partial = _validate_partial(shape, value)
            parsed_ok = partial is not None
            if partial is None:
                logger.debug("Partial value does not match %s yet", schema.__name__)
                continue
            if is_valid(partial):
                accepted = True
                yield ObjectChunk(value=partial)
    finally:
        # Consumers stop early on errors; close the upstream call with us
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()

    if not parsed_ok or not accepted:
        logger.debug("Stream ended without an acceptable %s: %r", schema.__name__, raw_text[-200:])
        yield BadEndChunk(raw_text=raw_text)
