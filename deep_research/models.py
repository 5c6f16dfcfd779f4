"""Structured shapes exchanged with the language model.

Every shape the model is asked to produce comes in two variants: the
complete model (validated, required fields) and a partial model whose
fields are all optional. Partial models are what the stream parser sees
while JSON is still arriving; they are converted to complete models only
once a stream has settled.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _Shape(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# --- Search queries ---


class SearchQuery(_Shape):
    query: str = Field(min_length=1)
    research_goal: str = Field(default="", alias="researchGoal")


class SearchQueries(_Shape):
    queries: list[SearchQuery]


class PartialSearchQuery(_Shape):
    query: str | None = None
    research_goal: str | None = Field(default=None, alias="researchGoal")


class PartialSearchQueries(_Shape):
    queries: list[PartialSearchQuery] | None = None


# --- Processed search results ---


class Learning(_Shape):
    url: str = Field(min_length=1)
    learning: str = Field(min_length=1)
    # Filled from search result metadata, never by the model
    title: str | None = None


class ProcessedSearchResult(_Shape):
    learnings: list[Learning] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list, alias="followUpQuestions")

    @classmethod
    def from_partial(cls, partial: "PartialProcessedSearchResult | None") -> "ProcessedSearchResult":
        """Keep every entry of a partial result that is already complete.

        A stream that stopped early (error, bad end, truncated output) can
        leave the last learning half written. Entries that do not validate
        are dropped instead of failing the whole result.
        """
        if partial is None:
            return cls()
        learnings = []
        for item in partial.learnings or []:
            try:
                learnings.append(Learning.model_validate(item.model_dump(exclude_none=True)))
            except ValidationError:
                continue
        questions = [q for q in partial.follow_up_questions or [] if q and q.strip()]
        return cls(learnings=learnings, follow_up_questions=questions)


class PartialLearning(_Shape):
    url: str | None = None
    learning: str | None = None
    title: str | None = None


class PartialProcessedSearchResult(_Shape):
    learnings: list[PartialLearning] | None = None
    follow_up_questions: list[str] | None = Field(default=None, alias="followUpQuestions")


# --- Clarifying feedback ---


class Feedback(_Shape):
    questions: list[str]


class PartialFeedback(_Shape):
    questions: list[str] | None = None


PARTIAL_SHAPES: dict[type[BaseModel], type[BaseModel]] = {
    SearchQueries: PartialSearchQueries,
    ProcessedSearchResult: PartialProcessedSearchResult,
    Feedback: PartialFeedback,
}


def partial_shape_for(schema: type[BaseModel]) -> type[BaseModel]:
    """Return the all-optional variant of a complete shape."""
    try:
        return PARTIAL_SHAPES[schema]
    except KeyError:
        raise ValueError(f"No partial shape registered for {schema.__name__}") from None


@dataclass(frozen=True)
class RetryNode:
    """A node the caller wants re-run with its existing question.

    ``label`` is the node's query text and ``research_goal`` its rationale,
    both as they were reported in the node's ``generated_query`` event.
    """
    id: str
    label: str
    research_goal: str = ""
