"""Structured result types for the deep research public API."""

from dataclasses import dataclass

from .models import Learning


@dataclass(frozen=True)
class ResearchResult:
    """Deduplicated learnings gathered by one node and everything below it."""
    learnings: tuple[Learning, ...] = ()

    @property
    def urls(self) -> list[str]:
        return [learning.url for learning in self.learnings]


@dataclass(frozen=True)
class ReportResult:
    """Result from a full research run followed by the final report.

    Attributes:
        query: The original query string.
        learnings: Deduplicated learnings the report was written from.
        report: The markdown report, including the numbered source list.
    """
    query: str
    learnings: tuple[Learning, ...]
    report: str
