#!/usr/bin/env python3
"""CLI for deep research."""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from deep_research import write_report_async
from deep_research.config import ResearchSettings, require_api_key
from deep_research.errors import ResearchError
from deep_research.events import (
    Complete,
    GeneratedQuery,
    NodeComplete,
    ResearchFailed,
    ResearchStep,
    SearchComplete,
)
from deep_research.feedback import collect_feedback, generate_feedback
from deep_research.languages import language_name
from deep_research.llm import AnthropicModel
from deep_research.modes import ResearchMode

logger = logging.getLogger("deep_research.cli")


def print_progress(step: ResearchStep) -> None:
    """Log the events a terminal user cares about; the rest stay at debug."""
    if isinstance(step, GeneratedQuery):
        logger.info("[%s] query: %s", step.node_id, step.query)
    elif isinstance(step, SearchComplete):
        logger.info("[%s] %d search results", step.node_id, len(step.results))
    elif isinstance(step, NodeComplete) and step.result is not None:
        logger.info(
            "[%s] %d learnings, %d follow-up questions",
            step.node_id, len(step.result.learnings), len(step.result.follow_up_questions),
        )
    elif isinstance(step, ResearchFailed):
        logger.warning("[%s] error: %s", step.node_id, step.message)
    elif isinstance(step, Complete):
        logger.info("Research complete: %d unique learnings", len(step.learnings))
    else:
        logger.debug("[%s] %s", getattr(step, "node_id", "-"), step.type)


def combine_query(query: str, answers: list[tuple[str, str]]) -> str:
    """Fold clarifying questions and the user's answers into the research query."""
    if not answers:
        return query
    qa = "\n".join(f"Q: {q}\nA: {a}" for q, a in answers)
    return f"Initial Query: {query}\nFollow-up Questions and Answers:\n{qa}"


def ask_feedback(query: str, language_code: str, settings: ResearchSettings, num_questions: int) -> str:
    """Ask clarifying questions on the terminal and return the refined query."""
    llm = AnthropicModel(model=settings.model, max_tokens=settings.max_tokens)
    chunks = generate_feedback(
        llm, query, language=language_name(language_code), num_questions=num_questions,
    )
    questions = asyncio.run(collect_feedback(chunks, max_questions=num_questions))
    if not questions:
        logger.info("No clarifying questions; researching the query as given")
        return query

    answers = []
    for question in questions:
        answer = input(f"\n{question}\n> ").strip()
        answers.append((question, answer))
    return combine_query(query, answers)


def main() -> None:
    # Load environment variables from .env file
    load_dotenv()

    _quick = ResearchMode.quick()
    _standard = ResearchMode.standard()
    _deep = ResearchMode.deep()

    parser = argparse.ArgumentParser(
        description="Recursive web research that ends in a cited markdown report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Research Modes:
  --quick     breadth {_quick.breadth}, depth {_quick.depth}
  --standard  breadth {_standard.breadth}, depth {_standard.depth} [default]
  --deep      breadth {_deep.breadth}, depth {_deep.depth}

Examples:
  python main.py "State of solid-state batteries in 2025"
  python main.py "Open-source vector databases" --quick
  python main.py "History of the RISC-V ISA" --deep -o riscv.md
  python main.py "电动汽车电池回收" --lang zh --search-lang en
        """,
    )
    parser.add_argument("query", help="The research query")

    # Mode flags (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--quick", action="store_true", help="Quick mode")
    mode_group.add_argument("--standard", action="store_true", help="Standard mode [default]")
    mode_group.add_argument("--deep", action="store_true", help="Deep mode")

    parser.add_argument("--breadth", "-b", type=int, default=None, help="Override root breadth")
    parser.add_argument("--depth", "-d", type=int, default=None, help="Override maximum depth")
    parser.add_argument("--lang", default="en", help="Response language code (default: en)")
    parser.add_argument("--search-lang", default=None, help="Language code for search queries")
    parser.add_argument(
        "--concurrency", "-c", type=int, default=None,
        help="Concurrent model/search calls (default: DEEP_RESEARCH_CONCURRENCY or 2)",
    )
    parser.add_argument(
        "--feedback", type=int, nargs="?", const=3, default=0, metavar="N",
        help="Ask up to N clarifying questions before researching (default N: 3)",
    )
    parser.add_argument(
        "--output", "-o", type=Path,
        help="Write the report to this file as well as stdout",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    # Configure logging (after parsing so --verbose is available)
    handler = logging.StreamHandler(sys.stderr)
    if args.verbose:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
        logging.getLogger("deep_research").setLevel(logging.DEBUG)
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger("deep_research").setLevel(logging.INFO)
    logging.getLogger("deep_research").addHandler(handler)

    if args.quick:
        mode = _quick
    elif args.deep:
        mode = _deep
    else:
        mode = _standard

    try:
        settings = ResearchSettings.from_env()
        if args.concurrency is not None:
            max_concurrency = settings.max_concurrency
            if max_concurrency is not None and max_concurrency < args.concurrency:
                max_concurrency = args.concurrency
            settings = replace(settings, concurrency=args.concurrency, max_concurrency=max_concurrency)
        require_api_key("ANTHROPIC_API_KEY")

        query = args.query
        if args.feedback:
            query = ask_feedback(query, args.lang, settings, args.feedback)

        result = asyncio.run(write_report_async(
            query,
            mode=mode.name,
            breadth=args.breadth,
            depth=args.depth,
            language_code=args.lang,
            search_language_code=args.search_lang,
            on_progress=print_progress,
            on_report_text=lambda text: print(text, end="", flush=True),
            settings=settings,
        ))
        print()  # Newline after streaming

        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(result.report, encoding="utf-8")
            print(f"\n\nReport saved to: {args.output}")

    except ValueError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(2)
    except ResearchError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except OSError as e:
        # Handle file system errors (disk full, permissions, etc.)
        print(f"\nFile error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
