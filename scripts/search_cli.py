#!/usr/bin/env python3
"""Script to run a one-shot search over the standards books."""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from libs.common.config import SearchConfig
from libs.common.logging import configure_logging
from libs.content_store.factory import create_content_store_from_env
from service_search.app.encoders.embedding_manager import EmbeddingManager
from service_search.app.encoders.models import SentenceTransformerModel
from service_search.app.hybrid.search_manager import SearchManager
from service_search.app.models import SearchMode, SearchOutcome

logger = structlog.get_logger("search_cli")


async def run_search(
    query: str,
    mode: str = SearchMode.KEYWORD.value,
    config: Optional[SearchConfig] = None,
    manager: Optional[SearchManager] = None
) -> Optional[SearchOutcome]:
    """Load the books, wait for the model if a model mode is asked, search once."""
    if not config:
        config = SearchConfig()

    if manager is None:
        provider = EmbeddingManager(
            SentenceTransformerModel(config.search_embedding_model, device=config.search_embedding_device)
        )
        manager = SearchManager(config, create_content_store_from_env(config), provider)

    try:
        needs_model = mode != SearchMode.KEYWORD.value
        await manager.initialize(load_model=needs_model)
        if needs_model:
            await manager.start_model_loading()

        return await manager.search(query, mode)

    except Exception as e:
        logger.error("Search failed", query=query, mode=mode, error=str(e))
        return None

    finally:
        await manager.cleanup()


def format_outcome(outcome: SearchOutcome) -> str:
    """Render results one per line, best first."""
    lines = [f"mode={outcome.mode} results={len(outcome.results)}"]
    for rank, result in enumerate(outcome.results, start=1):
        labels = " > ".join(label for label in (result.topic, result.subtopic, result.subsubtopic) if label)
        lines.append(
            f"{rank:2d}. [{result.source_key}] {labels} "
            f"({result.match_type.value}, {result.relevance:.1f}%)"
        )
        lines.append(f"    {result.matched_segment[:160]}")
    return "\n".join(lines)


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Search the project management standards")
    parser.add_argument("query", help="Search query")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in SearchMode],
        default=SearchMode.KEYWORD.value,
        help="Search mode"
    )
    parser.add_argument("--books", help="Comma separated book keys (default: all)")
    parser.add_argument("--data-dir", help="Directory holding the flattened books")
    parser.add_argument("--log-level", default="WARNING", help="Log level")

    args = parser.parse_args()

    # Configure logging
    configure_logging("search_cli", args.log_level, "console")

    # Load configuration
    overrides = {}
    if args.books:
        overrides["search_book_keys"] = args.books
    if args.data_dir:
        overrides["search_content_backend"] = "file"
        overrides["search_content_dir"] = args.data_dir
    config = SearchConfig(**overrides)

    outcome = asyncio.run(run_search(args.query, args.mode, config))

    if outcome is None:
        print(f"Search failed for {args.query!r}")
        sys.exit(1)

    print(format_outcome(outcome))
    sys.exit(0)


if __name__ == "__main__":
    main()
