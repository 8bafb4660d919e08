"""Hybrid search: semantic and keyword retrieval fused into one ranking."""

from typing import List, Optional, Sequence

import structlog

from libs.content_store import Record
from ..encoders.embedding_manager import EmbeddingManager
from ..errors import ModelLoadError
from ..models import HybridOptions, SearchResult
from ..ranking.fusion import WeightedScoreFusion
from ..retrievers.keyword import keyword_search
from ..retrievers.semantic import MIN_QUERY_LENGTH, rank_by_similarity

logger = structlog.get_logger("search_service.hybrid")


async def hybrid_search(
    provider: EmbeddingManager,
    records: Sequence[Record],
    query: str,
    options: Optional[HybridOptions] = None
) -> List[SearchResult]:
    """Run semantic and keyword search over ``records`` and fuse the results.

    Both searches use the same threshold and limit. If the embedding model
    is unavailable the keyword results are returned as they are, so callers
    get exactly what ``keyword_search`` would give them.
    """
    options = options or HybridOptions()
    keyword_options = options.keyword_options()

    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        return []

    try:
        semantic_results = await rank_by_similarity(
            provider, records, query.strip(), options.semantic_options()
        )
    except ModelLoadError as e:
        logger.warning("Embedding model unavailable, using keyword search", error=str(e))
        return keyword_search(records, query, keyword_options)

    keyword_results = keyword_search(records, query, keyword_options)

    fusion = WeightedScoreFusion(
        semantic_weight=options.semantic_weight,
        keyword_weight=options.keyword_weight
    )
    results = fusion.fuse_results(semantic_results, keyword_results, max_results=options.max_results)

    logger.info(
        "Hybrid search completed",
        query=query[:50],
        semantic_count=len(semantic_results),
        keyword_count=len(keyword_results),
        results_count=len(results)
    )
    return results
