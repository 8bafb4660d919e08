"""Embedding-based retrieval over record segments.

Each record is split into segments; the record's semantic score is the best
cosine similarity between the query embedding and any of its segments.
Hierarchy-label matches can set a score floor before similarity is computed.
"""

import asyncio
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from libs.content_store import Record
from ..encoders.embedding_manager import EmbeddingManager
from ..errors import EmbeddingError, ModelLoadError
from ..models import KeywordOptions, MatchType, SearchResult, SemanticOptions
from .keyword import keyword_search, structural_score
from .segmenter import segment_text

logger = structlog.get_logger("search_service.semantic")

MIN_QUERY_LENGTH = 2
MIN_CONTENT_LENGTH = 20
STRUCTURAL_BASE = 0.7
STRUCTURAL_SCALE = 0.25
STRUCTURAL_CEILING = 0.95
STRUCTURAL_EXCERPT_LENGTH = 300


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between ``a`` and ``b``, clipped to [-1, 1].

    Returns 0.0 if either vector has zero magnitude.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denominator, -1.0, 1.0))


def structural_floor(score: float) -> float:
    """Minimum semantic score granted to a record with label matches."""
    return min(STRUCTURAL_CEILING, STRUCTURAL_BASE + score * STRUCTURAL_SCALE)


async def best_matching_segment(
    provider: EmbeddingManager,
    query_embedding: np.ndarray,
    segments: Sequence[str]
) -> Tuple[float, Optional[str]]:
    """Return the highest similarity among ``segments`` and its segment.

    Segments are embedded concurrently; the reduction walks them in order so
    ties always resolve to the earliest segment. Segments that fail to embed
    are skipped.

    Raises
    - ``ModelLoadError`` if the model is unavailable
    """
    embeddings = await asyncio.gather(
        *(provider.embed(segment) for segment in segments),
        return_exceptions=True
    )

    best_similarity = -math.inf
    best_segment: Optional[str] = None
    for segment, embedding in zip(segments, embeddings):
        if isinstance(embedding, ModelLoadError):
            raise embedding
        if isinstance(embedding, EmbeddingError):
            logger.warning("Skipping segment that failed to embed", segment=segment[:50], error=str(embedding))
            continue
        if isinstance(embedding, BaseException):
            raise embedding
        if embedding is None:
            continue

        similarity = cosine_similarity(query_embedding, embedding)
        if similarity > best_similarity:
            best_similarity = similarity
            best_segment = segment

    return best_similarity, best_segment


async def _score_record(
    provider: EmbeddingManager,
    record: Record,
    query_embedding: np.ndarray,
    query_lower: str,
    options: SemanticOptions
) -> Optional[SearchResult]:
    content = record.content
    best_score = 0.0
    best_segment = ""
    match_type = MatchType.SEMANTIC

    if options.include_structural_search:
        label_score = structural_score(record, query_lower)
        if label_score > 0:
            best_score = structural_floor(label_score)
            best_segment = content[:STRUCTURAL_EXCERPT_LENGTH]
            match_type = MatchType.STRUCTURAL

    segments = segment_text(content, options.segment_length)
    similarity, segment = await best_matching_segment(provider, query_embedding, segments)
    if segment is not None and similarity > best_score:
        best_score = similarity
        best_segment = segment
        match_type = MatchType.SEMANTIC

    if best_score < options.threshold:
        return None

    return SearchResult(
        record=record,
        score=best_score,
        matched_segment=best_segment,
        match_type=match_type,
        semantic_score=best_score,
    )


async def rank_by_similarity(
    provider: EmbeddingManager,
    records: Sequence[Record],
    query: str,
    options: SemanticOptions
) -> List[SearchResult]:
    """Semantic ranking without the keyword fallback; ``ModelLoadError`` propagates."""
    try:
        query_embedding = await provider.embed(query)
    except EmbeddingError as e:
        logger.warning("Query embedding failed", query=query[:50], error=str(e))
        return []

    if query_embedding is None:
        return []

    query_lower = query.lower()
    results = []
    for record in records:
        if not record.content or len(record.content.strip()) < MIN_CONTENT_LENGTH:
            continue

        try:
            result = await _score_record(provider, record, query_embedding, query_lower, options)
        except ModelLoadError:
            raise
        except Exception as e:
            logger.warning(
                "Skipping record that failed to score",
                source=record.source_key,
                topic=record.topic,
                error=str(e)
            )
            continue

        if result is not None:
            results.append(result)

    results.sort(key=lambda r: r.score, reverse=True)
    return results[:options.max_results]


async def semantic_search(
    provider: EmbeddingManager,
    records: Sequence[Record],
    query: str,
    options: Optional[SemanticOptions] = None
) -> List[SearchResult]:
    """Rank ``records`` by similarity to ``query``.

    The query is embedded once and reused for every record. Results scoring
    at least ``options.threshold`` are returned best first, ties in input
    order. If the embedding model is unavailable the call degrades to
    ``keyword_search`` with the same threshold and limit instead of raising.
    """
    options = options or SemanticOptions()
    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        return []

    try:
        results = await rank_by_similarity(provider, records, query.strip(), options)
    except ModelLoadError as e:
        logger.warning("Embedding model unavailable, using keyword search", error=str(e))
        return keyword_search(
            records,
            query,
            KeywordOptions(threshold=options.threshold, max_results=options.max_results)
        )

    logger.info("Semantic search completed", query=query[:50], results_count=len(results))
    return results
