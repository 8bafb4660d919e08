"""Lexical and structural scoring.

Keyword search needs no model: it scores a record by phrase containment,
query-word overlap, and matches against its topic hierarchy labels. It is
always available, which makes it the fallback for every other mode.
"""

from typing import List, Mapping, Optional, Sequence

import structlog

from libs.content_store import Record
from ..models import KeywordOptions, MatchType, SearchResult

logger = structlog.get_logger("search_service.keyword")

TOPIC_WEIGHT = 0.8
SUBTOPIC_WEIGHT = 0.6
SUBSUBTOPIC_WEIGHT = 0.4

PHRASE_WEIGHT = 0.8
WORD_OVERLAP_WEIGHT = 0.6
MIN_QUERY_WORD_LENGTH = 3
CONTEXT_WINDOW = 100

BASIC_SEARCH_MAX_STRUCTURAL_FOR_CONTENT = 5
BASIC_LEVEL_SCORES = {"topic": 1.0, "subtopic": 0.9, "subsubtopic": 0.8}
BASIC_CONTENT_SCORE = 0.5


def _contains(label: Optional[str], query_lower: str) -> bool:
    return bool(label) and query_lower in label.lower()


def structural_score(record: Record, query_lower: str) -> float:
    """Score hierarchy-label matches, capped at 1.0.

    Topic, subtopic and sub-subtopic matches add 0.8, 0.6 and 0.4.
    """
    score = 0.0
    if _contains(record.topic, query_lower):
        score += TOPIC_WEIGHT
    if _contains(record.subtopic, query_lower):
        score += SUBTOPIC_WEIGHT
    if _contains(record.subsubtopic, query_lower):
        score += SUBSUBTOPIC_WEIGHT
    return min(score, 1.0)


def keyword_score(record: Record, query_lower: str) -> float:
    """Additive lexical score of ``record`` for an already lower-cased query.

    Sum of: 0.8 for a full phrase match in the content, 0.6 times the share
    of query words (longer than two characters) found inside any content
    word, and the structural score.
    """
    content_lower = (record.content or "").lower()
    score = 0.0

    if query_lower in content_lower:
        score += PHRASE_WEIGHT

    query_words = [w for w in query_lower.split() if len(w) >= MIN_QUERY_WORD_LENGTH]
    if query_words:
        content_words = content_lower.split()
        matched = sum(1 for qw in query_words if any(qw in cw for cw in content_words))
        score += (matched / len(query_words)) * WORD_OVERLAP_WEIGHT

    score += structural_score(record, query_lower)
    return score


def extract_context(content: str, query_lower: str, window: int = CONTEXT_WINDOW) -> str:
    """Excerpt ``window`` characters around the first phrase match.

    Falls back to the full content when the phrase does not occur.
    """
    index = content.lower().find(query_lower)
    if index == -1:
        return content
    start = max(0, index - window)
    end = min(len(content), index + len(query_lower) + window)
    return content[start:end]


def keyword_search(
    records: Sequence[Record],
    query: str,
    options: Optional[KeywordOptions] = None
) -> List[SearchResult]:
    """Rank ``records`` by keyword score.

    Returns at most ``options.max_results`` results scoring at least
    ``options.threshold``, best first. Ties keep input order.
    """
    options = options or KeywordOptions()
    query_lower = (query or "").strip().lower()
    if not query_lower:
        return []

    results = []
    for record in records:
        if not record.content:
            continue

        score = keyword_score(record, query_lower)
        if score < options.threshold:
            continue

        results.append(SearchResult(
            record=record,
            score=score,
            matched_segment=extract_context(record.content, query_lower),
            match_type=MatchType.KEYWORD,
            keyword_relevance=score * 100,
        ))

    results.sort(key=lambda r: r.score, reverse=True)
    return results[:options.max_results]


def _match_level(record: Record, query_lower: str) -> Optional[str]:
    if _contains(record.topic, query_lower):
        return "topic"
    if _contains(record.subtopic, query_lower):
        return "subtopic"
    if _contains(record.subsubtopic, query_lower):
        return "subsubtopic"
    return None


def basic_search(
    records_by_source: Mapping[str, Sequence[Record]],
    query: str,
    max_results: int = 15
) -> List[SearchResult]:
    """Plain substring scan used when a richer search fails.

    Label matches score 1.0, 0.9 or 0.8 by hierarchy level. Content matches
    score 0.5 and are only collected for sources with fewer than five label
    matches.
    """
    query_lower = (query or "").strip().lower()
    if not query_lower:
        return []

    results = []
    for source_key, records in records_by_source.items():
        structural_matches = []
        for record in records:
            level = _match_level(record, query_lower)
            if level is None:
                continue
            structural_matches.append(record)
            results.append(SearchResult(
                record=record,
                score=BASIC_LEVEL_SCORES[level],
                matched_segment=record.content,
                match_type=MatchType.STRUCTURAL,
            ))

        if len(structural_matches) >= BASIC_SEARCH_MAX_STRUCTURAL_FOR_CONTENT:
            continue

        for record in records:
            if not record.content or record in structural_matches:
                continue
            if query_lower not in record.content.lower():
                continue
            results.append(SearchResult(
                record=record,
                score=BASIC_CONTENT_SCORE,
                matched_segment=extract_context(record.content, query_lower),
                match_type=MatchType.KEYWORD,
                keyword_relevance=BASIC_CONTENT_SCORE * 100,
            ))

    results.sort(key=lambda r: r.score, reverse=True)
    logger.info("Basic search completed", query=query[:50], results_count=len(results[:max_results]))
    return results[:max_results]
