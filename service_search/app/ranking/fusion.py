"""Result fusion for hybrid search."""

from dataclasses import replace
from typing import Dict, Hashable, List, Sequence

import structlog

from ..models import MatchType, SearchResult

logger = structlog.get_logger("search_fusion")


class WeightedScoreFusion:
    """Weighted linear fusion of semantic scores and keyword relevance.

    - In both lists: ``semantic * semantic_weight + keyword/100 * keyword_weight``,
      typed ``hybrid``
    - Semantic only: ``semantic * semantic_weight``, type kept
    - Keyword only: ``keyword/100 * keyword_weight``, typed ``keyword``, with
      ``keyword/100`` reported as its semantic score

    Weights are used as given; they need not sum to 1.
    """

    def __init__(self, semantic_weight: float = 0.7, keyword_weight: float = 0.3):
        self.semantic_weight = semantic_weight
        self.keyword_weight = keyword_weight

    @staticmethod
    def key(result: SearchResult) -> Hashable:
        """Identity of a result's record across result lists."""
        return result.record.identity()

    def fuse_results(
        self,
        semantic_results: Sequence[SearchResult],
        keyword_results: Sequence[SearchResult],
        max_results: int = 10
    ) -> List[SearchResult]:
        """Merge both result lists and rank by fused score.

        When one list holds several results with the same key, the first
        (best ranked) one is used.
        """
        fused: Dict[Hashable, SearchResult] = {}

        for result in semantic_results:
            key = self.key(result)
            if key in fused:
                continue
            fused[key] = replace(
                result,
                score=result.score * self.semantic_weight,
                semantic_score=result.score,
            )

        merged_keys = set()
        for result in keyword_results:
            key = self.key(result)
            if key in merged_keys:
                continue
            merged_keys.add(key)

            relevance = result.keyword_relevance if result.keyword_relevance is not None else result.relevance
            keyword_part = relevance / 100 * self.keyword_weight

            existing = fused.get(key)
            if existing is not None:
                fused[key] = replace(
                    existing,
                    score=existing.score + keyword_part,
                    match_type=MatchType.HYBRID,
                    keyword_relevance=relevance,
                )
            else:
                fused[key] = replace(
                    result,
                    score=keyword_part,
                    match_type=MatchType.KEYWORD,
                    semantic_score=relevance / 100,
                    keyword_relevance=relevance,
                )

        ranked = sorted(fused.values(), key=lambda r: r.score, reverse=True)

        logger.info(
            "Weighted score fusion completed",
            semantic_count=len(semantic_results),
            keyword_count=len(keyword_results),
            fused_count=len(ranked),
            semantic_weight=self.semantic_weight,
            keyword_weight=self.keyword_weight
        )

        return ranked[:max_results]
