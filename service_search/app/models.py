"""Result and option types shared by the search components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from libs.content_store import Record


class MatchType(str, Enum):
    """Which signal produced a result's score."""
    STRUCTURAL = "structural"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class SearchMode(str, Enum):
    """Search modes the orchestrator can route to."""
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class SearchResult:
    """A record enriched with its scoring metadata.

    ``score`` is on a 0-1 scale (keyword scores can exceed 1 since their
    signals are additive); ``relevance`` is the same value scaled to 0-100 for
    display.
    """
    record: Record
    score: float
    matched_segment: str
    match_type: MatchType
    semantic_score: Optional[float] = None
    keyword_relevance: Optional[float] = None

    @property
    def relevance(self) -> float:
        return self.score * 100

    @property
    def source_key(self) -> Optional[str]:
        return self.record.source_key

    @property
    def topic(self) -> str:
        return self.record.topic

    @property
    def subtopic(self) -> Optional[str]:
        return self.record.subtopic

    @property
    def subsubtopic(self) -> Optional[str]:
        return self.record.subsubtopic

    @property
    def content(self) -> str:
        return self.record.content


@dataclass(frozen=True)
class KeywordOptions:
    threshold: float = 0.2
    max_results: int = 10


@dataclass(frozen=True)
class SemanticOptions:
    threshold: float = 0.3
    max_results: int = 10
    segment_length: int = 500
    include_structural_search: bool = True


@dataclass(frozen=True)
class HybridOptions:
    """Options for hybrid search.

    ``threshold``, ``max_results`` and ``segment_length`` are passed to both
    sub-searches. Weights are applied as given and need not sum to 1.
    """
    threshold: float = 0.25
    max_results: int = 10
    segment_length: int = 500
    include_structural_search: bool = True
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3

    def semantic_options(self) -> SemanticOptions:
        return SemanticOptions(
            threshold=self.threshold,
            max_results=self.max_results,
            segment_length=self.segment_length,
            include_structural_search=self.include_structural_search,
        )

    def keyword_options(self) -> KeywordOptions:
        return KeywordOptions(threshold=self.threshold, max_results=self.max_results)


@dataclass(frozen=True)
class SearchOutcome:
    """What one ``SearchManager.search`` call produced.

    ``mode`` is the mode actually used, which differs from the requested one
    after a fallback. ``stale`` is set when a newer search started before
    this one finished; stale outcomes are never published.
    """
    generation: int
    mode: str
    results: List[SearchResult] = field(default_factory=list)
    stale: bool = False
    fallback: bool = False
