"""Search manager orchestrating keyword, semantic and hybrid search.

Loads and filters the configured books once, warms the embedding model in the
background, and routes each query to the requested mode. Modes that need the
model are only offered once it is ready; anything that fails on the way falls
back to a plain substring scan so a query always gets an answer.
"""

import asyncio
import time
from contextlib import suppress
from typing import Any, Dict, List, Optional, Union

import structlog

from libs.common.config import SearchConfig
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.content_store import ContentStore, ContentStoreError, Record
from ..encoders.embedding_manager import EmbeddingManager, ModelState
from ..errors import ModelLoadError
from ..models import (
    HybridOptions,
    KeywordOptions,
    SearchMode,
    SearchOutcome,
    SearchResult,
    SemanticOptions,
)
from ..records import filter_valid_records
from ..retrievers.keyword import basic_search, keyword_search
from ..retrievers.semantic import semantic_search
from .engine import hybrid_search

logger = structlog.get_logger("search_service.search_manager")

BASIC_SEARCH_MODE = "basic"
MIN_QUERY_LENGTH = 2


class SearchManager:
    """Manages search operations over the loaded books.

    Responsibilities
    - Load every configured book once and keep only valid records
    - Start the embedding model load without blocking startup
    - Route queries to the requested mode, degrading to keyword search when
      the model is not ready and to basic search on unexpected failures
    - Publish only the outcome of the most recent query
    """

    def __init__(
        self,
        config: SearchConfig,
        content_store: ContentStore,
        provider: EmbeddingManager,
        metrics: Optional[MetricsCollector] = None
    ):
        """Construct a search manager.

        Parameters
        - config: ``SearchConfig`` with per-mode options and debounce delay
        - content_store: Source of the flattened books
        - provider: Embedding provider used by semantic and hybrid search
        - metrics: Optional collector for search and fallback metrics
        """
        self.config = config
        self.content_store = content_store
        self.provider = provider
        self.metrics = metrics

        self.records_by_source: Dict[str, List[Record]] = {}
        self.current: Optional[SearchOutcome] = None

        self._generation = 0
        self._initialized = False
        self._model_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ModelState:
        return self.provider.state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def records(self) -> List[Record]:
        """All valid records, in source order."""
        return [record for records in self.records_by_source.values() for record in records]

    def keyword_options(self) -> KeywordOptions:
        return KeywordOptions(
            threshold=self.config.search_keyword_threshold,
            max_results=self.config.search_keyword_max_results,
        )

    def semantic_options(self) -> SemanticOptions:
        return SemanticOptions(
            threshold=self.config.search_semantic_threshold,
            max_results=self.config.search_semantic_max_results,
            segment_length=self.config.search_semantic_segment_length,
            include_structural_search=self.config.search_semantic_structural,
        )

    def hybrid_options(self) -> HybridOptions:
        return HybridOptions(
            threshold=self.config.search_hybrid_threshold,
            max_results=self.config.search_hybrid_max_results,
            segment_length=self.config.search_hybrid_segment_length,
            semantic_weight=self.config.search_hybrid_semantic_weight,
            keyword_weight=self.config.search_hybrid_keyword_weight,
        )

    async def initialize(self, load_model: bool = True):
        """Load the books and start warming the embedding model.

        A book that cannot be fetched contributes no records; the others are
        unaffected. The model load runs in the background and its outcome is
        reported through ``state``.
        """
        source_keys = self.content_store.source_keys()
        loaded = await asyncio.gather(*(self._load_source(key) for key in source_keys))

        self.records_by_source = dict(zip(source_keys, loaded))
        self._initialized = True

        logger.info(
            "Search manager initialized",
            sources=len(source_keys),
            records=sum(len(records) for records in loaded)
        )

        if load_model:
            self.start_model_loading()

    async def _load_source(self, source_key: str) -> List[Record]:
        try:
            raw_records = await self.content_store.get_all_records(source_key)
        except ContentStoreError as e:
            logger.error("Failed to load book", source=source_key, error=str(e))
            raw_records = []

        records = filter_valid_records(raw_records)
        if self.metrics:
            self.metrics.set_records_loaded(source_key, len(records))

        logger.info(
            "Book loaded",
            source=source_key,
            raw_records=len(raw_records),
            valid_records=len(records)
        )
        return records

    def start_model_loading(self) -> asyncio.Task:
        """Start the background model load if it is not already running."""
        if self._model_task is None or self._model_task.done():
            self._model_task = asyncio.create_task(self._load_model())
        return self._model_task

    async def _load_model(self):
        try:
            await self.provider.initialize()
        except ModelLoadError as e:
            logger.warning("Semantic search unavailable, keyword search only", error=str(e))

    def available_modes(self) -> List[str]:
        """Modes that can be served right now. Keyword is always available."""
        if self.provider.is_ready:
            return [SearchMode.KEYWORD.value, SearchMode.SEMANTIC.value, SearchMode.HYBRID.value]
        return [SearchMode.KEYWORD.value]

    async def search(
        self,
        query: str,
        mode: Union[SearchMode, str] = SearchMode.KEYWORD
    ) -> SearchOutcome:
        """Search the loaded books.

        Every call starts a new generation. With a debounce delay configured
        the call first waits, and gives up without searching if another call
        started meanwhile. The outcome becomes ``current`` only if no newer
        search started before it finished. Queries shorter than two
        characters, once stripped, produce an empty outcome without searching.

        Raises
        - ``ValueError`` for an unknown mode
        """
        requested = SearchMode(mode)

        self._generation += 1
        generation = self._generation

        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            outcome = SearchOutcome(generation=generation, mode=requested.value)
            self.current = outcome
            return outcome

        debounce = self.config.search_debounce_seconds
        if debounce > 0:
            await asyncio.sleep(debounce)
            if generation != self._generation:
                logger.debug("Search superseded during debounce", generation=generation)
                return SearchOutcome(generation=generation, mode=requested.value, stale=True)

        effective = requested
        if requested.value not in self.available_modes():
            effective = SearchMode.KEYWORD
            logger.info(
                "Requested mode unavailable, using keyword search",
                requested_mode=requested.value,
                model_state=self.state.value
            )
            if self.metrics:
                self.metrics.record_fallback(requested.value, effective.value)

        start_time = time.time()
        mode_used = effective.value
        fallback = effective != requested
        try:
            results = await self._run(effective, query)
        except Exception as e:
            logger.error("Search failed, using basic search", mode=effective.value, query=query[:50], error=str(e))
            if self.metrics:
                self.metrics.record_fallback(effective.value, BASIC_SEARCH_MODE)
            results = basic_search(self.records_by_source, query, self.config.search_keyword_max_results)
            mode_used = BASIC_SEARCH_MODE
            fallback = True

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.record_search(mode_used, duration)

        stale = generation != self._generation
        outcome = SearchOutcome(
            generation=generation,
            mode=mode_used,
            results=results,
            stale=stale,
            fallback=fallback,
        )

        if stale:
            logger.debug("Discarding superseded search results", generation=generation, latest=self._generation)
        else:
            self.current = outcome

        log_performance(
            "search",
            duration * 1000,
            query=query[:50],
            mode=mode_used,
            generation=generation,
            results_count=len(results),
            stale=stale
        )
        return outcome

    async def _run(self, mode: SearchMode, query: str) -> List[SearchResult]:
        if mode == SearchMode.SEMANTIC:
            return await semantic_search(self.provider, self.records, query, self.semantic_options())
        if mode == SearchMode.HYBRID:
            return await hybrid_search(self.provider, self.records, query, self.hybrid_options())
        return keyword_search(self.records, query, self.keyword_options())

    def clear_cache(self):
        """Drop every cached embedding."""
        self.provider.clear_cache()
        logger.info("Embedding cache cleared")

    def status(self) -> Dict[str, Any]:
        """Model state, available modes, record counts and cache stats."""
        load_error = self.provider.load_error
        return {
            "model_state": self.state.value,
            "model_error": str(load_error) if load_error else None,
            "available_modes": self.available_modes(),
            "records": {key: len(records) for key, records in self.records_by_source.items()},
            "generation": self._generation,
            "cache": self.provider.cache_stats(),
        }

    async def health_check(self) -> bool:
        """Healthy once the books are loaded; keyword search needs nothing else."""
        return self._initialized

    async def cleanup(self):
        """Cleanup resources."""
        try:
            if self._model_task and not self._model_task.done():
                self._model_task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._model_task

            await self.provider.dispose()
            await self.content_store.close()

            logger.info("Search manager cleaned up")

        except Exception as e:
            logger.error("Error during cleanup", error=str(e))
