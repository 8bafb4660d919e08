"""API routes for search service."""

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
import structlog

from ..hybrid.search_manager import SearchManager
from ..models import SearchMode, SearchResult

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SearchRequest(BaseModel):
    """Request model for search endpoint."""
    query: str = Field(..., description="Search query")
    mode: SearchMode = Field(SearchMode.KEYWORD, description="keyword, semantic or hybrid")


class SearchResultModel(BaseModel):
    """Search result model."""
    source_key: Optional[str] = Field(None, description="Book the record belongs to")
    topic: str = Field(..., description="Topic label")
    subtopic: Optional[str] = Field(None, description="Subtopic label")
    subsubtopic: Optional[str] = Field(None, description="Sub-subtopic label")
    content: str = Field(..., description="Record content")
    matched_segment: str = Field(..., description="Excerpt that matched the query")
    match_type: str = Field(..., description="structural, semantic, keyword or hybrid")
    score: float = Field(..., description="Score on a 0-1 scale")
    relevance: float = Field(..., description="Score on a 0-100 scale")
    semantic_score: Optional[float] = Field(None, description="Semantic similarity before fusion")
    keyword_relevance: Optional[float] = Field(None, description="Keyword relevance before fusion")

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultModel":
        return cls(
            source_key=result.source_key,
            topic=result.topic,
            subtopic=result.subtopic,
            subsubtopic=result.subsubtopic,
            content=result.content,
            matched_segment=result.matched_segment,
            match_type=result.match_type.value,
            score=result.score,
            relevance=result.relevance,
            semantic_score=result.semantic_score,
            keyword_relevance=result.keyword_relevance,
        )


class SearchResponse(BaseModel):
    """Response model for search endpoint."""
    results: List[SearchResultModel] = Field(..., description="Search results")
    total: int = Field(..., description="Total number of results")
    query: str = Field(..., description="Original query")
    requested_mode: str = Field(..., description="Mode asked for")
    mode: str = Field(..., description="Mode actually used")
    fallback: bool = Field(..., description="Whether a fallback mode served the query")
    generation: int = Field(..., description="Search generation")
    stale: bool = Field(..., description="A newer search started before this one finished")
    latency_ms: float = Field(..., description="Search latency in milliseconds")


class StatusResponse(BaseModel):
    """Response model for status endpoint."""
    model_config = ConfigDict(protected_namespaces=())

    model_state: str = Field(..., description="Embedding model state")
    model_error: Optional[str] = Field(None, description="Why the model failed to load")
    available_modes: List[str] = Field(..., description="Modes that can be served now")
    records: Dict[str, int] = Field(..., description="Valid records per book")
    generation: int = Field(..., description="Latest search generation")
    cache: Dict[str, Any] = Field(..., description="Embedding cache statistics")


def get_search_manager(request: Request) -> SearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Search the loaded books."""
    start_time = time.time()

    try:
        outcome = await search_manager.search(query=request.query, mode=request.mode)
    except Exception as e:
        logger.error("Search failed", query=request.query, error=str(e))
        raise HTTPException(status_code=500, detail="Search failed")

    latency_ms = (time.time() - start_time) * 1000

    return SearchResponse(
        results=[SearchResultModel.from_result(result) for result in outcome.results],
        total=len(outcome.results),
        query=request.query,
        requested_mode=request.mode.value,
        mode=outcome.mode,
        fallback=outcome.fallback,
        generation=outcome.generation,
        stale=outcome.stale,
        latency_ms=latency_ms
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Model state, available modes and loaded record counts."""
    try:
        return StatusResponse(**search_manager.status())
    except Exception as e:
        logger.error("Failed to get status", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to get status")


@router.post("/cache/clear")
async def clear_cache(
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Drop every cached embedding."""
    search_manager.clear_cache()
    return {"status": "success", "message": "Embedding cache cleared"}
