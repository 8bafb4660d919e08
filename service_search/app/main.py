"""Search service main application."""

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as api_router
from .encoders.embedding_manager import EmbeddingManager
from .encoders.models import SentenceTransformerModel
from .hybrid.search_manager import SearchManager
from .runtime.metrics import get_metrics_collector
from libs.common.config import SearchConfig
from libs.common.logging import configure_logging
from libs.content_store.factory import create_content_store_from_env

logger = structlog.get_logger("search_service")


def create_search_manager(config: SearchConfig, metrics_collector=None) -> SearchManager:
    """Wire a ``SearchManager`` from configuration."""
    provider = EmbeddingManager(
        SentenceTransformerModel(config.search_embedding_model, device=config.search_embedding_device),
        metrics=metrics_collector
    )
    return SearchManager(
        config,
        content_store=create_content_store_from_env(config),
        provider=provider,
        metrics=metrics_collector
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    config = SearchConfig()
    configure_logging("search-service", config.search_log_level, config.search_log_format)

    logger.info("Starting search service")

    app.state.metrics_collector = get_metrics_collector("search-service")

    app.state.search_manager = create_search_manager(config, app.state.metrics_collector)
    await app.state.search_manager.initialize()

    logger.info("Search service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down search service")
    if hasattr(app.state, 'search_manager'):
        await app.state.search_manager.cleanup()
    logger.info("Search service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Search Service",
    description="Keyword, semantic and hybrid search over project management standards",
    version="0.1.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect metrics for HTTP requests."""
    start_time = time.time()

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as e:
        logger.error("Unhandled request error", path=request.url.path, error=str(e))
        status_code = 500
        response = JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    duration = time.time() - start_time

    if hasattr(app.state, 'metrics_collector'):
        app.state.metrics_collector.record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status=status_code,
            duration=duration
        )

    return response


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        if hasattr(app.state, 'search_manager'):
            search_health = await app.state.search_manager.health_check()
        else:
            search_health = False

        if search_health:
            return {
                "status": "healthy",
                "service": "search-service",
                "model_state": app.state.search_manager.state.value
            }
        else:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "service": "search-service"}
            )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": "search-service", "error": str(e)}
        )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if hasattr(app.state, 'metrics_collector'):
        metrics_data = app.state.metrics_collector.get_metrics()
        return Response(content=metrics_data, media_type="text/plain")
    else:
        return Response(content="# No metrics available\n", media_type="text/plain")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "search-service",
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "search": "/api/v1/search",
            "status": "/api/v1/status",
            "cache": "/api/v1/cache/clear"
        }
    }


if __name__ == "__main__":
    config = SearchConfig()
    uvicorn.run(
        "service_search.app.main:app",
        host="0.0.0.0",
        port=config.search_port,
        reload=False,
        log_level="info"
    )
