"""Embedding manager for model lifecycle and text embedding.

Loads the embedding model at most once, turns texts into unit-length vectors
(mean pooling over token embeddings, then L2 normalization), and caches every
vector by normalized text for the lifetime of the process.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
import structlog

from libs.common.metrics import MetricsCollector
from ..errors import EmbeddingError, ModelLoadError
from .cache import EmbeddingCache
from .models import EmbeddingModel

logger = structlog.get_logger("search_service.embedding_manager")


class ModelState(str, Enum):
    """Lifecycle of the embedding model."""
    UNINITIALIZED = "uninitialized"
    MODEL_LOADING = "model_loading"
    MODEL_READY = "model_ready"
    MODEL_FAILED = "model_failed"


def pool_and_normalize(raw: Any) -> np.ndarray:
    """Mean-pool token-level model output and L2-normalize it.

    Accepts ``(tokens, dim)`` or ``(1, tokens, dim)`` arrays; a 1-D array is
    taken as an already pooled vector.

    Raises
    - ``EmbeddingError`` if the output is empty, has an unexpected rank, or
      contains non-finite values or a zero vector
    """
    try:
        array = np.asarray(raw, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"Model output is not numeric: {e}") from e

    if array.ndim == 3 and array.shape[0] == 1:
        array = array[0]

    if array.ndim == 2:
        if array.shape[0] == 0 or array.shape[1] == 0:
            raise EmbeddingError("Model returned no token embeddings")
        vector = array.mean(axis=0)
    elif array.ndim == 1:
        if array.size == 0:
            raise EmbeddingError("Model returned an empty vector")
        vector = array
    else:
        raise EmbeddingError(f"Unexpected model output shape: {array.shape}")

    if not np.all(np.isfinite(vector)):
        raise EmbeddingError("Model output contains non-finite values")

    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        raise EmbeddingError("Model output has zero magnitude")

    vector = (vector / norm).astype(np.float32)
    vector.flags.writeable = False
    return vector


class EmbeddingManager:
    """Owns the embedding model and the embedding cache.

    Notes
    - ``initialize`` is safe to call concurrently: the first caller starts a
      single load task and every caller awaits that same task
    - A failed load is remembered; ``embed`` re-raises it instead of retrying.
      ``initialize(force=True)`` is the only way to try again
    - ``dispose`` drops the model but keeps the cache
    """

    def __init__(
        self,
        model: EmbeddingModel,
        cache: Optional[EmbeddingCache] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.model = model
        self.cache = cache if cache is not None else EmbeddingCache()
        self.metrics = metrics

        self._handle: Any = None
        self._state = ModelState.UNINITIALIZED
        self._load_error: Optional[ModelLoadError] = None
        self._load_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == ModelState.MODEL_READY

    @property
    def load_error(self) -> Optional[ModelLoadError]:
        return self._load_error

    async def initialize(self, force: bool = False) -> None:
        """Load the model once.

        Concurrent callers share the in-flight load and observe the same
        outcome. After a failure every call re-raises the recorded
        ``ModelLoadError`` unless ``force`` is set.

        Raises
        - ``ModelLoadError`` when the model cannot be loaded
        """
        async with self._lock:
            if force and self._load_task is not None and self._load_task.done():
                if self._state == ModelState.MODEL_FAILED:
                    logger.info("Retrying embedding model load", model_name=self.model.name)
                self._reset()

            if self._load_task is None:
                self._state = ModelState.MODEL_LOADING
                self._load_task = asyncio.create_task(self._load())

            task = self._load_task

        await asyncio.shield(task)

    async def _load(self) -> None:
        start_time = time.time()
        logger.info("Loading embedding model", model_name=self.model.name)

        try:
            handle = await asyncio.to_thread(self.model.load)
        except Exception as e:
            error = ModelLoadError(f"Failed to load embedding model {self.model.name}: {e}")
            self._load_error = error
            self._state = ModelState.MODEL_FAILED
            if self.metrics:
                self.metrics.set_model_ready(False)
            logger.error("Failed to load embedding model", model_name=self.model.name, error=str(e))
            raise error from e

        self._handle = handle
        self._state = ModelState.MODEL_READY
        if self.metrics:
            self.metrics.set_model_ready(True)
        logger.info(
            "Embedding model ready",
            model_name=self.model.name,
            duration_ms=(time.time() - start_time) * 1000
        )

    def _reset(self) -> None:
        self._handle = None
        self._load_task = None
        self._load_error = None
        self._state = ModelState.UNINITIALIZED

    async def _ensure_model(self) -> Any:
        if self._state == ModelState.MODEL_FAILED and self._load_error is not None:
            raise self._load_error
        if self._state != ModelState.MODEL_READY:
            await self.initialize()
        return self._handle

    async def embed(self, text: Optional[str]) -> Optional[np.ndarray]:
        """Return the unit-length embedding of ``text``.

        Returns ``None`` for empty or whitespace-only text.

        Raises
        - ``ModelLoadError`` if the model is not (and cannot be) loaded
        - ``EmbeddingError`` if the model fails on this text or returns
          malformed output
        """
        if not text or not text.strip():
            return None

        if self._state == ModelState.MODEL_FAILED and self._load_error is not None:
            raise self._load_error

        cached = self.cache.get(text)
        if cached is not None:
            if self.metrics:
                self.metrics.record_cache_hit("embedding")
            return cached

        if self.metrics:
            self.metrics.record_cache_miss("embedding")

        handle = await self._ensure_model()

        start_time = time.time()
        try:
            raw = await asyncio.to_thread(self.model.run, handle, text.strip())
        except Exception as e:
            if self.metrics:
                self.metrics.record_embedding_error(self.model.name)
            raise EmbeddingError(f"Embedding generation failed: {type(e).__name__}: {e}") from e

        try:
            vector = pool_and_normalize(raw)
        except EmbeddingError:
            if self.metrics:
                self.metrics.record_embedding_error(self.model.name)
            raise
        if self.metrics:
            self.metrics.record_embedding(self.model.name, time.time() - start_time)

        self.cache.set(text, vector)
        return vector

    def clear_cache(self) -> None:
        """Drop every cached embedding."""
        self.cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        """Cache size and hit counts, plus whether the model is loaded."""
        stats = self.cache.stats()
        stats["model_loaded"] = self.is_ready
        stats["model_name"] = self.model.name
        return stats

    async def dispose(self) -> None:
        """Release the model. The cache is kept.

        An in-flight load is cancelled.
        """
        async with self._lock:
            task = self._load_task
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, ModelLoadError):
                    pass
            self._reset()

        if self.metrics:
            self.metrics.set_model_ready(False)
        logger.info("Embedding manager disposed", model_name=self.model.name)
