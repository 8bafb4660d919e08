"""Embedding model adapters.

The provider treats the model as a black box with two calls: ``load`` once,
then ``run`` per text. ``run`` returns token-level output (tokens x dim); the
provider does the pooling and normalization itself so every backend yields
comparable vectors.
"""

from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np
import structlog

logger = structlog.get_logger("search_service.embedding_models")


@runtime_checkable
class EmbeddingModel(Protocol):
    """Interface of a text embedding model."""

    name: str

    def load(self) -> Any:
        """Load the model and return an opaque handle."""
        ...

    def run(self, handle: Any, text: str) -> Any:
        """Return raw token-level output for ``text``."""
        ...


class SentenceTransformerModel:
    """``sentence-transformers`` backend returning token embeddings."""

    def __init__(self, name: str, device: Optional[str] = None):
        self.name = name
        self.device = device

    def load(self) -> Any:
        from sentence_transformers import SentenceTransformer

        model = SentenceTransformer(self.name, device=self.device)
        logger.info(
            "Loaded embedding model",
            model_name=self.name,
            dimension=model.get_sentence_embedding_dimension(),
            max_length=model.max_seq_length,
        )
        return model

    def run(self, handle: Any, text: str) -> np.ndarray:
        output = handle.encode(text, output_value="token_embeddings")
        if hasattr(output, "cpu"):
            output = output.cpu().numpy()
        return np.asarray(output, dtype=np.float32)
