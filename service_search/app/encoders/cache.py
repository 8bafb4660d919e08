"""In-process cache of text embeddings."""

from typing import Any, Dict, Optional

import numpy as np
import structlog

logger = structlog.get_logger("search_cache")


class EmbeddingCache:
    """Maps normalized text to its embedding.

    Keys are ``text.strip().lower()``. The corpus is static, so entries are
    never evicted; the cache only grows until ``clear`` is called. Writing the
    same key twice stores an identical vector, so racing writers are harmless.
    """

    def __init__(self):
        self._entries: Dict[str, np.ndarray] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def normalize_key(text: str) -> str:
        return text.strip().lower()

    def get(self, text: str) -> Optional[np.ndarray]:
        vector = self._entries.get(self.normalize_key(text))
        if vector is None:
            self.misses += 1
        else:
            self.hits += 1
        return vector

    def set(self, text: str, vector: np.ndarray) -> None:
        self._entries[self.normalize_key(text)] = vector

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return self.normalize_key(text) in self._entries

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        logger.info("Embedding cache cleared", entries=count)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
        }
