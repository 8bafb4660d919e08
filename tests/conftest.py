"""Shared fixtures: a deterministic embedding model and an in-memory book store."""

import re
import time
import zlib
from typing import Dict, Iterable, List, Optional

import numpy as np
import pytest

from libs.common.config import SearchConfig
from libs.common.metrics import MetricsCollector
from libs.content_store import BookSource, ContentFetchError, ContentStore, Record
from service_search.app.encoders.embedding_manager import EmbeddingManager
from service_search.app.hybrid.search_manager import SearchManager

_WORD = re.compile(r"\w+")


class HashingModel:
    """Bag-of-words model: each word becomes a one-hot token row.

    Mean pooling then yields the normalized word histogram, so texts sharing
    words are similar and texts sharing none are (almost) orthogonal.
    """

    name = "hashing-test-model"

    def __init__(
        self,
        dim: int = 256,
        fail_load: bool = False,
        fail_on: Optional[Iterable[str]] = None,
        delay: float = 0.0
    ):
        self.dim = dim
        self.fail_load = fail_load
        self.fail_on = set(fail_on or [])
        self.delay = delay
        self.load_calls = 0
        self.run_calls = 0

    def load(self):
        self.load_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail_load:
            raise RuntimeError("model weights unavailable")
        return {"dim": self.dim}

    def run(self, handle, text):
        self.run_calls += 1
        if self.delay:
            time.sleep(self.delay)
        for marker in self.fail_on:
            if marker in text:
                raise RuntimeError(f"cannot embed text containing {marker!r}")

        words = _WORD.findall(text.lower())
        rows = np.zeros((max(len(words), 1), handle["dim"]), dtype=np.float32)
        if not words:
            rows[0, 0] = 1.0
        for i, word in enumerate(words):
            rows[i, zlib.crc32(word.encode("utf-8")) % handle["dim"]] = 1.0
        return rows


class MemoryContentStore(ContentStore):
    """Serves records held in memory; listed sources in ``failing`` raise."""

    def __init__(self, records: Dict[str, List[dict]], failing: Iterable[str] = ()):
        keys = list(records) + [key for key in failing if key not in records]
        super().__init__({key: BookSource(key=key, name=key.upper(), file=f"{key}.json") for key in keys})
        self.records = records
        self.failing = set(failing)
        self.closed = False

    async def get_all_records(self, source_key: str) -> List[Record]:
        self.get_book(source_key)
        if source_key in self.failing:
            raise ContentFetchError(source_key, "connection refused")
        return [Record.from_dict(item, source_key=source_key) for item in self.records.get(source_key, [])]

    async def close(self) -> None:
        self.closed = True


BOOKS = {
    "pmbok": [
        {
            "topic": "Risk Management",
            "subtopic": "Risk Register",
            "content": "The risk register records identified risks, their owners and the planned responses.",
        },
        {
            "topic": "Stakeholder Engagement",
            "content": "Stakeholders are engaged throughout the project to understand their needs and expectations.",
        },
        {
            "topic": "Schedule Management",
            "subtopic": "Unlabeled Section 3",
            "content": "This risk register text was extracted from an unlabeled region of the page layout.",
        },
    ],
    "prince2": [
        {
            "topic": "Business Case",
            "content": "The business case justifies the project and is reviewed at every stage boundary.",
        },
        {
            "topic": "Risk Theme",
            "subtopic": "Risk Management Approach",
            "content": "The risk management approach describes how risks are identified, assessed and controlled.",
        },
    ],
}


@pytest.fixture
def model():
    return HashingModel()


@pytest.fixture
def provider(model):
    return EmbeddingManager(model)


@pytest.fixture
def records():
    return [
        Record.from_dict(item, source_key=source_key)
        for source_key, items in BOOKS.items()
        for item in items
    ]


@pytest.fixture
def content_store():
    return MemoryContentStore(BOOKS)


@pytest.fixture
def search_config():
    return SearchConfig(search_debounce_seconds=0.0)


@pytest.fixture
def metrics():
    return MetricsCollector("test-service")


@pytest.fixture
def search_manager(search_config, content_store, provider, metrics):
    return SearchManager(search_config, content_store, provider, metrics)
