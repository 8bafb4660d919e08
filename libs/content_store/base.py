"""Base content store interface.

Defines the read-only contract the search service depends on, independent of
where the flattened books live (local directory, static HTTP server, ...).

All fetch methods are asynchronous so stores backed by the network can be
loaded concurrently.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

import structlog

logger = structlog.get_logger("content_store.base")


@dataclass(frozen=True)
class Record:
    """One indexable content unit of a standards book.

    ``source_key`` is attached by whoever loads the record; it is not part of
    the book payload itself.
    """
    topic: str
    content: str
    subtopic: Optional[str] = None
    subsubtopic: Optional[str] = None
    source_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source_key: Optional[str] = None) -> "Record":
        """Build a record from a flattened-book JSON object."""
        return cls(
            topic=_as_text(data.get("topic")) or "",
            content=_as_text(data.get("content")) or "",
            subtopic=_as_text(data.get("subtopic")),
            subsubtopic=_as_text(data.get("subsubtopic")),
            source_key=source_key,
        )

    def with_source(self, source_key: str) -> "Record":
        """Return a copy bound to ``source_key``."""
        return replace(self, source_key=source_key)

    def identity(self) -> tuple:
        """Identity used to merge results of the same record across searches."""
        return (self.source_key, self.topic, self.subtopic, self.subsubtopic)


@dataclass(frozen=True)
class BookSource:
    """Catalog entry describing one book of the corpus."""
    key: str
    name: str
    file: str
    description: str = ""


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def parse_book_payload(payload: Any, source_key: str) -> List[Record]:
    """Extract records from a flattened-book payload.

    Two layouts are accepted:
    - ``{"records": [...]}``
    - ``{"sections": {"<name>": {"records": [...]}, ...}}``

    Entries that are not JSON objects are skipped. A ``records`` or
    ``sections`` value of the wrong shape raises ``ContentFetchError``.
    """
    if not isinstance(payload, Mapping):
        raise ContentFetchError(source_key, "book payload must be a JSON object")

    raw_records: List[Any]
    if payload.get("sections"):
        sections = payload["sections"]
        if isinstance(sections, Mapping):
            sections = list(sections.values())
        if not isinstance(sections, list):
            raise ContentFetchError(source_key, "sections must be a JSON object or array")
        raw_records = []
        for section in sections:
            if not isinstance(section, Mapping):
                continue
            section_records = section.get("records") or []
            if not isinstance(section_records, list):
                raise ContentFetchError(source_key, "section records must be a JSON array")
            raw_records.extend(section_records)
    elif payload.get("records") is not None:
        raw_records = payload["records"]
        if not isinstance(raw_records, list):
            raise ContentFetchError(source_key, "records must be a JSON array")
    else:
        raw_records = []

    records = []
    skipped = 0
    for item in raw_records:
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        records.append(Record.from_dict(item, source_key=source_key))

    if skipped:
        logger.warning("Skipped malformed book entries", source=source_key, skipped=skipped)

    return records


class ContentStore(ABC):
    """Abstract base class for content stores.

    Implementations return every record of a source, bound to its key. They
    do not filter; the search service applies its own validity rules.
    """

    def __init__(self, books: Dict[str, BookSource]):
        self.books = books

    def source_keys(self) -> List[str]:
        """Keys of all sources this store can serve, in catalog order."""
        return list(self.books)

    def get_book(self, source_key: str) -> BookSource:
        """Look up a catalog entry, raising ``ContentFetchError`` if unknown."""
        try:
            return self.books[source_key]
        except KeyError:
            raise ContentFetchError(source_key, "unknown source") from None

    @abstractmethod
    async def get_all_records(self, source_key: str) -> List[Record]:
        """Return all records of one source.

        Raises
        - ``ContentFetchError`` when the source cannot be read or parsed
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class ContentStoreError(Exception):
    """Base exception for content store operations."""
    pass


class ContentFetchError(ContentStoreError):
    """A source could not supply its records."""

    def __init__(self, source_key: str, reason: str):
        super().__init__(f"Failed to fetch content for '{source_key}': {reason}")
        self.source_key = source_key
        self.reason = reason
