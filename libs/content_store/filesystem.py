"""Content store backed by a local directory of flattened-book JSON files."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog

from .base import BookSource, ContentFetchError, ContentStore, Record, parse_book_payload

logger = structlog.get_logger("content_store.filesystem")


class FileContentStore(ContentStore):
    """Reads ``<root>/<book.file>`` for each source.

    File IO runs in a worker thread so loading several books does not block
    the event loop.
    """

    def __init__(self, root: Union[str, Path], books: Dict[str, BookSource]):
        super().__init__(books)
        self.root = Path(root)

    def _read_payload(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    async def get_all_records(self, source_key: str) -> List[Record]:
        book = self.get_book(source_key)
        path = self.root / book.file

        try:
            payload = await asyncio.to_thread(self._read_payload, path)
        except FileNotFoundError as e:
            raise ContentFetchError(source_key, f"file not found: {path}") from e
        except (OSError, ValueError) as e:
            raise ContentFetchError(source_key, f"{type(e).__name__}: {e}") from e

        records = parse_book_payload(payload, source_key)
        logger.info("Book loaded", source=source_key, path=str(path), records=len(records))
        return records
