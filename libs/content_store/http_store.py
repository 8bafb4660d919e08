"""Content store that fetches flattened books from a static HTTP server."""

from typing import Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from .base import BookSource, ContentFetchError, ContentStore, Record, parse_book_payload

logger = structlog.get_logger("content_store.http")


class HttpContentStore(ContentStore):
    """Fetches ``GET {base_url}/{book.file}`` for each source.

    The client is created lazily and reused; call ``close`` on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        books: Dict[str, BookSource],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(books)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    def _url_for(self, book: BookSource) -> str:
        return f"{self.base_url}/{quote(book.file)}"

    async def get_all_records(self, source_key: str) -> List[Record]:
        book = self.get_book(source_key)
        url = self._url_for(book)

        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout)

        try:
            response = await self.client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ContentFetchError(source_key, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ContentFetchError(source_key, f"invalid JSON: {e}") from e

        records = parse_book_payload(payload, source_key)
        logger.info("Book fetched", source=source_key, url=url, records=len(records))
        return records

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
