"""Content store factory.

Centralizes creation of concrete ``ContentStore`` backends so callers don't
depend on implementation details.
"""

from enum import Enum
from typing import Any, Dict, Optional

import structlog

from libs.common.config import BaseConfig
from .base import BookSource, ContentStore
from .catalog import select_books
from .filesystem import FileContentStore
from .http_store import HttpContentStore

logger = structlog.get_logger("content_store.factory")


class ContentStoreType(Enum):
    """Supported content store types."""
    FILE = "file"
    HTTP = "http"


def create_content_store(
    store_type: str,
    config: Dict[str, Any],
    books: Optional[Dict[str, BookSource]] = None
) -> ContentStore:
    """Create a content store instance.

    Parameters
    - store_type: ``file`` or ``http``
    - config: Backend-specific parameters (``root`` or ``base_url``/``timeout``)
    - books: Catalog entries to serve (defaults to the full catalog)
    """
    try:
        store_type_enum = ContentStoreType(store_type)
    except ValueError:
        raise ValueError(f"Unsupported content store type: {store_type}") from None

    books = books if books is not None else select_books()

    if store_type_enum == ContentStoreType.FILE:
        root = config.get("root")
        if not root:
            raise ValueError("File content store requires 'root' in config")
        return FileContentStore(root=root, books=books)

    base_url = config.get("base_url")
    if not base_url:
        raise ValueError("HTTP content store requires 'base_url' in config")
    return HttpContentStore(
        base_url=base_url,
        books=books,
        timeout=float(config.get("timeout", 30.0)),
    )


def create_content_store_from_env(config: BaseConfig) -> ContentStore:
    """Create the content store described by service configuration.

    Returns
    - A ``ContentStore`` serving the books listed in ``search_book_keys``
    """
    books = select_books(config.book_keys())
    backend = config.search_content_backend

    store = create_content_store(
        backend,
        {
            "root": config.search_content_dir,
            "base_url": config.search_content_base_url,
            "timeout": config.search_content_timeout,
        },
        books=books,
    )
    logger.info("Content store created", backend=backend, books=list(books))
    return store
