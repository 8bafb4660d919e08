"""Read-only access to the flattened standards books.

Primary components:
- ``base``: ``Record`` and ``BookSource`` types, the abstract ``ContentStore``
  interface, and ``ContentFetchError``.
- ``catalog``: the books known to the platform.
- ``filesystem`` / ``http_store``: concrete backends.
- ``factory``: helpers to construct a store from config.

Guidance:
- Prefer constructing via ``factory.create_content_store_from_env`` so runtime
  services remain decoupled from specific backends.
"""

from .base import BookSource, ContentFetchError, ContentStore, ContentStoreError, Record

__all__ = ["BookSource", "ContentFetchError", "ContentStore", "ContentStoreError", "Record"]
