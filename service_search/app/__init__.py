"""Search service package.

Layout:
- ``api``: HTTP endpoints for search, status and cache management.
- ``encoders``: embedding model lifecycle and the embedding cache.
- ``retrievers``: keyword, structural and semantic scoring.
- ``ranking``: fusion of semantic and keyword results.
- ``hybrid``: hybrid search and the ``SearchManager`` orchestrator.
- ``runtime``: service-local metrics and runtime helpers.
"""
