"""API subpackage for the search service.

Routers expose endpoints for search, model status, and cache management.
Transport layer remains thin and delegates to ``SearchManager``.
"""
