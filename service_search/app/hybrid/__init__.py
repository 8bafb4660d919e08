"""Hybrid search components for semantic + keyword ranking.

Includes ``hybrid_search`` and the ``SearchManager`` which routes queries to
the available modes and degrades when the embedding model is not ready.
"""
