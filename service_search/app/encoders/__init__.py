"""Embedding model wrappers, the embedding cache and the provider."""
