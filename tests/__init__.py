"""Tests for the standards search platform.

Tests run without downloading a model: ``conftest`` provides a deterministic
bag-of-words embedding model and an in-memory book store.
"""
