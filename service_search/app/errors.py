"""Exceptions raised by the search core."""


class SearchError(Exception):
    """Base exception for search operations."""
    pass


class ModelLoadError(SearchError):
    """The embedding model failed to initialize.

    Semantic and hybrid search stay unavailable until the provider is
    explicitly re-initialized.
    """
    pass


class EmbeddingError(SearchError):
    """A single text could not be embedded."""
    pass
