"""Configuration management for the standards search platform.

This module centralizes environment-driven configuration for the search
service, its content store, and the command-line tools. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover commonly used environment variables
- Small service-specific subclasses to keep concerns clear

Usage
- Inject the appropriate config in your service entrypoint:
  ``config = SearchConfig()``
- Or select dynamically: ``config = get_config("search")``
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class for all services.

    Field names map to upper-cased environment variables (``search_env`` is
    read from ``SEARCH_ENV``). Defaults keep local development convenient.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    search_env: str = Field(default="local")

    # Logging
    search_log_level: str = Field(default="INFO")
    search_log_format: str = Field(default="json")

    # Content store
    search_content_backend: str = Field(default="file", description="file or http")
    search_content_dir: str = Field(default="data/flattened_books")
    search_content_base_url: str = Field(default="http://localhost:5173/flattened_books")
    search_content_timeout: float = Field(default=30.0)
    search_book_keys: str = Field(
        default="pmbok,iso2020,iso2021,prince2",
        description="Comma separated catalog keys to load",
    )

    def book_keys(self) -> List[str]:
        """Return the configured catalog keys in order, without blanks."""
        return [key.strip() for key in self.search_book_keys.split(",") if key.strip()]


class EmbeddingConfig(BaseConfig):
    """Configuration for the embedding provider.

    The model must produce token-level output; pooling and normalization are
    done by the provider.
    """

    search_embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    search_embedding_device: Optional[str] = Field(default=None)


class SearchConfig(EmbeddingConfig):
    """Configuration for the search service.

    Per-mode defaults mirror the values the display layer has always used.

    Search generations belong to the service process, not to a caller. The
    service serves a single display: when several clients query one
    instance, a newer query from any of them marks older responses stale,
    and with a debounce delay it abandons them.
    """

    search_port: int = Field(default=9007)
    search_debounce_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description=(
            "Delay before a query runs; a newer query from any client abandons it. "
            "Generations are shared by all clients of one instance (single-display setting)."
        ),
    )

    search_keyword_threshold: float = Field(default=0.2)
    search_keyword_max_results: int = Field(default=15, ge=1)

    search_semantic_threshold: float = Field(default=0.3)
    search_semantic_max_results: int = Field(default=15, ge=1)
    search_semantic_segment_length: int = Field(default=400, ge=1)
    search_semantic_structural: bool = Field(default=False)

    search_hybrid_threshold: float = Field(default=0.25)
    search_hybrid_max_results: int = Field(default=15, ge=1)
    search_hybrid_segment_length: int = Field(default=500, ge=1)
    search_hybrid_semantic_weight: float = Field(default=0.7)
    search_hybrid_keyword_weight: float = Field(default=0.3)


def get_config(service_name: str) -> BaseConfig:
    """Get configuration for a specific service.

    Parameters
    - service_name: ``search``, ``embedding``, or anything else for the base
      settings.
    """
    config_map = {
        "search": SearchConfig,
        "embedding": EmbeddingConfig,
    }

    # Default to ``BaseConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(service_name, BaseConfig)
    return config_class()
