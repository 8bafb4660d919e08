"""Standards search service."""
