"""Shared libraries for the standards search platform.

Subpackages:
- ``libs.common``: configuration, logging, and metrics.
- ``libs.content_store``: read-only access to the flattened standards books.

Usage:
- Import stable, reusable functionality from here to keep service code lean.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
