"""Utility scripts for operating the search platform.

Scripts include:
- ``search_cli.py``: run a one-shot search against the configured books.
"""
