"""Search ranking and result fusion components.

Contents
- ``fusion``: weighted linear fusion of semantic and keyword results
"""
