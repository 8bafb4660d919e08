"""Search retrievers for keyword and semantic workflows.

Retrievers score in-memory records against a query. Segmentation lives here
too since only semantic retrieval needs it.
"""
