"""Catalog of the standards books served by the platform."""

from typing import Dict, Iterable, Optional

from .base import BookSource

DEFAULT_BOOKS: Dict[str, BookSource] = {
    "pmbok": BookSource(
        key="pmbok",
        name="PMBOK Guide 7th Edition",
        file="pmbok_flat.json",
        description="A Guide to the Project Management Body of Knowledge",
    ),
    "iso2020": BookSource(
        key="iso2020",
        name="ISO 21502:2020",
        file="iso_2020_flat.json",
        description="Project, programme and portfolio management - Guidance on project management",
    ),
    "iso2021": BookSource(
        key="iso2021",
        name="ISO 21500:2021",
        file="iso 2021.json",
        description="Project, programme and portfolio management - Context and concepts",
    ),
    "prince2": BookSource(
        key="prince2",
        name="PRINCE2",
        file="pince2.json",
        description="PRojects IN Controlled Environments - Structured project management method",
    ),
}


def select_books(keys: Optional[Iterable[str]] = None) -> Dict[str, BookSource]:
    """Return catalog entries for ``keys`` in the given order.

    ``None`` selects the whole catalog. Unknown keys raise ``ValueError``.
    """
    if keys is None:
        return dict(DEFAULT_BOOKS)

    selected = {}
    for key in keys:
        if key not in DEFAULT_BOOKS:
            raise ValueError(f"Unknown book key: {key}")
        selected[key] = DEFAULT_BOOKS[key]
    return selected
