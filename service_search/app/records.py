"""Validity filter applied to every record set before it is searched.

Flattened books contain layout debris: page headers, lone labels, and
sections the extraction could not name ("Unlabeled Section 3"). Such records
are dropped once, when a book is loaded, and never reach a query.
"""

import re
from typing import Iterable, List

from libs.content_store import Record

MIN_CONTENT_LENGTH = 20
ARTIFACT_MAX_LENGTH = 50
ARTIFACT_MAX_WORDS = 5
UNLABELED_MARKER = "unlabeled"

_SINGLE_TOKEN = re.compile(r"^\w+$")


def _is_layout_artifact(content: str) -> bool:
    if len(content) >= ARTIFACT_MAX_LENGTH:
        return False
    return bool(_SINGLE_TOKEN.match(content)) or len(content.split(" ")) < ARTIFACT_MAX_WORDS


def is_valid_record(record: Record) -> bool:
    """Return ``True`` if ``record`` may be indexed."""
    if not record.topic or not record.topic.strip():
        return False
    if UNLABELED_MARKER in record.topic.lower():
        return False
    if record.subtopic and UNLABELED_MARKER in record.subtopic.lower():
        return False

    content = (record.content or "").strip()
    if len(content) < MIN_CONTENT_LENGTH:
        return False
    if _is_layout_artifact(content):
        return False
    return True


def filter_valid_records(records: Iterable[Record]) -> List[Record]:
    """Keep only valid records, preserving order. Idempotent."""
    return [record for record in records if is_valid_record(record)]
