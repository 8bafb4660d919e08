"""Sentence-aware text segmentation for embedding inputs."""

import re
from typing import List

MIN_SEGMENT_LENGTH = 20

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")


def _split_words(sentence: str, max_length: int) -> List[str]:
    """Greedily pack the words of an over-long sentence into chunks."""
    chunks: List[str] = []
    chunk = ""
    for word in sentence.split():
        candidate = f"{chunk} {word}" if chunk else word
        if len(candidate) <= max_length or not chunk:
            chunk = candidate
        else:
            chunks.append(chunk)
            chunk = word
    if chunk:
        chunks.append(chunk)
    return chunks


def segment_text(text: str, max_length: int = 500) -> List[str]:
    """Split ``text`` into sentence-respecting segments of bounded length.

    Text that already fits is returned unchanged as the only segment.
    Otherwise sentences (split on ``.``, ``!``, ``?``) are joined with ``". "``
    until the next one would overflow ``max_length``; closed segments end with
    a period. A sentence that alone exceeds ``max_length`` is split on word
    boundaries, and a single word longer than the limit becomes its own
    chunk. Segments shorter than 20 characters after trimming are dropped.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")

    if not text or len(text) <= max_length:
        return [text]

    sentences = [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]
    segments: List[str] = []
    current = ""

    for sentence in sentences:
        candidate = f"{current}. {sentence}" if current else sentence
        if len(candidate) <= max_length:
            current = candidate
            continue

        if current:
            segments.append(current + ".")
            current = ""

        if len(sentence) <= max_length:
            current = sentence
        else:
            chunks = _split_words(sentence, max_length)
            segments.extend(chunks[:-1])
            current = chunks[-1] if chunks else ""

    if current:
        segments.append(current if current.endswith(".") else current + ".")

    return [s for s in segments if len(s.strip()) >= MIN_SEGMENT_LENGTH]
