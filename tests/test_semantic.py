"""Tests for semantic search."""

import pytest

from libs.content_store import Record
from service_search.app.encoders.embedding_manager import EmbeddingManager
from service_search.app.models import KeywordOptions, MatchType, SemanticOptions
from service_search.app.records import filter_valid_records
from service_search.app.retrievers.keyword import keyword_search
from service_search.app.retrievers.semantic import semantic_search, structural_floor

from .conftest import HashingModel


@pytest.mark.asyncio
async def test_semantic_search_ranks_similar_content(provider, records):
    valid = filter_valid_records(records)
    options = SemanticOptions(threshold=0.3, include_structural_search=False)

    results = await semantic_search(provider, valid, "risk register", options)

    assert results
    assert results[0].topic == "Risk Management"
    assert all(r.match_type == MatchType.SEMANTIC for r in results)
    assert all(r.score >= 0.3 for r in results)
    assert all(r.semantic_score == r.score for r in results)
    assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)


@pytest.mark.asyncio
async def test_query_embedded_once(model, provider, records):
    """The query is embedded once, not once per record."""
    valid = filter_valid_records(records)
    await semantic_search(provider, valid, "stage boundary", SemanticOptions(threshold=0.0))
    calls_after_first = model.run_calls

    await semantic_search(provider, valid, "stage boundary", SemanticOptions(threshold=0.0))

    assert calls_after_first == len(valid) + 1
    assert model.run_calls == calls_after_first


@pytest.mark.asyncio
async def test_short_query_returns_nothing(provider, records):
    assert await semantic_search(provider, records, " r ") == []


def test_structural_floor_is_capped():
    assert structural_floor(0.4) == pytest.approx(0.8)
    assert structural_floor(0.8) == pytest.approx(0.9)
    assert structural_floor(1.0) == pytest.approx(0.95)


@pytest.mark.asyncio
async def test_structural_floor_applies_to_label_matches(provider, records):
    """A label match scores even when the content wording differs."""
    valid = filter_valid_records(records)
    query = "stakeholder engagement"

    with_labels = await semantic_search(provider, valid, query, SemanticOptions(threshold=0.5))
    without_labels = await semantic_search(
        provider, valid, query, SemanticOptions(threshold=0.5, include_structural_search=False)
    )

    assert [r.topic for r in with_labels] == ["Stakeholder Engagement"]
    assert with_labels[0].match_type == MatchType.STRUCTURAL
    assert with_labels[0].score == pytest.approx(0.9)
    assert with_labels[0].matched_segment == with_labels[0].content[:300]
    assert without_labels == []


@pytest.mark.asyncio
async def test_similarity_above_floor_wins(provider):
    records = [Record(
        topic="Risk register",
        content="Risk register risk register risk register entries.",
        source_key="pmbok",
    )]

    results = await semantic_search(provider, records, "risk register", SemanticOptions(threshold=0.3))

    assert len(results) == 1
    assert results[0].match_type == MatchType.SEMANTIC
    assert results[0].score > structural_floor(0.8)


@pytest.mark.asyncio
async def test_segments_that_fail_to_embed_are_skipped():
    provider = EmbeddingManager(HashingModel(fail_on=["corrupt"]))
    records = [
        Record(topic="Registers", content="The risk register lists every risk and its owner.", source_key="pmbok"),
        Record(topic="Archive", content="A corrupt risk register copy was found in the archive.", source_key="pmbok"),
    ]

    results = await semantic_search(
        provider, records, "risk register", SemanticOptions(threshold=0.1, include_structural_search=False)
    )

    assert [r.topic for r in results] == ["Registers"]


@pytest.mark.asyncio
async def test_query_that_fails_to_embed_returns_nothing(records):
    provider = EmbeddingManager(HashingModel(fail_on=["corrupt"]))
    assert await semantic_search(provider, records, "corrupt query") == []


@pytest.mark.asyncio
async def test_long_content_uses_best_segment(provider):
    """The best segment is reported as the matched excerpt."""
    content = (
        "Governance arrangements define decision rights across the organisation. "
        "The risk register is updated by each risk owner every week. "
        "Benefits are tracked after the project closes and handed over."
    )
    records = [Record(topic="Governance", content=content, source_key="iso2020")]

    results = await semantic_search(
        provider, records, "risk register owner", SemanticOptions(threshold=0.1, segment_length=80)
    )

    assert len(results) == 1
    assert "risk register" in results[0].matched_segment
    assert len(results[0].matched_segment) < len(content)


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["risk register", "business case", "project"])
async def test_failed_model_degrades_to_keyword_search(records, query):
    """With the model unavailable, results equal keyword search on the same input."""
    provider = EmbeddingManager(HashingModel(fail_load=True))
    valid = filter_valid_records(records)
    options = SemanticOptions(threshold=0.3, max_results=10)

    results = await semantic_search(provider, valid, query, options)

    assert results == keyword_search(valid, query, KeywordOptions(threshold=0.3, max_results=10))
