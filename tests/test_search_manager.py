"""Tests for the search orchestrator."""

import asyncio
import json

import pytest

from libs.common.config import SearchConfig
from libs.content_store.base import BookSource
from libs.content_store.filesystem import FileContentStore
from service_search.app.encoders.embedding_manager import EmbeddingManager, ModelState
from service_search.app.hybrid.search_manager import SearchManager
from service_search.app.models import MatchType, SearchMode
from service_search.app.retrievers.keyword import keyword_search

from .conftest import BOOKS, HashingModel, MemoryContentStore


@pytest.mark.asyncio
async def test_initialize_loads_and_filters_books(search_manager, metrics):
    await search_manager.initialize(load_model=False)

    assert list(search_manager.records_by_source) == ["pmbok", "prince2"]
    assert len(search_manager.records_by_source["pmbok"]) == 2
    assert len(search_manager.records_by_source["prince2"]) == 2
    assert all(r.source_key == "pmbok" for r in search_manager.records_by_source["pmbok"])
    assert await search_manager.health_check()
    assert 'search_records_loaded{source="pmbok"} 2.0' in metrics.get_metrics()


@pytest.mark.asyncio
async def test_failing_source_contributes_no_records(search_config, provider):
    """One unreachable book does not affect the others."""
    store = MemoryContentStore(BOOKS, failing=["iso2021"])
    manager = SearchManager(search_config, store, provider)

    await manager.initialize(load_model=False)

    assert manager.records_by_source["iso2021"] == []
    assert len(manager.records) == 4
    assert await manager.health_check()


GOOD_BOOK = {"records": [{
    "topic": "Risk Management",
    "subtopic": "Risk Register",
    "content": "The risk register records identified risks, their owners and the planned responses.",
}]}


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_book", [
    b'{"records":[{"topic":"\xff\xfe"}]}',
    b'{"records": 5}',
    b'{"sections": {"Risk": {"records": "none"}}}',
])
async def test_malformed_book_file_contributes_no_records(tmp_path, search_config, provider, bad_book):
    """A book file that is not valid UTF-8 or has the wrong shape loads as empty."""
    (tmp_path / "good.json").write_text(json.dumps(GOOD_BOOK), encoding="utf-8")
    (tmp_path / "bad.json").write_bytes(bad_book)
    books = {
        "good": BookSource(key="good", name="Good", file="good.json"),
        "bad": BookSource(key="bad", name="Bad", file="bad.json"),
    }
    manager = SearchManager(search_config, FileContentStore(tmp_path, books), provider)

    await manager.initialize(load_model=False)

    assert manager.records_by_source["bad"] == []
    assert len(manager.records_by_source["good"]) == 1
    outcome = await manager.search("risk register", "keyword")
    assert [r.source_key for r in outcome.results] == ["good"]


@pytest.mark.asyncio
async def test_only_keyword_before_model_is_ready(search_manager):
    await search_manager.initialize(load_model=False)

    assert search_manager.state == ModelState.UNINITIALIZED
    assert search_manager.available_modes() == ["keyword"]

    outcome = await search_manager.search("risk register", SearchMode.SEMANTIC)

    assert outcome.mode == "keyword"
    assert outcome.fallback
    assert outcome.results
    assert all(r.match_type == MatchType.KEYWORD for r in outcome.results)


@pytest.mark.asyncio
async def test_all_modes_once_model_is_ready(search_manager):
    await search_manager.initialize()
    await search_manager.start_model_loading()

    assert search_manager.state == ModelState.MODEL_READY
    assert search_manager.available_modes() == ["keyword", "semantic", "hybrid"]

    semantic = await search_manager.search("risk register", "semantic")
    hybrid = await search_manager.search("risk register", "hybrid")

    assert semantic.mode == "semantic" and not semantic.fallback
    assert hybrid.mode == "hybrid" and not hybrid.fallback
    assert any(r.match_type == MatchType.HYBRID for r in hybrid.results)


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["semantic", "hybrid"])
async def test_failed_model_serves_keyword_results(search_config, content_store, mode):
    """A failed model leaves keyword search working for every request."""
    manager = SearchManager(search_config, content_store, EmbeddingManager(HashingModel(fail_load=True)))
    await manager.initialize()
    await manager.start_model_loading()

    assert manager.state == ModelState.MODEL_FAILED
    assert manager.available_modes() == ["keyword"]
    assert manager.status()["model_error"]

    outcome = await manager.search("risk register", mode)

    assert outcome.mode == "keyword"
    assert outcome.results == keyword_search(manager.records, "risk register", manager.keyword_options())


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["risk register", "unlabeled", "schedule management", "page layout"])
async def test_unlabeled_records_never_returned(search_manager, query):
    await search_manager.initialize()
    await search_manager.start_model_loading()

    for mode in SearchMode:
        outcome = await search_manager.search(query, mode)
        assert all(
            "unlabeled" not in (r.subtopic or "").lower() for r in outcome.results
        )
        assert all(r.topic != "Schedule Management" for r in outcome.results)


@pytest.mark.asyncio
async def test_latest_search_is_published(search_manager):
    await search_manager.initialize(load_model=False)

    first = await search_manager.search("risk", "keyword")
    second = await search_manager.search("business case", "keyword")

    assert (first.generation, second.generation) == (1, 2)
    assert search_manager.current is second


@pytest.mark.asyncio
async def test_superseded_search_is_not_published(search_config, content_store):
    """Results of a search overtaken by a newer one are marked stale."""
    provider = EmbeddingManager(HashingModel(delay=0.05))
    manager = SearchManager(search_config, content_store, provider)
    await manager.initialize()
    await manager.start_model_loading()

    slow = asyncio.create_task(manager.search("stage boundary review", "semantic"))
    await asyncio.sleep(0)
    fast = await manager.search("risk", "keyword")
    slow_outcome = await slow

    assert slow_outcome.stale
    assert not fast.stale
    assert slow_outcome.generation < fast.generation
    assert manager.current is fast


@pytest.mark.asyncio
async def test_debounce_abandons_superseded_queries(content_store, provider):
    config = SearchConfig(search_debounce_seconds=0.05)
    manager = SearchManager(config, content_store, provider)
    await manager.initialize(load_model=False)

    first, second = await asyncio.gather(
        manager.search("ris", "keyword"),
        manager.search("risk", "keyword"),
    )

    assert first.stale and first.results == []
    assert not second.stale and second.results
    assert manager.current is second


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["a", " r ", "   ", ""])
async def test_short_query_returns_no_results(search_manager, metrics, query):
    """Queries under two characters clear the results without searching."""
    await search_manager.initialize(load_model=False)
    await search_manager.search("risk", "keyword")

    outcome = await search_manager.search(query, "keyword")

    assert outcome.results == []
    assert not outcome.stale
    assert outcome.generation == 2
    assert search_manager.current is outcome
    assert 'search_requests_total{mode="keyword"} 1.0' in metrics.get_metrics()


@pytest.mark.asyncio
async def test_unexpected_failure_falls_back_to_basic_search(search_manager, monkeypatch, metrics):
    await search_manager.initialize()
    await search_manager.start_model_loading()

    async def broken_embed(text):
        raise RuntimeError("device lost")

    monkeypatch.setattr(search_manager.provider, "embed", broken_embed)

    outcome = await search_manager.search("risk", "semantic")

    assert outcome.mode == "basic"
    assert outcome.fallback
    assert outcome.results
    assert outcome.results[0].score == 1.0
    assert 'fallback_mode="basic"' in metrics.get_metrics()


@pytest.mark.asyncio
async def test_search_latency_is_logged(search_manager, monkeypatch):
    """Each completed search reports its latency through the performance logger."""
    logged = []
    monkeypatch.setattr(
        "service_search.app.hybrid.search_manager.log_performance",
        lambda operation, duration_ms, **kwargs: logged.append((operation, duration_ms, kwargs)),
    )
    await search_manager.initialize(load_model=False)

    outcome = await search_manager.search("risk register", "keyword")

    assert len(logged) == 1
    operation, duration_ms, fields = logged[0]
    assert operation == "search"
    assert duration_ms >= 0
    assert fields["mode"] == "keyword"
    assert fields["generation"] == outcome.generation
    assert fields["results_count"] == len(outcome.results)


@pytest.mark.asyncio
async def test_unknown_mode_rejected(search_manager):
    await search_manager.initialize(load_model=False)
    with pytest.raises(ValueError):
        await search_manager.search("risk", "fuzzy")


@pytest.mark.asyncio
async def test_status(search_manager):
    await search_manager.initialize(load_model=False)
    await search_manager.search("risk", "keyword")

    status = search_manager.status()

    assert status["model_state"] == "uninitialized"
    assert status["model_error"] is None
    assert status["available_modes"] == ["keyword"]
    assert status["records"] == {"pmbok": 2, "prince2": 2}
    assert status["generation"] == 1
    assert status["cache"]["size"] == 0


@pytest.mark.asyncio
async def test_cleanup_releases_resources(search_manager, content_store):
    await search_manager.initialize()
    await search_manager.start_model_loading()

    await search_manager.cleanup()

    assert search_manager.state == ModelState.UNINITIALIZED
    assert content_store.closed
