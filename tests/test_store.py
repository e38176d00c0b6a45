"""Tests for sentence splitting, ingestion and search in the vector store."""

import pytest

from vectorpipe.core.store import VectorStore, split_sentences


def test_split_sentences_trims_and_drops_empty_segments():
    assert split_sentences("A. B. C.") == ["A", "B", "C"]
    assert split_sentences("  One.. Two .  . Three") == ["One", "Two", "Three"]
    assert split_sentences("...") == []
    assert split_sentences("") == []


async def test_ingest_three_sentences(local_provider):
    store = VectorStore(local_provider)

    added = await store.ingest("A. B. C.")

    assert added == 3
    assert len(store) == 3
    assert [entry.text for entry in store] == ["A", "B", "C"]
    assert all(entry.dimension == 256 for entry in store)


async def test_ingest_skips_segments_that_fail_to_embed(fake_provider):
    store = VectorStore(fake_provider)

    added = await store.ingest("Cats are mammals. Unknown sentence. Paris is a city.")

    assert added == 2
    assert [entry.text for entry in store.entries] == ["Cats are mammals", "Paris is a city"]
    assert fake_provider.calls == ["Cats are mammals", "Unknown sentence", "Paris is a city"]


async def test_ingest_appends_in_order(fake_provider):
    store = VectorStore(fake_provider)
    await store.ingest("Cats are mammals.")
    await store.ingest("Dogs are mammals. Birds can fly.")

    assert [entry.text for entry in store] == [
        "Cats are mammals",
        "Dogs are mammals",
        "Birds can fly",
    ]


async def test_search_returns_best_matches_first(fake_provider):
    store = VectorStore(fake_provider)
    await store.ingest("Paris is a city. Dogs are mammals. Cats are mammals.")

    results = await store.search("Tell me about pets", limit=2)

    assert results == ["Cats are mammals", "Dogs are mammals"]


async def test_search_applies_threshold(fake_provider):
    store = VectorStore(fake_provider)
    await store.ingest("Cats are mammals. Dogs are mammals. Paris is a city.")

    unfiltered = await store.search("Tell me about pets", limit=5)
    filtered = await store.search("Tell me about pets", limit=5, threshold=0.5)

    assert unfiltered == ["Cats are mammals", "Dogs are mammals", "Paris is a city"]
    assert filtered == ["Cats are mammals", "Dogs are mammals"]


async def test_rank_scores_are_non_increasing(fake_provider):
    store = VectorStore(fake_provider)
    await store.ingest("Birds can fly. Paris is a city. Dogs are mammals. Cats are mammals.")

    results = await store.rank("Capital of France", limit=4)

    assert results[0].text == "Paris is a city"
    scores = [result.score for result in results]
    assert scores == sorted(scores, reverse=True)


async def test_search_on_empty_store_returns_nothing(fake_provider):
    store = VectorStore(fake_provider)

    assert await store.search("Tell me about pets", limit=5) == []
    assert fake_provider.calls == []


async def test_search_with_failing_query_embedding_returns_nothing(fake_provider):
    store = VectorStore(fake_provider)
    await store.ingest("Cats are mammals.")

    assert await store.search("no vector for this", limit=5) == []


@pytest.mark.parametrize("limit", [1, 2, 3, 10])
async def test_search_never_exceeds_limit(local_provider, limit):
    store = VectorStore(local_provider)
    await store.ingest("One fish. Two fish. Red fish. Blue fish. Old fish. New fish.")

    results = await store.search("fish", limit=limit)

    assert len(results) == min(limit, 6)
