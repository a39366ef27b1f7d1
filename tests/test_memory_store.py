"""Tests for the in-memory vector store."""

from __future__ import annotations

import pytest

from market_rag.infrastructure.embeddings.hash_embedder import HashEmbedder
from market_rag.infrastructure.vector_stores.memory_store import InMemoryVectorStore
from tests.fixtures.paragraphs import DIMENSION, make_paragraph


class TestInMemoryVectorStore:
    """Store tests."""

    @pytest.fixture
    def store(self) -> InMemoryVectorStore:
        """Store holding three paragraphs."""
        store = InMemoryVectorStore()
        for i, text in enumerate(["股票价格上涨", "bond yields fell", "weather report"]):
            store.upsert(make_paragraph(text, order=i))
        return store

    def test_upsert_is_idempotent(self, store: InMemoryVectorStore) -> None:
        """Upserting the same key replaces the record."""
        store.upsert(make_paragraph("bond yields rose", order=1))

        assert store.count() == 3
        assert store.get("/docs/report.md:1").text == "bond yields rose"

    def test_upsert_requires_embedding(self, store: InMemoryVectorStore) -> None:
        """A paragraph without text embedding is rejected."""
        paragraph = make_paragraph("no vector", order=9)
        paragraph.text_embedding = []

        with pytest.raises(ValueError):
            store.upsert(paragraph)

    def test_search_finds_exact_vector(self, store: InMemoryVectorStore) -> None:
        """The paragraph with the query's vector ranks first."""
        query = HashEmbedder(DIMENSION).embed("bond yields fell")

        hits = store.search(query, limit=2)

        assert len(hits) == 2
        assert hits[0][0].text == "bond yields fell"
        assert hits[0][1] == pytest.approx(1.0, abs=1e-5)
        assert hits[0][1] >= hits[1][1]

    def test_search_skips_other_dimensions(self, store: InMemoryVectorStore) -> None:
        """Vectors of another dimension are not compared."""
        assert store.search([1.0, 0.0, 0.0], limit=5) == []

    def test_search_image_field(self, store: InMemoryVectorStore) -> None:
        """Image search only sees paragraphs with image embeddings."""
        paragraph = make_paragraph("chart", order=5)
        paragraph.image_embedding = [1.0, 0.0]
        store.upsert(paragraph)

        hits = store.search([1.0, 0.0], limit=5, field="image_embedding")

        assert [p.text for p, _ in hits] == ["chart"]

    def test_unknown_field(self, store: InMemoryVectorStore) -> None:
        """An unknown vector field is rejected."""
        with pytest.raises(ValueError):
            store.search([1.0], field="title_embedding")

    def test_returned_records_are_copies(self, store: InMemoryVectorStore) -> None:
        """Mutating a returned paragraph does not change the store."""
        store.get("/docs/report.md:0").text = "changed"

        assert store.get("/docs/report.md:0").text == "股票价格上涨"
