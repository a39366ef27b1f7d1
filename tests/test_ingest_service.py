"""Tests for document ingestion."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from market_rag.core.models.blocks import (
    IMAGE_PLACEHOLDER,
    BlockKind,
    HeadingBlock,
    ImageBlock,
    TextBlock,
)
from market_rag.core.services.block_mapper import DocumentBlockMapper
from market_rag.core.services.chunking_service import TextChunkingService
from market_rag.core.services.ingest_service import IngestService
from market_rag.infrastructure.document_readers import CompositeBlockReader
from market_rag.infrastructure.embeddings.hash_embedder import HashEmbedder
from market_rag.infrastructure.storage.local_image_storage import LocalImageStorage
from market_rag.infrastructure.vector_stores.memory_store import InMemoryVectorStore
from tests.fixtures.paragraphs import DIMENSION

URI = "/docs/report.md"


class TestIngestService:
    """Ingestion tests with the in-memory store."""

    @pytest.fixture
    def store(self) -> InMemoryVectorStore:
        """Empty store."""
        return InMemoryVectorStore()

    def _service(self, store: InMemoryVectorStore, docs_path: Path | str = "./docs", **kwargs) -> IngestService:
        return IngestService(
            reader=CompositeBlockReader(),
            mapper=DocumentBlockMapper(TextChunkingService()),
            embedder=HashEmbedder(DIMENSION),
            vector_store=store,
            docs_path=str(docs_path),
            **kwargs,
        )

    def test_ingest_text_file(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """Each paragraph of a text file is upserted with an embedding."""
        path = tmp_path / "notes.txt"
        path.write_text("第一段内容。\n\n第二段内容。", encoding="utf-8")

        count = self._service(store).ingest_file(path)

        assert count == 2
        assert store.count() == 2

    def test_reingest_is_idempotent(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """Ingesting the same file twice keeps one record per paragraph."""
        path = tmp_path / "notes.txt"
        path.write_text("first\n\nsecond", encoding="utf-8")
        service = self._service(store)

        service.ingest_file(path)
        service.ingest_file(path)

        assert store.count() == 2

    def test_unsupported_file(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """Unsupported files are skipped."""
        path = tmp_path / "data.xyz"
        path.write_text("x", encoding="utf-8")

        assert self._service(store).ingest_file(path) == 0

    def test_run_indexes_docs_folder(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """run() without paths indexes every supported file in the docs folder."""
        (tmp_path / "a.txt").write_text("First.\n\nSecond.", encoding="utf-8")
        (tmp_path / "b.md").write_text("# Title\n\nBody text.", encoding="utf-8")
        (tmp_path / "c.xyz").write_text("ignored", encoding="utf-8")

        total = self._service(store, docs_path=tmp_path, workers=2).run()

        assert total == 4
        assert store.count() == 4

    def test_run_missing_docs_folder(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """A missing docs folder indexes nothing."""
        assert self._service(store, docs_path=tmp_path / "missing").run() == 0

    def test_failed_upsert_is_skipped(self, tmp_path: Path) -> None:
        """A store failure for one paragraph does not stop the others."""
        store = MagicMock()
        store.upsert.side_effect = [RuntimeError("write failed"), None]
        path = tmp_path / "notes.txt"
        path.write_text("first\n\nsecond", encoding="utf-8")

        assert self._service(store).ingest_file(path) == 1

    def test_invalid_workers(self, store: InMemoryVectorStore) -> None:
        """At least one worker is required."""
        with pytest.raises(ValueError):
            self._service(store, workers=0)


class TestBuildParagraphs:
    """Block to paragraph conversion tests."""

    @pytest.fixture
    def store(self) -> InMemoryVectorStore:
        """Empty store."""
        return InMemoryVectorStore()

    def _service(self, store: InMemoryVectorStore, **kwargs) -> IngestService:
        return IngestService(
            reader=CompositeBlockReader(),
            mapper=DocumentBlockMapper(TextChunkingService()),
            embedder=HashEmbedder(DIMENSION),
            vector_store=store,
            **kwargs,
        )

    def test_order_and_section_are_threaded(self, store: InMemoryVectorStore) -> None:
        """Orders are consecutive and sections follow headings."""
        blocks = [
            TextBlock("intro", 0),
            HeadingBlock("行业分析", 1, 1),
            TextBlock("body", 2),
        ]

        paragraphs = self._service(store).build_paragraphs(blocks, URI)

        assert [p.order for p in paragraphs] == [0, 1, 2]
        assert [p.section for p in paragraphs] == [None, "行业分析", "行业分析"]

    def test_blocks_sorted_by_order(self, store: InMemoryVectorStore) -> None:
        """Blocks are mapped in their document order."""
        blocks = [TextBlock("second", 1), TextBlock("first", 0)]

        paragraphs = self._service(store).build_paragraphs(blocks, URI)

        assert [p.text for p in paragraphs] == ["first", "second"]

    def test_duplicate_images_are_skipped(self, store: InMemoryVectorStore) -> None:
        """The same image bytes are indexed once per document."""
        blocks = [
            ImageBlock(b"same", 0, alt_text="chart"),
            TextBlock("between", 1),
            ImageBlock(b"same", 2, alt_text="chart again"),
            ImageBlock(b"other", 3),
        ]

        paragraphs = self._service(store).build_paragraphs(blocks, URI)

        images = [p for p in paragraphs if p.block_kind is BlockKind.IMAGE]
        assert len(images) == 2
        assert images[0].text == "chart"
        assert images[1].text == IMAGE_PLACEHOLDER

    def test_image_enrichment(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """Captions, stored paths and image embeddings are attached."""
        captioner = MagicMock()
        captioner.describe.return_value = "上证指数日K线图"
        image_embedder = MagicMock()
        image_embedder.embed_image.return_value = [0.6, 0.8]
        service = self._service(
            store,
            captioner=captioner,
            image_embedder=image_embedder,
            image_storage=LocalImageStorage(tmp_path),
        )

        paragraphs = service.build_paragraphs([ImageBlock(b"png", 0, alt_text="k")], URI)

        paragraph = paragraphs[0]
        assert paragraph.text == "上证指数日K线图"
        assert paragraph.image_embedding == [0.6, 0.8]
        assert paragraph.image_uri.startswith("images/")
        assert (tmp_path / paragraph.image_uri).read_bytes() == b"png"

    def test_placeholder_caption_falls_back_to_alt(self, store: InMemoryVectorStore) -> None:
        """A placeholder caption does not replace the alt text."""
        captioner = MagicMock()
        captioner.describe.return_value = IMAGE_PLACEHOLDER

        paragraphs = self._service(store, captioner=captioner).build_paragraphs(
            [ImageBlock(b"png", 0, alt_text="走势")], URI
        )

        assert paragraphs[0].text == "走势"

    def test_description_wins_over_captioner(self, store: InMemoryVectorStore) -> None:
        """An existing description is kept and the captioner is not called."""
        captioner = MagicMock()

        paragraphs = self._service(store, captioner=captioner).build_paragraphs(
            [ImageBlock(b"png", 0, description="given")], URI
        )

        assert paragraphs[0].text == "given"
        captioner.describe.assert_not_called()
