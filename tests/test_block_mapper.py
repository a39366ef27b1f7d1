"""Tests for block to paragraph mapping."""

from __future__ import annotations

import pytest

from market_rag.core.models.blocks import (
    IMAGE_PLACEHOLDER,
    BlockKind,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    TextBlock,
)
from market_rag.core.models.document import ImageMetadata
from market_rag.core.services.block_mapper import (
    DocumentBlockMapper,
    paragraph_key,
    source_type_for,
)
from market_rag.core.services.chunking_service import TextChunkingService
from market_rag.infrastructure.document_readers.tables import build_table_block

URI = "/docs/weekly.md"


class TestDocumentBlockMapper:
    """Mapping tests."""

    @pytest.fixture
    def mapper(self) -> DocumentBlockMapper:
        """Mapper with small budgets."""
        return DocumentBlockMapper(
            TextChunkingService(max_tokens_per_line=20, max_tokens_per_paragraph=50, overlap_tokens=0)
        )

    def test_text_block_advances_order(self, mapper: DocumentBlockMapper) -> None:
        """Each chunk takes the next order number."""
        text = "\n".join(f"Line {i} about revenue growth in the last quarter." for i in range(10))
        mapped = mapper.map_block(TextBlock(text, 0), URI, order=5)

        assert len(mapped.paragraphs) > 1
        assert [p.order for p in mapped.paragraphs] == list(range(5, 5 + len(mapped.paragraphs)))
        assert mapped.next_order == 5 + len(mapped.paragraphs)

    def test_keys_are_stable(self, mapper: DocumentBlockMapper) -> None:
        """Mapping the same block twice gives the same keys."""
        block = TextBlock("股票价格上涨。", 0)

        first = mapper.map_block(block, URI, 0)
        second = mapper.map_block(block, URI, 0)

        assert [p.key for p in first.paragraphs] == [p.key for p in second.paragraphs]

    def test_keys_differ_by_document(self, mapper: DocumentBlockMapper) -> None:
        """Same content in another document gets another key."""
        block = TextBlock("Same text", 0)

        first = mapper.map_block(block, "/docs/a.md", 0)
        second = mapper.map_block(block, "/docs/b.md", 0)

        assert first.paragraphs[0].key != second.paragraphs[0].key

    def test_heading_sets_section(self, mapper: DocumentBlockMapper) -> None:
        """Level 1-3 headings become the section of later blocks."""
        heading = mapper.map_block(HeadingBlock("市场概览", 2, 0), URI, 0)
        body = mapper.map_block(TextBlock("Body", 1), URI, heading.next_order, heading.section)

        assert heading.section == "市场概览"
        assert heading.paragraphs[0].heading_level == 2
        assert body.paragraphs[0].section == "市场概览"

    def test_deep_heading_keeps_section(self, mapper: DocumentBlockMapper) -> None:
        """Level 4+ headings do not replace the section."""
        mapped = mapper.map_block(HeadingBlock("Detail", 4, 0), URI, 0, section="Overview")

        assert mapped.section == "Overview"
        assert mapped.paragraphs[0].section == "Overview"

    def test_list_block_is_one_paragraph(self, mapper: DocumentBlockMapper) -> None:
        """A list maps to a single paragraph with its numbering."""
        block = ListBlock(("first", "second"), ordered=True, order=0, start=3)
        mapped = mapper.map_block(block, URI, 0)

        assert len(mapped.paragraphs) == 1
        assert mapped.paragraphs[0].text == "3. first\n4. second"
        assert mapped.paragraphs[0].list_ordered is True

    def test_nested_list_paragraph_numbering(self, mapper: DocumentBlockMapper) -> None:
        """Nested bullets keep the stored ordered numbering monotonic."""
        block = ListBlock(
            ("A", "x", "B"), ordered=True, order=0, start=5,
            levels=(0, 1, 0), item_ordered=(True, False, True),
        )
        mapped = mapper.map_block(block, URI, 0)

        assert mapped.paragraphs[0].text == "5. A\n  - x\n6. B"

    def test_table_block_is_one_paragraph(self, mapper: DocumentBlockMapper) -> None:
        """A table maps to one paragraph keyed by its content hash."""
        table = build_table_block([["Name", "Price"], ["AAPL", "190"]], 0)
        mapped = mapper.map_block(table, URI, 7)

        assert len(mapped.paragraphs) == 1
        paragraph = mapped.paragraphs[0]
        assert paragraph.block_kind is BlockKind.TABLE
        assert paragraph.text == table.text
        assert paragraph.content_hash == table.content_hash
        assert paragraph.key == paragraph_key(URI, BlockKind.TABLE, 7, table.content_hash)

    def test_image_uses_metadata(self, mapper: DocumentBlockMapper) -> None:
        """Image paragraphs carry caption, stored path and embedding."""
        block = ImageBlock(b"png-bytes", 0, alt_text="chart")
        metadata = ImageMetadata("K线走势图", "images/abc.png", [0.1, 0.2])

        mapped = mapper.map_block(block, URI, 0, image_metadata=metadata)

        paragraph = mapped.paragraphs[0]
        assert paragraph.block_kind is BlockKind.IMAGE
        assert paragraph.text == "K线走势图"
        assert paragraph.image_uri == "images/abc.png"
        assert paragraph.image_embedding == [0.1, 0.2]

    def test_image_without_metadata_uses_alt_text(self, mapper: DocumentBlockMapper) -> None:
        """Without metadata the alt text, then the placeholder, is used."""
        with_alt = mapper.map_block(ImageBlock(b"x", 0, alt_text="chart"), URI, 0)
        without_alt = mapper.map_block(ImageBlock(b"y", 0), URI, 0)

        assert with_alt.paragraphs[0].text == "chart"
        assert without_alt.paragraphs[0].text == IMAGE_PLACEHOLDER

    def test_blank_text_produces_nothing(self, mapper: DocumentBlockMapper) -> None:
        """Whitespace-only text keeps the order unchanged."""
        mapped = mapper.map_block(TextBlock("   ", 0), URI, 3)

        assert mapped.paragraphs == []
        assert mapped.next_order == 3


class TestSourceType:
    """Source type detection tests."""

    def test_source_types(self) -> None:
        """Extensions and web links map to source types."""
        assert source_type_for("/docs/a.pdf") == "pdf"
        assert source_type_for("/docs/a.DOCX") == "docx"
        assert source_type_for("/docs/a.markdown") == "markdown"
        assert source_type_for("https://example.com/news/1") == "web"
        assert source_type_for("/docs/notes") == "text"
