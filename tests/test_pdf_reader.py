"""Tests for the pypdf-backed reader; pages are mocked."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from market_rag.core.models.blocks import ImageBlock, TextBlock
from market_rag.infrastructure.document_readers.pdf_layout import DocumentStats
from market_rag.infrastructure.document_readers.pdf_reader import PdfBlockReader


def _page(fragments: list[tuple[str, float, float, str, float]]) -> MagicMock:
    """Page whose text visitor receives (text, x, y, font, size) fragments."""
    page = MagicMock()
    page.mediabox.height = 800

    def extract_text(visitor_text=None):
        for text, x, y, font, size in fragments:
            visitor_text(text, [1, 0, 0, 1, 0, 0], [1, 0, 0, 1, x, y], {"/BaseFont": font}, size)
        return " ".join(f[0] for f in fragments)

    page.extract_text.side_effect = extract_text
    return page


class TestPdfBlockReader:
    """Reader tests."""

    def test_extract_words_positions(self) -> None:
        """Fragments get page-top coordinates, size and font."""
        page = _page([("Revenue", 72, 700, "/Helvetica-Bold", 12)])

        words = PdfBlockReader().extract_words(page)

        assert len(words) == 1
        word = words[0]
        assert word.text == "Revenue"
        assert word.x0 == 72
        assert word.top == 100
        assert word.size == 12
        assert word.bold

    def test_multiline_fragment(self) -> None:
        """Fragments with line breaks become one word per line."""
        page = _page([("first\nsecond", 72, 700, "/Helvetica", 10)])

        words = PdfBlockReader().extract_words(page)

        assert [w.text for w in words] == ["first", "second"]
        assert words[1].top == words[0].top + 10

    def test_layout_failure_falls_back_to_text(self) -> None:
        """A page without layout words is read as plain text."""
        page = MagicMock()
        page.extract_text.return_value = "Plain   page text"

        blocks = PdfBlockReader()._page_blocks(page, None, DocumentStats(), 1, 5)

        assert blocks == [TextBlock("Plain page text", 5)]

    def test_page_images(self) -> None:
        """Embedded images become image blocks with positional alt text."""
        page = MagicMock()
        page.images = [MagicMock(data=b"img1"), MagicMock(data=b"img2")]

        blocks = PdfBlockReader._page_images(page, 3, 10)

        assert all(isinstance(b, ImageBlock) for b in blocks)
        assert [b.alt_text for b in blocks] == ["page3_image1", "page3_image2"]
        assert [b.order for b in blocks] == [10, 11]

    def test_supports(self) -> None:
        """Only PDF files are supported."""
        reader = PdfBlockReader()
        assert reader.supports(Path("a.PDF"))
        assert not reader.supports(Path("a.docx"))
