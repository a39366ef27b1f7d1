"""Tests for the PDF layout heuristics."""

from __future__ import annotations

import pytest

from market_rag.core.models.blocks import HeadingBlock, ListBlock, TableBlock, TextBlock
from market_rag.infrastructure.document_readers.pdf_layout import (
    DocumentStats,
    LayoutLine,
    LayoutThresholds,
    LayoutWord,
    compute_stats,
    dynamic_heading_thresholds,
    group_lines,
    heading_level,
    split_cells,
    structure_page,
)

STATS = DocumentStats(average_font_size=10.0, max_font_size=16.0, min_font_size=10.0)


def _word(text: str, x0: float, top: float, size: float = 10.0, fontname: str = "Helvetica") -> LayoutWord:
    return LayoutWord(text, x0, x0 + 30, top, size, fontname)


def _line(text: str, size: float = 10.0, bold: bool = False, top: float = 0.0) -> LayoutLine:
    return LayoutLine(text, size, bold, 50.0, top)


def _table_words() -> list[LayoutWord]:
    rows = [("Name", "Price", "Change"), ("AAPL", "190.5", "+1.2"), ("MSFT", "410.2", "-0.8")]
    words = []
    for r, cells in enumerate(rows):
        for c, cell in enumerate(cells):
            words.append(_word(cell, 50 + 100 * c, 100 + 20 * r))
    return words


class TestGroupLines:
    """Line grouping tests."""

    def test_words_sorted_left_to_right(self) -> None:
        """Words on one line are ordered by x position."""
        words = [_word("world", 45, 10), LayoutWord("hello", 10, 40, 10, 10)]

        lines = group_lines(words)

        assert [line.text for line in lines] == ["hello world"]

    def test_wide_gap_becomes_double_space(self) -> None:
        """Column gaps survive as double spaces."""
        lines = group_lines(_table_words())

        assert lines[0].text == "Name  Price  Change"
        assert len(lines) == 3


class TestTables:
    """Table detection tests."""

    def test_table_scenario(self) -> None:
        """Three aligned rows become one table with a caption."""
        blocks = structure_page(_table_words(), STATS)

        assert len(blocks) == 1
        table = blocks[0]
        assert isinstance(table, TableBlock)
        assert len(table.rows) == 3
        assert table.rows[1] == ("AAPL", "190.5", "+1.2")
        assert table.caption == "Name | Price | Change"
        assert table.markdown.splitlines()[1] == "| --- | --- | --- |"

    def test_split_cells_on_double_space(self) -> None:
        """Runs of spaces and tabs separate cells."""
        assert split_cells("Revenue  1,200\t+5%") == ["Revenue", "1,200", "+5%"]

    def test_single_space_fallback_bounds(self) -> None:
        """Single-space splitting only applies to table-like word counts."""
        assert split_cells("AAPL 190.5 +1.2") == ["AAPL", "190.5", "+1.2"]
        assert split_cells("one two") == ["one two"]
        long_line = "this sentence has far too many words to be a table row at all"
        assert split_cells(long_line) == [long_line]

    def test_single_row_is_not_a_table(self) -> None:
        """A lone table-like line stays text."""
        words = [_word("AAPL", 50, 100), _word("190.5", 150, 100), _word("+1.2", 250, 100)]

        blocks = structure_page(words, STATS)

        assert not any(isinstance(b, TableBlock) for b in blocks)


class TestHeadings:
    """Heading level tests."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("第一章 总论", 1),
            ("Chapter 2 Outlook", 1),
            ("1.2 Scope", 2),
            ("1.2.3 Detail", 3),
            ("（一）背景", 3),
            ("二、市场回顾", 2),
        ],
    )
    def test_numbering_patterns(self, text: str, expected: int) -> None:
        """Numbering patterns decide the level."""
        assert heading_level(_line(text), STATS) == expected

    def test_font_size_levels(self) -> None:
        """Larger fonts map to higher levels."""
        assert heading_level(_line("Market Overview", size=16.0), STATS) == 1
        assert heading_level(_line("Market Overview", size=13.5), STATS) == 2
        assert heading_level(_line("Market Overview", size=11.5), STATS) == 3

    def test_bold_body_size_is_level_four(self) -> None:
        """Bold text at body size is a minor heading."""
        assert heading_level(_line("Key risks", bold=True), STATS) == 4

    def test_sentence_is_not_heading(self) -> None:
        """Body text and sentences are not headings."""
        assert heading_level(_line("Shares rose on strong demand"), STATS) is None
        assert heading_level(_line("Big Font Sentence.", size=16.0), STATS) is None

    def test_long_line_is_not_heading(self) -> None:
        """Lines over the length limit are never headings."""
        assert heading_level(_line("1 " + "x" * 120), STATS) is None


class TestStats:
    """Document statistics tests."""

    def test_empty_document_uses_defaults(self) -> None:
        """No words gives the default font size."""
        stats = compute_stats([])

        assert stats.average_font_size == LayoutThresholds().default_font_size
        assert stats.word_count == 0

    def test_average_font_size(self) -> None:
        """Average is taken over the sampled words."""
        pages = [[_word("a", 0, 0, size=10.0), _word("b", 100, 0, size=20.0)]]

        assert compute_stats(pages).average_font_size == pytest.approx(15.0)

    def test_dynamic_thresholds(self) -> None:
        """Distinct large ratios become the heading thresholds."""
        thresholds = dynamic_heading_thresholds([2.0, 1.6, 1.6, 1.3, 1.0])

        assert (thresholds.level1, thresholds.level2, thresholds.level3) == (2.0, 1.6, 1.3)

    def test_single_ratio(self) -> None:
        """One distinct ratio derives the lower levels from it."""
        thresholds = dynamic_heading_thresholds([1.8])

        assert thresholds.level1 == 1.8
        assert thresholds.level2 == pytest.approx(1.6)


class TestStructurePage:
    """Page structuring tests."""

    def test_heading_paragraph_and_list(self) -> None:
        """Headings, body text and list items become separate blocks."""
        words = [
            LayoutWord("Overview", 50, 110, 100, 16.0),
            LayoutWord("Markets", 50, 90, 130, 10.0),
            LayoutWord("rallied", 95, 130, 130, 10.0),
            LayoutWord("strongly", 50, 95, 142, 10.0),
            LayoutWord("-", 50, 55, 170, 10.0),
            LayoutWord("banks", 60, 90, 170, 10.0),
            LayoutWord("-", 50, 55, 182, 10.0),
            LayoutWord("energy", 60, 95, 182, 10.0),
        ]

        blocks = structure_page(words, STATS, start_order=10)

        assert isinstance(blocks[0], HeadingBlock)
        assert blocks[0].content == "Overview"
        assert isinstance(blocks[1], TextBlock)
        assert blocks[1].content == "Markets rallied strongly"
        assert isinstance(blocks[2], ListBlock)
        assert blocks[2].items == ("banks", "energy")
        assert [b.order for b in blocks] == [10, 11, 12]

    def test_ordered_list_start(self) -> None:
        """An ordered list keeps its first number."""
        words = [
            LayoutWord("3.", 50, 60, 100, 10.0),
            LayoutWord("Third", 65, 95, 100, 10.0),
            LayoutWord("4.", 50, 60, 112, 10.0),
            LayoutWord("Fourth", 65, 100, 112, 10.0),
        ]

        blocks = structure_page(words, STATS)

        assert len(blocks) == 1
        assert blocks[0].ordered
        assert blocks[0].start == 3
        assert blocks[0].text == "3. Third\n4. Fourth"
