"""Layout heuristics for PDF pages.

Structuring runs in two passes. ``compute_stats`` reads words from the
first pages and returns an immutable ``DocumentStats``; ``structure_page``
is then a pure function of one page's words and those stats. Inputs are
plain ``LayoutWord`` values, so the heuristics do not depend on a PDF
library.
"""
import re
from dataclasses import dataclass, field
from statistics import mean
from typing import Iterable, Optional, Sequence

from market_rag.core.models.blocks import (
    DocumentBlock,
    HeadingBlock,
    ListBlock,
    TextBlock,
)

from .tables import build_table_block, normalize_columns

CHAPTER_RE = re.compile(r"^\s*(第[一二三四五六七八九十\d]+章|Chapter\s+\d+)", re.IGNORECASE)
SECTION_RE = re.compile(r"^\s*(\d+(\.\d+)*)\s+")
CN_SECTION_RE = re.compile(r"^\s*([一二三四五六七八九十]|[1-9]\d*)、")
CN_SUBSECTION_RE = re.compile(r"^\s*（([一二三四五六七八九十]|[1-9]\d*)）")
NUMBERED_LIST_RE = re.compile(r"^\s*(\d+\.|\d+\)|\(\d+\))\s+")
BULLET_LIST_RE = re.compile(r"^\s*[•\-\*◦▪▫]\s+")
CELL_SPLIT_RE = re.compile(r"\s{2,}|\t+")
_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class LayoutThresholds:
    """Tunable constants of the layout heuristics."""
    stats_pages: int = 5
    default_font_size: float = 12.0
    candidate_ratio: float = 1.05
    heading_level1: float = 1.5
    heading_level2: float = 1.3
    heading_level3: float = 1.1
    bold_level3_ratio: float = 1.2
    heading_max_chars: int = 100
    heading_max_words: int = 10
    line_tolerance: float = 1.0
    column_gap_ratio: float = 1.0
    paragraph_gap_ratio: float = 1.8
    merge_font_delta: float = 2.0
    min_table_columns: int = 2
    min_table_rows: int = 2
    max_avg_cell_length: int = 60
    table_gap_allowance: int = 1
    single_space_min_words: int = 3
    single_space_max_words: int = 8


@dataclass(frozen=True)
class LayoutWord:
    """A positioned text fragment; ``top`` grows down the page."""
    text: str
    x0: float
    x1: float
    top: float
    size: float
    fontname: str = ""

    @property
    def bold(self) -> bool:
        return "bold" in self.fontname.lower()


@dataclass(frozen=True)
class LayoutLine:
    text: str
    size: float
    bold: bool
    left: float
    top: float


@dataclass(frozen=True)
class HeadingThresholds:
    level1: float = 1.5
    level2: float = 1.3
    level3: float = 1.1


@dataclass(frozen=True)
class DocumentStats:
    average_font_size: float = 12.0
    max_font_size: float = 12.0
    min_font_size: float = 12.0
    word_count: int = 0
    headings: HeadingThresholds = field(default_factory=HeadingThresholds)


def group_lines(words: Iterable[LayoutWord], thresholds: LayoutThresholds = LayoutThresholds()) -> list[LayoutLine]:
    """Group words by rounded vertical position, top to bottom.

    Within a line words are ordered left to right; a horizontal gap wider
    than ``column_gap_ratio`` times the font size is kept as a double space
    so cell splitting can see column boundaries.
    """
    rows: dict[float, list[LayoutWord]] = {}
    for word in words:
        if not word.text.strip():
            continue
        key = round(word.top / thresholds.line_tolerance)
        rows.setdefault(key, []).append(word)

    lines = []
    for key in sorted(rows):
        row = sorted(rows[key], key=lambda w: w.x0)
        parts = [row[0].text.strip()]
        for prev, word in zip(row, row[1:]):
            gap = word.x0 - prev.x1
            separator = "  " if gap > thresholds.column_gap_ratio * max(word.size, 1.0) else " "
            parts.append(separator + word.text.strip())
        first = row[0]
        lines.append(LayoutLine("".join(parts), first.size, first.bold, first.x0, first.top))
    return lines


def _is_numbered_heading(text: str) -> bool:
    return bool(
        CHAPTER_RE.match(text)
        or SECTION_RE.match(text)
        or CN_SECTION_RE.match(text)
        or CN_SUBSECTION_RE.match(text)
    )


def dynamic_heading_thresholds(
    ratios: Iterable[float], thresholds: LayoutThresholds = LayoutThresholds()
) -> HeadingThresholds:
    """Heading ratio thresholds from the distinct large-font ratios seen."""
    distinct = sorted(
        {round(r, 2) for r in ratios if r >= thresholds.candidate_ratio}, reverse=True
    )
    small = thresholds.heading_level3
    if not distinct:
        return HeadingThresholds(thresholds.heading_level1, thresholds.heading_level2, small)
    if len(distinct) == 1:
        ratio = distinct[0]
        return HeadingThresholds(ratio, max(ratio - 0.2, small), small)
    if len(distinct) == 2:
        return HeadingThresholds(distinct[0], distinct[1], max(distinct[1] - 0.1, small))
    return HeadingThresholds(distinct[0], distinct[1], distinct[2])


def compute_stats(
    pages: Iterable[Sequence[LayoutWord]], thresholds: LayoutThresholds = LayoutThresholds()
) -> DocumentStats:
    """First pass: font statistics and heading thresholds from the first pages."""
    sampled = [list(words) for _, words in zip(range(thresholds.stats_pages), pages)]
    sizes = [w.size for words in sampled for w in words if w.text.strip() and w.size > 0]
    if not sizes:
        return DocumentStats(
            average_font_size=thresholds.default_font_size,
            max_font_size=thresholds.default_font_size,
            min_font_size=thresholds.default_font_size,
            headings=dynamic_heading_thresholds([], thresholds),
        )

    average = mean(sizes)
    ratios = []
    for words in sampled:
        for line in group_lines(words, thresholds):
            text = line.text.strip()
            if not text or len(text) > thresholds.heading_max_chars or text.endswith("."):
                continue
            ratio = line.size / average
            if ratio >= thresholds.heading_level3 or line.bold or _is_numbered_heading(text):
                ratios.append(ratio)

    return DocumentStats(
        average_font_size=average,
        max_font_size=max(sizes),
        min_font_size=min(sizes),
        word_count=len(sizes),
        headings=dynamic_heading_thresholds(ratios, thresholds),
    )


def split_cells(text: str, thresholds: LayoutThresholds = LayoutThresholds()) -> list[str]:
    """Cells split on runs of 2+ spaces or tabs.

    A line with no such boundary falls back to single-space words when it
    has a table-like word count.
    """
    cells = [c.strip() for c in CELL_SPLIT_RE.split(text.strip()) if c.strip()]
    if len(cells) <= 1:
        words = text.split()
        if thresholds.single_space_min_words <= len(words) <= thresholds.single_space_max_words:
            cells = words
    return cells


def is_table_row(cells: Sequence[str], thresholds: LayoutThresholds = LayoutThresholds()) -> bool:
    if len(cells) < thresholds.min_table_columns:
        return False
    if mean(len(c) for c in cells) > thresholds.max_avg_cell_length:
        return False
    has_digit = any(ch.isdigit() for c in cells for ch in c)
    return has_digit or len(cells) >= 3


@dataclass(frozen=True)
class TableSpan:
    """Lines ``start..end`` (inclusive) form a table with ``rows``."""
    start: int
    end: int
    rows: tuple[tuple[str, ...], ...]


def detect_tables(lines: Sequence[LayoutLine], thresholds: LayoutThresholds = LayoutThresholds()) -> list[TableSpan]:
    """Runs of table-row candidates, tolerating short continuation gaps.

    A tolerated non-candidate line inside a run is treated as a continuation
    of the previous row's last cell.
    """
    cells = [split_cells(line.text, thresholds) for line in lines]
    candidate = [is_table_row(c, thresholds) for c in cells]
    spans = []
    i = 0
    while i < len(lines):
        if not candidate[i]:
            i += 1
            continue

        rows: list[list[str]] = []
        last = i
        gaps = 0
        j = i
        pending: list[str] = []
        while j < len(lines):
            if candidate[j]:
                if pending and rows:
                    rows[-1][-1] = " ".join([rows[-1][-1], *pending]).strip()
                pending = []
                rows.append(list(cells[j]))
                last = j
                gaps = 0
            elif gaps < thresholds.table_gap_allowance:
                pending.append(lines[j].text.strip())
                gaps += 1
            else:
                break
            j += 1

        if len(rows) >= thresholds.min_table_rows:
            normalized = normalize_columns(rows, thresholds.min_table_columns)
            spans.append(TableSpan(i, last, tuple(tuple(r) for r in normalized)))
            i = last + 1
        else:
            i += 1
    return spans


def heading_level(line: LayoutLine, stats: DocumentStats,
                  thresholds: LayoutThresholds = LayoutThresholds()) -> Optional[int]:
    """Heading level 1-6, or None for body text.

    Numbering patterns take priority over font size; font size over bold.
    """
    text = line.text.strip()
    if not text or len(text) > thresholds.heading_max_chars:
        return None

    ratio = line.size / stats.average_font_size if stats.average_font_size else 1.0
    levels = stats.headings

    if CHAPTER_RE.match(text):
        return 1
    if CN_SECTION_RE.match(text):
        return 1 if ratio >= levels.level1 else 2
    if CN_SUBSECTION_RE.match(text):
        return 3
    match = SECTION_RE.match(text)
    if match:
        return min(len(match.group(1).split(".")), 6)

    if text.endswith("."):
        return None

    first = text[0]
    if (
        ratio >= levels.level3
        and len(text.split()) <= thresholds.heading_max_words
        and (first.isalnum() or "\u4e00" <= first <= "\u9fff")
    ):
        if ratio >= levels.level1:
            return 1
        if ratio >= levels.level2:
            return 2
        return 3

    if line.bold:
        return 3 if ratio >= thresholds.bold_level3_ratio else 4
    return None


def _list_marker(text: str) -> Optional[tuple[bool, str, int]]:
    """(ordered, item text, number) for list lines."""
    match = NUMBERED_LIST_RE.match(text)
    if match:
        number = _DIGITS.search(match.group(1))
        return True, text[match.end():].strip(), int(number.group()) if number else 1
    match = BULLET_LIST_RE.match(text)
    if match:
        return False, text[match.end():].strip(), 1
    return None


def structure_page(
    words: Iterable[LayoutWord],
    stats: DocumentStats,
    thresholds: LayoutThresholds = LayoutThresholds(),
    start_order: int = 0,
) -> list[DocumentBlock]:
    """Second pass: classify one page's lines into blocks.

    Order numbers start at ``start_order`` and increase by one per block.
    """
    lines = group_lines(words, thresholds)
    tables = {span.start: span for span in detect_tables(lines, thresholds)}
    blocks: list[DocumentBlock] = []

    text_lines: list[str] = []
    text_meta: Optional[LayoutLine] = None
    list_items: list[str] = []
    list_ordered = False
    list_start = 1

    def order() -> int:
        return start_order + len(blocks)

    def flush_text() -> None:
        nonlocal text_meta
        if text_lines:
            blocks.append(TextBlock("\n".join(text_lines), order()))
        text_lines.clear()
        text_meta = None

    def flush_list() -> None:
        if list_items:
            blocks.append(ListBlock(tuple(list_items), list_ordered, order(), list_start))
        list_items.clear()

    i = 0
    while i < len(lines):
        if i in tables:
            span = tables[i]
            flush_text()
            flush_list()
            block = build_table_block(span.rows, order())
            if block is not None:
                blocks.append(block)
            i = span.end + 1
            continue

        line = lines[i]
        text = line.text.strip()
        i += 1
        if not text:
            continue

        marker = _list_marker(text)
        if marker is not None:
            ordered, item, number = marker
            flush_text()
            if list_items and ordered != list_ordered:
                flush_list()
            if not list_items:
                list_ordered, list_start = ordered, number
            if item:
                list_items.append(item)
            continue

        level = heading_level(line, stats, thresholds)
        if level is not None:
            flush_text()
            flush_list()
            blocks.append(HeadingBlock(" ".join(text.split()), level, order()))
            continue

        continuation = text[0].islower()
        if list_items and continuation:
            list_items[-1] = f"{list_items[-1]} {text}"
            continue
        flush_list()

        if text_meta is not None and text_lines:
            previous = text_lines[-1]
            same_font = abs(line.size - text_meta.size) < thresholds.merge_font_delta
            if continuation and same_font and not previous.endswith((".", ":")):
                text_lines[-1] = f"{previous} {text}"
                text_meta = line
                continue
            if line.top - text_meta.top > thresholds.paragraph_gap_ratio * max(text_meta.size, 1.0):
                flush_text()

        text_lines.append(" ".join(text.split()))
        text_meta = line

    flush_text()
    flush_list()
    return blocks
