"""Table helpers shared by the document readers."""
import hashlib
from collections import Counter
from typing import Optional, Sequence

from market_rag.core.models.blocks import TableBlock

CAPTION_MAX_CELLS = 8
CAPTION_MAX_CELL_LENGTH = 40
CAPTION_MIN_FILLED_CELLS = 2


def _clean_cell(cell: str) -> str:
    return " ".join((cell or "").split())


def detect_caption(rows: Sequence[Sequence[str]]) -> Optional[str]:
    """Caption from the first row when it looks like a short label row.

    The first row qualifies when it has at most 8 cells, all non-empty
    cells are short, and at least two cells are non-empty. Headerless
    tables whose first data row is short will also get a caption.
    """
    if not rows:
        return None
    first = [_clean_cell(c) for c in rows[0]]
    filled = [c for c in first if c]
    if len(first) > CAPTION_MAX_CELLS or len(filled) < CAPTION_MIN_FILLED_CELLS:
        return None
    if any(len(c) > CAPTION_MAX_CELL_LENGTH for c in filled):
        return None
    return " | ".join(filled)


def column_mode(counts: Sequence[int]) -> int:
    """Most frequent column count; ties go to the larger count."""
    if not counts:
        return 0
    frequency = Counter(counts)
    return max(frequency, key=lambda c: (frequency[c], c))


def merge_to_width(cells: Sequence[str], width: int) -> list[str]:
    """Merge the adjacent pair with the smallest combined length until ``width`` cells remain."""
    cells = list(cells)
    while len(cells) > max(width, 1):
        index = min(
            range(len(cells) - 1),
            key=lambda i: len(cells[i]) + len(cells[i + 1]),
        )
        cells[index] = f"{cells[index]} {cells[index + 1]}".strip()
        del cells[index + 1]
    return cells


def normalize_columns(rows: Sequence[Sequence[str]], min_columns: int = 2) -> list[list[str]]:
    """Fit every row to the modal column count.

    Longer rows are collapsed with ``merge_to_width``; shorter rows are
    right-padded with empty strings.
    """
    counts = [len(r) for r in rows if len(r) >= min_columns] or [len(r) for r in rows]
    width = column_mode(counts)
    result = []
    for row in rows:
        cells = [_clean_cell(c) for c in row]
        if not any(cells):
            continue
        if len(cells) > width:
            cells = merge_to_width(cells, width)
        result.append(cells + [""] * (width - len(cells)))
    return result


def pad_rows(rows: Sequence[Sequence[str]]) -> list[list[str]]:
    """Right-pad rows to the widest row."""
    width = max((len(r) for r in rows), default=0)
    return [[_clean_cell(c) for c in r] + [""] * (width - len(r)) for r in rows]


def _escape(cell: str) -> str:
    return cell.replace("|", "\\|")


def render_markdown(rows: Sequence[Sequence[str]]) -> str:
    """Markdown pipe table; the first row becomes the header row."""
    if not rows:
        return ""
    width = max(len(r) for r in rows)
    lines = []
    for i, row in enumerate(rows):
        cells = [_escape(c) for c in row] + [""] * (width - len(row))
        lines.append("| " + " | ".join(cells) + " |")
        if i == 0:
            lines.append("| " + " | ".join(["---"] * width) + " |")
    return "\n".join(lines)


def table_hash(rows: Sequence[Sequence[str]]) -> str:
    payload = "\n".join("\t".join(row) for row in rows)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_table_block(rows: Sequence[Sequence[str]], order: int) -> Optional[TableBlock]:
    """TableBlock from cleaned rows, or None for an empty table."""
    rows = tuple(tuple(_clean_cell(c) for c in row) for row in rows)
    rows = tuple(row for row in rows if any(row))
    if not rows:
        return None
    return TableBlock(
        rows=rows,
        markdown=render_markdown(rows),
        content_hash=table_hash(rows),
        order=order,
        caption=detect_caption(rows),
    )
