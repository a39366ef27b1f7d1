"""Chunking service - token-budgeted text splitting.

Token counts are approximated as ``len(text) // 4``; there is no tokenizer
dependency. Every budget in this module (and every caller reasoning about
chunk sizes) uses ``approx_tokens`` so the numbers stay comparable. The
default budgets (200 per line, 400 per paragraph, 40 overlap) are tuned for
this approximation and need re-calibration if a real tokenizer is used.
"""

import logging
from bisect import bisect_left
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

# Tried in order; None means "split anywhere" (at the midpoint).
PLAINTEXT_SEPARATORS: tuple[Optional[str], ...] = (
    "\n",
    ".。．",
    "?!？！",
    ";；",
    ":：",
    ",，、",
    ")]}）】",
    " ",
    "-",
    None,
)


def approx_tokens(text: str) -> int:
    """Approximate token count used by every chunking budget."""
    return len(text) // CHARS_PER_TOKEN


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _nearest_cut(text: str, separators: str) -> int:
    """Cut position just after the separator closest to the midpoint.

    Returns -1 when the text has no separator (the last character is never
    considered, so both halves are non-empty).
    """
    positions = [i + 1 for i, ch in enumerate(text[:-1]) if ch in separators]
    if not positions:
        return -1

    half = len(text) // 2
    idx = bisect_left(positions, half)
    best = -1
    for candidate in positions[max(idx - 1, 0):idx + 1]:
        if best < 0 or abs(half - candidate) < abs(half - best):
            best = candidate
    return best


def _split(
    text: str, max_tokens: int, separators: Optional[str], trim: bool
) -> list[str]:
    if approx_tokens(text) <= max_tokens:
        return [text.strip() if trim else text]

    if separators is None:
        cut = len(text) // 2
    else:
        cut = _nearest_cut(text, separators)

    if cut <= 0 or cut >= len(text):
        return [text.strip() if trim else text]

    first, second = text[:cut], text[cut:]
    if trim:
        first, second = first.strip(), second.strip()

    return (
        _split(first, max_tokens, separators, trim)
        + _split(second, max_tokens, separators, trim)
    )


def split_lines(text: str, max_tokens: int, trim: bool = True) -> list[str]:
    """Split text into lines of at most ``max_tokens`` approximate tokens.

    Separators are tried from the most to the least semantic; an over-long
    segment is cut at the separator nearest its midpoint and both halves are
    split recursively.
    """
    lines = [_normalize_newlines(text)]
    for separators in PLAINTEXT_SEPARATORS:
        next_lines: list[str] = []
        for line in lines:
            next_lines.extend(_split(line, max_tokens, separators, trim))
        lines = next_lines
        if all(approx_tokens(line) <= max_tokens for line in lines):
            break
    return [line for line in lines if line.strip()]


def _build_paragraphs(lines: Iterable[str], max_tokens: int) -> list[str]:
    paragraphs: list[str] = []
    current: list[str] = []
    current_text = ""

    for line in lines:
        if current:
            # +1 for the joining newline
            if approx_tokens(current_text) + approx_tokens(line) + 1 >= max_tokens:
                paragraphs.append(current_text.strip())
                current = []
        current.append(line)
        current_text = "\n".join(current)

    if current:
        paragraphs.append(current_text.strip())

    return [p for p in paragraphs if p]


def split_paragraphs(
    lines: list[str], max_tokens: int, overlap_tokens: int
) -> list[str]:
    """Group lines into paragraphs and add overlap from the following one.

    Args:
        lines: Output of ``split_lines``.
        max_tokens: Budget per emitted paragraph, overlap included.
        overlap_tokens: Budget for the text borrowed from the next paragraph.

    Returns:
        Paragraphs in order.

    Raises:
        ValueError: If the budgets are inconsistent.
    """
    validate_budgets(max_tokens, overlap_tokens)
    if not lines:
        return []

    truncated: list[str] = []
    for line in lines:
        line = _normalize_newlines(line)
        if approx_tokens(line) > max_tokens:
            truncated.extend(split_lines(line, max_tokens, trim=False))
        else:
            truncated.append(line)

    paragraphs = _build_paragraphs(truncated, max_tokens)

    if len(paragraphs) > 1 and approx_tokens(paragraphs[-1]) < max_tokens // 4:
        combined = f"{paragraphs[-2]}\n{paragraphs[-1]}"
        if approx_tokens(combined) <= max_tokens:
            paragraphs[-2:] = [combined]

    if overlap_tokens <= 0:
        return paragraphs

    result = []
    for i, paragraph in enumerate(paragraphs):
        if i < len(paragraphs) - 1:
            paragraph = _with_overlap(paragraph, paragraphs[i + 1], max_tokens, overlap_tokens)
        result.append(paragraph)
    return result


def _with_overlap(
    paragraph: str, next_paragraph: str, max_tokens: int, overlap_tokens: int
) -> str:
    budget = min(overlap_tokens, max_tokens - approx_tokens(paragraph) - 1)
    if budget <= 0:
        return paragraph

    pieces = split_lines(next_paragraph, budget, trim=False)
    if not pieces:
        return paragraph

    overlap = pieces[0].strip()
    combined = f"{paragraph}\n{overlap}"
    if not overlap or approx_tokens(combined) > max_tokens:
        return paragraph
    return combined


def validate_budgets(max_tokens_per_paragraph: int, overlap_tokens: int) -> None:
    if max_tokens_per_paragraph <= 0:
        raise ValueError(
            f"max_tokens_per_paragraph must be positive, got {max_tokens_per_paragraph}"
        )
    if overlap_tokens < 0:
        raise ValueError(f"overlap_tokens must not be negative, got {overlap_tokens}")
    if overlap_tokens >= max_tokens_per_paragraph:
        raise ValueError(
            f"overlap_tokens ({overlap_tokens}) must be smaller than "
            f"max_tokens_per_paragraph ({max_tokens_per_paragraph})"
        )


def chunk_text(
    text: str,
    max_tokens_per_paragraph: int = 400,
    overlap_tokens: int = 40,
    max_tokens_per_line: int = 200,
) -> list[str]:
    """Split cleaned text into overlapping, token-budgeted chunks."""
    validate_budgets(max_tokens_per_paragraph, overlap_tokens)
    if max_tokens_per_line <= 0:
        raise ValueError(f"max_tokens_per_line must be positive, got {max_tokens_per_line}")
    if not text or not text.strip():
        return []

    lines = split_lines(text, max_tokens_per_line)
    chunks = split_paragraphs(lines, max_tokens_per_paragraph, overlap_tokens)
    return [c.strip() for c in chunks if c.strip()]


class TextChunkingService:
    """Splits text along semantic boundaries with fixed token budgets."""

    def __init__(
        self,
        max_tokens_per_line: int = 200,
        max_tokens_per_paragraph: int = 400,
        overlap_tokens: int = 40,
    ):
        """Initialize chunking service.

        Args:
            max_tokens_per_line: Budget for the line phase.
            max_tokens_per_paragraph: Budget per emitted chunk.
            overlap_tokens: Budget for overlap with the next chunk.

        Raises:
            ValueError: If the budgets are inconsistent.
        """
        validate_budgets(max_tokens_per_paragraph, overlap_tokens)
        if max_tokens_per_line <= 0:
            raise ValueError(f"max_tokens_per_line must be positive, got {max_tokens_per_line}")
        self._max_tokens_per_line = max_tokens_per_line
        self._max_tokens_per_paragraph = max_tokens_per_paragraph
        self._overlap_tokens = overlap_tokens

    @property
    def max_tokens_per_paragraph(self) -> int:
        return self._max_tokens_per_paragraph

    @property
    def overlap_tokens(self) -> int:
        return self._overlap_tokens

    def chunk(self, text: str) -> list[str]:
        chunks = chunk_text(
            text,
            max_tokens_per_paragraph=self._max_tokens_per_paragraph,
            overlap_tokens=self._overlap_tokens,
            max_tokens_per_line=self._max_tokens_per_line,
        )
        logger.debug(f"Chunked {len(text)} chars into {len(chunks)} chunks")
        return chunks
