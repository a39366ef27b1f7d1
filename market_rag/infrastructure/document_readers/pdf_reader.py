import logging
import math
from pathlib import Path
from typing import Optional

from pypdf import PageObject, PdfReader

from market_rag.core.models.blocks import DocumentBlock, ImageBlock, TextBlock
from market_rag.core.services.text_cleaning import TextCleaningService

from .pdf_layout import (
    DocumentStats,
    LayoutThresholds,
    LayoutWord,
    compute_stats,
    structure_page,
)

logger = logging.getLogger(__name__)

# Rough glyph width as a fraction of font size, used to estimate fragment extents.
AVERAGE_GLYPH_WIDTH = 0.5


def _render_matrix(cm: list[float], tm: list[float]) -> tuple[float, ...]:
    return (
        tm[0] * cm[0] + tm[1] * cm[2],
        tm[0] * cm[1] + tm[1] * cm[3],
        tm[2] * cm[0] + tm[3] * cm[2],
        tm[2] * cm[1] + tm[3] * cm[3],
        tm[4] * cm[0] + tm[5] * cm[2] + cm[4],
        tm[4] * cm[1] + tm[5] * cm[3] + cm[5],
    )


class PdfBlockReader:
    """PDF reader: pypdf text fragments fed through the layout heuristics.

    A page whose layout pass fails is emitted as plain extracted text.
    Embedded images follow each page's text blocks.
    """

    def __init__(
        self,
        thresholds: LayoutThresholds = LayoutThresholds(),
        cleaning: Optional[TextCleaningService] = None,
    ):
        self._thresholds = thresholds
        self._cleaning = cleaning or TextCleaningService()

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".pdf"

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        reader = PdfReader(file_path)
        pages = list(reader.pages)

        page_words: list[Optional[list[LayoutWord]]] = []
        for number, page in enumerate(pages, 1):
            try:
                page_words.append(self.extract_words(page))
            except Exception as e:
                logger.warning(f"{file_path.name} page {number}: word extraction failed: {e}")
                page_words.append(None)

        stats = compute_stats([w for w in page_words if w], self._thresholds)
        logger.debug(
            f"{file_path.name}: avg font {stats.average_font_size:.1f}, "
            f"heading ratios {stats.headings}"
        )

        blocks: list[DocumentBlock] = []
        for number, (page, words) in enumerate(zip(pages, page_words), 1):
            blocks.extend(self._page_blocks(page, words, stats, number, len(blocks)))
            blocks.extend(self._page_images(page, number, len(blocks)))

        logger.info(f"PDF {file_path.name}: {len(pages)} pages, {len(blocks)} blocks")
        return blocks

    def _page_blocks(
        self,
        page: PageObject,
        words: Optional[list[LayoutWord]],
        stats: DocumentStats,
        number: int,
        start_order: int,
    ) -> list[DocumentBlock]:
        try:
            if words is None:
                raise ValueError("no layout words")
            return structure_page(words, stats, self._thresholds, start_order)
        except Exception as e:
            logger.warning(f"Page {number}: layout analysis failed, using plain text: {e}")

        try:
            text = self._cleaning.clean(page.extract_text() or "")
        except Exception as e:
            logger.warning(f"Page {number}: text extraction failed: {e}")
            return []
        return [TextBlock(text, start_order)] if text else []

    def extract_words(self, page: PageObject) -> list[LayoutWord]:
        """Positioned text fragments with ``top`` measured from the page top."""
        height = float(page.mediabox.height)
        words: list[LayoutWord] = []

        def visitor(text, cm, tm, font_dict, font_size):
            if not text or not text.strip():
                return
            _, _, c, d, e, f = _render_matrix(cm, tm)
            scale = math.hypot(c, d) or 1.0
            size = float(font_size or 0) * scale or self._thresholds.default_font_size
            fontname = str(font_dict.get("/BaseFont", "")) if font_dict else ""
            top = height - f
            for offset, part in enumerate(text.split("\n")):
                part = self._cleaning.normalize_characters(part).strip()
                if not part:
                    continue
                line_top = top + offset * size
                words.append(
                    LayoutWord(
                        text=part,
                        x0=e,
                        x1=e + len(part) * size * AVERAGE_GLYPH_WIDTH,
                        top=line_top,
                        size=size,
                        fontname=fontname,
                    )
                )

        page.extract_text(visitor_text=visitor)
        return words

    @staticmethod
    def _page_images(page: PageObject, number: int, start_order: int) -> list[DocumentBlock]:
        blocks: list[DocumentBlock] = []
        try:
            images = list(page.images)
        except Exception as e:
            logger.warning(f"Page {number}: cannot list images: {e}")
            return blocks

        for index, image in enumerate(images, 1):
            try:
                data = image.data
            except Exception as e:
                logger.warning(f"Page {number} image {index}: extraction failed: {e}")
                continue
            if data:
                blocks.append(
                    ImageBlock(data, start_order + len(blocks), alt_text=f"page{number}_image{index}")
                )
        return blocks
