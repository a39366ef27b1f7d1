import logging
import re
from pathlib import Path
from typing import Optional

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.table import Table
from docx.text.paragraph import Paragraph as DocxParagraph

from market_rag.core.models.blocks import (
    DocumentBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    TextBlock,
)

from .tables import build_table_block, pad_rows

logger = logging.getLogger(__name__)

_HEADING_STYLE = re.compile(r"^heading\s*(\d+)$", re.IGNORECASE)
_ORDERED_STYLE = re.compile(r"list\s*number", re.IGNORECASE)
_BULLET_STYLE = re.compile(r"list\s*(bullet|paragraph)", re.IGNORECASE)


class _ListRun:
    """Consecutive list paragraphs collected into one list block."""

    def __init__(self, ordered: bool, start: int):
        self.ordered = ordered
        self.start = start
        self.items: list[str] = []
        self.levels: list[int] = []
        self.item_ordered: list[bool] = []


class DocxBlockReader:
    """DOCX reader walking the body in document order.

    Image bytes are looked up in a relationship-id map built once per
    document. Ordered list numbering is counted per (numId, level), so a
    list interrupted by other content resumes its numbering.
    """

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".docx"

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        doc = Document(str(file_path))
        images = self._image_map(doc)
        formats: dict[tuple[str, str], Optional[str]] = {}
        counters: dict[tuple[str, int], int] = {}
        blocks: list[DocumentBlock] = []
        run: Optional[_ListRun] = None

        def close_list() -> None:
            nonlocal run
            if run is not None and run.items:
                blocks.append(ListBlock(
                    tuple(run.items), run.ordered, len(blocks), run.start,
                    levels=tuple(run.levels), item_ordered=tuple(run.item_ordered),
                ))
            run = None

        for element in doc.iter_inner_content():
            try:
                if isinstance(element, Table):
                    close_list()
                    block = build_table_block(self._table_rows(element), len(blocks))
                    if block is not None:
                        blocks.append(block)
                    continue

                item = self._list_item(doc, element, formats, counters)
                if item is not None:
                    ordered, number, level, text = item
                    if run is None or (level == 0 and run.ordered != ordered):
                        close_list()
                        run = _ListRun(ordered, number if ordered else 1)
                    if text:
                        run.items.append(text)
                        run.levels.append(level)
                        run.item_ordered.append(ordered)
                    self._append_images(element, images, blocks, before=close_list)
                    continue

                close_list()
                self._paragraph(element, blocks)
                self._append_images(element, images, blocks)
            except Exception as e:
                logger.warning(f"Failed to read element in {file_path.name}: {e}")
                close_list()
                text = getattr(element, "text", "") or ""
                if text.strip():
                    blocks.append(TextBlock(text.strip(), len(blocks)))

        close_list()
        logger.debug(f"DOCX {file_path.name}: {len(blocks)} blocks")
        return blocks

    @staticmethod
    def _image_map(doc: DocxDocument) -> dict[str, bytes]:
        images = {}
        for r_id, rel in doc.part.rels.items():
            if rel.reltype == RT.IMAGE and not rel.is_external:
                try:
                    images[r_id] = rel.target_part.blob
                except Exception as e:
                    logger.warning(f"Unreadable image relationship {r_id}: {e}")
        return images

    @staticmethod
    def _paragraph(paragraph: DocxParagraph, blocks: list[DocumentBlock]) -> None:
        text = paragraph.text.strip()
        if not text:
            return

        style = paragraph.style.name if paragraph.style is not None else ""
        if style == "Title":
            blocks.append(HeadingBlock(text, 1, len(blocks)))
            return
        match = _HEADING_STYLE.match(style or "")
        if match:
            level = min(max(int(match.group(1)), 1), 6)
            blocks.append(HeadingBlock(text, level, len(blocks)))
            return
        blocks.append(TextBlock(text, len(blocks)))

    @staticmethod
    def _append_images(paragraph: DocxParagraph, images: dict[str, bytes],
                       blocks: list[DocumentBlock], before=None) -> None:
        r_ids = paragraph._p.xpath(".//a:blip/@r:embed")
        if not r_ids:
            return
        if before is not None:
            before()

        descriptions = paragraph._p.xpath(".//wp:docPr/@descr")
        for i, r_id in enumerate(r_ids):
            data = images.get(r_id)
            if not data:
                logger.debug(f"Image relationship {r_id} not found")
                continue
            alt = descriptions[i].strip() if i < len(descriptions) and descriptions[i].strip() else None
            blocks.append(ImageBlock(data, len(blocks), alt_text=alt))

    def _list_item(
        self,
        doc: DocxDocument,
        paragraph: DocxParagraph,
        formats: dict[tuple[str, str], Optional[str]],
        counters: dict[tuple[str, int], int],
    ) -> Optional[tuple[bool, int, int, str]]:
        """(ordered, number, level, text) for list paragraphs, else None."""
        num_ids = paragraph._p.xpath("./w:pPr/w:numPr/w:numId/@w:val")
        levels = paragraph._p.xpath("./w:pPr/w:numPr/w:ilvl/@w:val")
        style = paragraph.style.name if paragraph.style is not None else ""
        text = paragraph.text.strip()

        if num_ids and num_ids[0] != "0":
            num_id = num_ids[0]
            level = int(levels[0]) if levels else 0
            fmt = self._number_format(doc, num_id, level, formats)
            ordered = fmt != "bullet" if fmt else bool(_ORDERED_STYLE.search(style or ""))
        elif _ORDERED_STYLE.search(style or ""):
            num_id, level, ordered = f"style:{style}", 0, True
        elif _BULLET_STYLE.search(style or ""):
            num_id, level, ordered = f"style:{style}", 0, False
        else:
            return None

        key = (num_id, level)
        counters[key] = counters.get(key, 0) + 1
        for deeper in [k for k in counters if k[0] == num_id and k[1] > level]:
            del counters[deeper]
        return ordered, counters[key], level, text

    @staticmethod
    def _number_format(
        doc: DocxDocument,
        num_id: str,
        level: int,
        formats: dict[tuple[str, str], Optional[str]],
    ) -> Optional[str]:
        key = (num_id, str(level))
        if key in formats:
            return formats[key]

        fmt = None
        try:
            numbering = doc.part.numbering_part.element
            abstract_ids = numbering.xpath(f'./w:num[@w:numId="{num_id}"]/w:abstractNumId/@w:val')
            if abstract_ids:
                values = numbering.xpath(
                    f'./w:abstractNum[@w:abstractNumId="{abstract_ids[0]}"]'
                    f'/w:lvl[@w:ilvl="{level}"]/w:numFmt/@w:val'
                )
                fmt = values[0] if values else None
        except (KeyError, NotImplementedError) as e:
            logger.debug(f"No numbering definitions: {e}")
        formats[key] = fmt
        return fmt

    @staticmethod
    def _table_rows(table: Table) -> list[list[str]]:
        rows = []
        for row in table.rows:
            cells = []
            for cell in row.cells:
                cells.append(" ".join(p.text.strip() for p in cell.paragraphs if p.text.strip()))
            rows.append(cells)
        return pad_rows(rows)
