"""Block mapper - converts document blocks into paragraph records."""

import hashlib
import logging
from pathlib import PurePath
from typing import NamedTuple, Optional

from ..models.blocks import (
    BlockKind,
    DocumentBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    TableBlock,
    TextBlock,
)
from ..models.document import ImageMetadata, Paragraph
from .chunking_service import TextChunkingService
from .text_cleaning import TextCleaningService

logger = logging.getLogger(__name__)

SECTION_MAX_LEVEL = 3

_KEY_PREFIX = {
    BlockKind.TEXT: "txt",
    BlockKind.HEADING: "hdg",
    BlockKind.LIST: "lst",
    BlockKind.TABLE: "tbl",
    BlockKind.IMAGE: "img",
}

_SOURCE_TYPES = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
}


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def source_type_for(document_uri: str) -> str:
    if document_uri.lower().startswith(("http://", "https://")):
        return "web"
    return _SOURCE_TYPES.get(PurePath(document_uri).suffix.lower(), "text")


def paragraph_key(document_uri: str, kind: BlockKind, order: int, content_hash: str) -> str:
    """Stable key: same document, position and content give the same key."""
    return f"{sha256_hex(document_uri)[:16]}:{_KEY_PREFIX[kind]}:{order}:{content_hash[:8]}"


class MappedBlock(NamedTuple):
    paragraphs: list[Paragraph]
    next_order: int
    section: Optional[str]


class DocumentBlockMapper:
    """Maps one block at a time; document-order state is threaded explicitly.

    ``map_block`` never touches instance state: the running order and the
    current section go in as arguments and come back in ``MappedBlock``.
    """

    def __init__(
        self,
        chunking: TextChunkingService,
        cleaning: TextCleaningService | None = None,
    ):
        self._chunking = chunking
        self._cleaning = cleaning or TextCleaningService()

    def map_block(
        self,
        block: DocumentBlock,
        document_uri: str,
        order: int,
        section: Optional[str] = None,
        image_metadata: Optional[ImageMetadata] = None,
    ) -> MappedBlock:
        """Convert a block into paragraphs.

        Args:
            block: Block to convert.
            document_uri: Source document identity.
            order: Order assigned to the first produced paragraph.
            section: Nearest enclosing level 1-3 heading so far.
            image_metadata: Caption, stored path and embedding for image blocks.

        Returns:
            Produced paragraphs, the next free order and the section in
            effect for subsequent blocks.
        """
        source_type = source_type_for(document_uri)

        def make(kind: BlockKind, text: str, content_hash: str, at: int, **extra) -> Paragraph:
            return Paragraph(
                key=paragraph_key(document_uri, kind, at, content_hash),
                document_uri=document_uri,
                paragraph_id=f"{_KEY_PREFIX[kind]}_{at}",
                text=text,
                order=at,
                source_type=source_type,
                content_hash=content_hash,
                block_kind=kind,
                section=section,
                **extra,
            )

        paragraphs: list[Paragraph] = []

        if isinstance(block, TextBlock):
            cleaned = self._cleaning.clean(block.content)
            for chunk in self._chunking.chunk(cleaned):
                paragraphs.append(make(BlockKind.TEXT, chunk, sha256_hex(chunk), order))
                order += 1

        elif isinstance(block, HeadingBlock):
            heading = self._cleaning.clean(block.content)
            if heading:
                paragraphs.append(
                    make(BlockKind.HEADING, heading, sha256_hex(heading), order,
                         heading_level=block.level)
                )
                order += 1
                if block.level <= SECTION_MAX_LEVEL:
                    section = heading

        elif isinstance(block, ListBlock):
            listing = self._cleaning.clean(block.text)
            if listing:
                paragraphs.append(
                    make(BlockKind.LIST, listing, sha256_hex(listing), order,
                         list_ordered=block.ordered)
                )
                order += 1

        elif isinstance(block, TableBlock):
            paragraphs.append(make(BlockKind.TABLE, block.text, block.content_hash, order))
            order += 1

        elif isinstance(block, ImageBlock):
            text = image_metadata.caption if image_metadata else block.text
            content_hash = sha256_hex(block.data) if block.data else sha256_hex(text)
            paragraphs.append(
                make(
                    BlockKind.IMAGE, text, content_hash, order,
                    image_uri=image_metadata.stored_path if image_metadata else block.resolved_path,
                    image_embedding=image_metadata.embedding if image_metadata else None,
                )
            )
            order += 1

        else:
            logger.warning(f"Unknown block type skipped: {type(block).__name__}")

        return MappedBlock(paragraphs, order, section)
