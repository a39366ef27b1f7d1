import logging
from pathlib import Path
from typing import Optional, Sequence

from market_rag.core.models.blocks import DocumentBlock
from market_rag.core.protocols.block_reader import BlockReaderProtocol

from .docx_reader import DocxBlockReader
from .markdown_reader import MarkdownBlockReader
from .pdf_reader import PdfBlockReader
from .text_reader import TextBlockReader

logger = logging.getLogger(__name__)


class CompositeBlockReader:
    """Ordered registry of readers; the first that supports a file reads it."""

    def __init__(self, readers: Optional[Sequence[BlockReaderProtocol]] = None):
        self._readers = list(readers) if readers is not None else [
            MarkdownBlockReader(),
            DocxBlockReader(),
            PdfBlockReader(),
            TextBlockReader(),
        ]

    def supports(self, file_path: Path) -> bool:
        return any(reader.supports(file_path) for reader in self._readers)

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        file_path = Path(file_path)
        for reader in self._readers:
            if reader.supports(file_path):
                try:
                    return reader.read_blocks(file_path)
                except Exception as e:
                    logger.error(f"Failed to read {file_path}: {e}")
                    return []

        logger.error(f"Unsupported document format: {file_path}")
        return []
