"""Document block reader implementations."""
from .markdown_reader import MarkdownBlockReader
from .docx_reader import DocxBlockReader
from .pdf_reader import PdfBlockReader
from .text_reader import TextBlockReader
from .composite_reader import CompositeBlockReader

__all__ = [
    "MarkdownBlockReader",
    "DocxBlockReader",
    "PdfBlockReader",
    "TextBlockReader",
    "CompositeBlockReader",
]
