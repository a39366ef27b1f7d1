"""Domain models."""
from .blocks import (
    IMAGE_PLACEHOLDER,
    BlockKind,
    DocumentBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    TableBlock,
    TextBlock,
)
from .document import (
    ImageMetadata,
    Paragraph,
    RetrievalResult,
    ScoredCandidate,
    SearchCandidate,
)

__all__ = [
    "IMAGE_PLACEHOLDER",
    "BlockKind",
    "DocumentBlock",
    "HeadingBlock",
    "ImageBlock",
    "ListBlock",
    "TableBlock",
    "TextBlock",
    "ImageMetadata",
    "Paragraph",
    "RetrievalResult",
    "ScoredCandidate",
    "SearchCandidate",
]
