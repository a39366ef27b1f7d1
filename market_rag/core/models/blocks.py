"""Document block models.

A reader turns a source file into an ordered sequence of blocks. The set of
block variants is closed: code that branches on a block should match on
``block.kind`` (or the concrete class) and cover all five variants.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union

IMAGE_PLACEHOLDER = "[图片]"


class BlockKind(Enum):
    """Block type, persisted with each paragraph."""
    TEXT = "text"
    HEADING = "heading"
    LIST = "list"
    TABLE = "table"
    IMAGE = "image"


@dataclass(frozen=True)
class TextBlock:
    """Plain text paragraph."""
    content: str
    order: int
    kind: ClassVar[BlockKind] = BlockKind.TEXT

    @property
    def text(self) -> str:
        return self.content


@dataclass(frozen=True)
class HeadingBlock:
    """Heading with level 1-6."""
    content: str
    level: int
    order: int
    kind: ClassVar[BlockKind] = BlockKind.HEADING

    @property
    def text(self) -> str:
        return self.content


@dataclass(frozen=True)
class ListBlock:
    """Ordered or unordered list.

    ``start`` is the number of the first item of an ordered list, so a list
    resumed after unrelated content keeps counting. Nested items carry their
    depth in ``levels`` and whether their own list is ordered in
    ``item_ordered``; both are empty for a flat list.
    """
    items: tuple[str, ...]
    ordered: bool
    order: int
    start: int = 1
    levels: tuple[int, ...] = ()
    item_ordered: tuple[bool, ...] = ()
    kind: ClassVar[BlockKind] = BlockKind.LIST

    @property
    def text(self) -> str:
        lines = []
        counters: dict[int, int] = {}
        for i, item in enumerate(self.items):
            level = self.levels[i] if self.levels else 0
            ordered = self.item_ordered[i] if self.item_ordered else self.ordered
            for deeper in [d for d in counters if d > level]:
                del counters[deeper]
            indent = "  " * level
            if ordered:
                first = self.start if level == 0 else 1
                counters[level] = counters.get(level, first - 1) + 1
                lines.append(f"{indent}{counters[level]}. {item}")
            else:
                lines.append(f"{indent}- {item}")
        return "\n".join(lines)


@dataclass(frozen=True)
class TableBlock:
    """Table rows plus their markdown rendering."""
    rows: tuple[tuple[str, ...], ...]
    markdown: str
    content_hash: str
    order: int
    caption: Optional[str] = None
    kind: ClassVar[BlockKind] = BlockKind.TABLE

    @property
    def text(self) -> str:
        if self.caption:
            return f"{self.caption}\n{self.markdown}"
        return self.markdown


@dataclass(frozen=True)
class ImageBlock:
    """Embedded image bytes with optional alt text."""
    data: bytes = field(repr=False)
    order: int
    alt_text: Optional[str] = None
    resolved_path: Optional[str] = None
    description: Optional[str] = None
    kind: ClassVar[BlockKind] = BlockKind.IMAGE

    @property
    def text(self) -> str:
        return self.description or self.alt_text or IMAGE_PLACEHOLDER


DocumentBlock = Union[TextBlock, HeadingBlock, ListBlock, TableBlock, ImageBlock]
