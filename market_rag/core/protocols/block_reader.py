"""Document block reader protocol."""
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..models.blocks import DocumentBlock


@runtime_checkable
class BlockReaderProtocol(Protocol):
    """Reads one document format into ordered blocks."""

    def supports(self, file_path: Path) -> bool:
        """Whether this reader handles the file."""
        ...

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        """Read the file into blocks in document order."""
        ...
