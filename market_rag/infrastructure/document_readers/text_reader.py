import re
from pathlib import Path

from market_rag.core.models.blocks import DocumentBlock, TextBlock

_BLANK_LINES = re.compile(r"\n\s*\n")


class TextBlockReader:

    EXTENSIONS = {".txt"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        text = Path(file_path).read_text(encoding="utf-8").replace("\r\n", "\n")
        paragraphs = [p.strip() for p in _BLANK_LINES.split(text) if p.strip()]
        return [TextBlock(p, i) for i, p in enumerate(paragraphs)]
