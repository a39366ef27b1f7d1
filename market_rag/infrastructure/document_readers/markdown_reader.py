import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import mistune

from market_rag.core.models.blocks import (
    DocumentBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    TextBlock,
)

from .tables import build_table_block

logger = logging.getLogger(__name__)

Token = dict[str, Any]


def inline_text(children: list[Token] | None) -> str:
    """Plain text of inline tokens; images contribute their alt text."""
    if not children:
        return ""
    parts: list[str] = []
    for child in children:
        t = child.get("type")
        if t in ("text", "codespan", "inline_html"):
            parts.append(child.get("raw", ""))
        elif t == "softbreak":
            parts.append("\n")
        elif t == "linebreak":
            parts.append("\n")
        elif "children" in child:
            parts.append(inline_text(child["children"]))
    return "".join(parts)


class MarkdownBlockReader:
    """Markdown reader built on the mistune AST.

    Inline images are split out of their paragraph into separate image
    blocks placed where they occur. Images whose bytes cannot be resolved
    degrade to a text block holding the alt text.
    """

    EXTENSIONS = {".md", ".markdown"}

    def __init__(self):
        self._markdown = mistune.create_markdown(renderer=None, plugins=["table", "strikethrough"])

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def read_blocks(self, file_path: Path) -> list[DocumentBlock]:
        text = Path(file_path).read_text(encoding="utf-8")
        return self.parse(text, Path(file_path).parent)

    def parse(self, text: str, base_dir: Optional[Path] = None) -> list[DocumentBlock]:
        tokens = self._markdown(text)
        blocks: list[DocumentBlock] = []
        for token in tokens:
            try:
                self._visit(token, blocks, base_dir)
            except Exception as e:
                logger.warning(f"Skipping markdown element {token.get('type')}: {e}")
                raw = token.get("raw") or inline_text(token.get("children"))
                if raw and raw.strip():
                    blocks.append(TextBlock(raw.strip(), len(blocks)))
        logger.debug(f"Markdown parsed into {len(blocks)} blocks")
        return blocks

    def _visit(self, token: Token, blocks: list[DocumentBlock], base_dir: Optional[Path]) -> None:
        t = token.get("type")

        if t == "heading":
            level = int(token.get("attrs", {}).get("level", 1))
            content = inline_text(token.get("children")).strip()
            if content:
                blocks.append(HeadingBlock(content, min(max(level, 1), 6), len(blocks)))

        elif t in ("paragraph", "block_text"):
            self._paragraph(token.get("children") or [], blocks, base_dir)

        elif t == "list":
            attrs = token.get("attrs", {})
            entries = self._list_items(token, depth=0)
            if entries:
                blocks.append(
                    ListBlock(
                        items=tuple(text for _, _, text in entries),
                        ordered=bool(attrs.get("ordered")),
                        order=len(blocks),
                        start=int(attrs.get("start") or 1),
                        levels=tuple(level for level, _, _ in entries),
                        item_ordered=tuple(ordered for _, ordered, _ in entries),
                    )
                )

        elif t == "table":
            block = build_table_block(self._table_rows(token), len(blocks))
            if block is not None:
                blocks.append(block)

        elif t == "block_code":
            code = (token.get("raw") or "").rstrip()
            if code:
                blocks.append(TextBlock(code, len(blocks)))

        elif t == "block_quote":
            for child in token.get("children") or []:
                self._visit(child, blocks, base_dir)

        elif t == "block_html":
            raw = (token.get("raw") or "").strip()
            if raw:
                blocks.append(TextBlock(raw, len(blocks)))

    def _paragraph(self, children: list[Token], blocks: list[DocumentBlock], base_dir: Optional[Path]) -> None:
        pending: list[Token] = []

        def flush() -> None:
            content = inline_text(pending).strip()
            if content:
                blocks.append(TextBlock(content, len(blocks)))
            pending.clear()

        for child in children:
            if child.get("type") != "image":
                pending.append(child)
                continue

            flush()
            alt = inline_text(child.get("children")).strip() or None
            url = child.get("attrs", {}).get("url", "")
            data, resolved = self._resolve_image(url, base_dir)
            if data:
                blocks.append(ImageBlock(data, len(blocks), alt_text=alt, resolved_path=resolved))
            elif alt:
                logger.debug(f"Unresolved image {url!r}, keeping alt text")
                blocks.append(TextBlock(alt, len(blocks)))
        flush()

    def _list_items(self, token: Token, depth: int) -> list[tuple[int, bool, str]]:
        """(depth, ordered, text) per item, nested items after their parent."""
        ordered = bool(token.get("attrs", {}).get("ordered"))
        items: list[tuple[int, bool, str]] = []
        for item in token.get("children") or []:
            text_parts = []
            nested: list[tuple[int, bool, str]] = []
            for child in item.get("children") or []:
                if child.get("type") == "list":
                    nested.extend(self._list_items(child, depth + 1))
                else:
                    text_parts.append(inline_text(child.get("children")) or child.get("raw", ""))
            content = " ".join(p.strip() for p in text_parts if p.strip())
            if content:
                items.append((depth, ordered, content))
            items.extend(nested)
        return items

    @staticmethod
    def _table_rows(token: Token) -> list[list[str]]:
        rows = []
        for section in token.get("children") or []:
            if section.get("type") == "table_head":
                rows.append([inline_text(c.get("children")) for c in section.get("children") or []])
            elif section.get("type") == "table_body":
                for row in section.get("children") or []:
                    rows.append([inline_text(c.get("children")) for c in row.get("children") or []])
        return rows

    @staticmethod
    def _resolve_image(url: str, base_dir: Optional[Path]) -> tuple[Optional[bytes], Optional[str]]:
        if not url:
            return None, None

        if url.startswith("data:"):
            header, _, payload = url.partition(",")
            if ";base64" not in header:
                return None, None
            try:
                return base64.b64decode(payload, validate=False), None
            except (binascii.Error, ValueError):
                return None, None

        parsed = urlparse(url)
        if parsed.scheme not in ("", "file"):
            return None, None

        path = Path(unquote(parsed.path))
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        try:
            return path.read_bytes(), str(path)
        except OSError as e:
            logger.debug(f"Cannot read image {path}: {e}")
            return None, None
