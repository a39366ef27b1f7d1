import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

IMAGES_DIR = "images"

_UNSAFE_CHARS = re.compile(r"[^\w\-.]+")


class LocalImageStorage:
    """Writes images under ``<root>/images`` and returns root-relative paths."""

    def __init__(self, root: str | Path = "./data"):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def save(self, data: bytes, file_name: str) -> str:
        stem = _UNSAFE_CHARS.sub("_", Path(file_name).stem).strip("._") or "image"
        relative = Path(IMAGES_DIR) / f"{stem}.png"
        target = self._root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug(f"Saved image: {target}")
        return relative.as_posix()
