import copy
import logging
import threading
from typing import Optional

import numpy as np

from market_rag.core.models.document import Paragraph
from market_rag.core.protocols.vector_store import VECTOR_FIELDS, VectorField

logger = logging.getLogger(__name__)


class InMemoryVectorStore:
    """Process-local paragraph store with brute-force cosine search."""

    def __init__(self, collection_name: str = "market_paragraphs"):
        self._collection_name = collection_name
        self._collections: dict[str, dict[str, Paragraph]] = {collection_name: {}}
        self._lock = threading.Lock()

    def ensure_collection_exists(self, name: str | None = None) -> None:
        with self._lock:
            self._collections.setdefault(name or self._collection_name, {})

    @property
    def _paragraphs(self) -> dict[str, Paragraph]:
        return self._collections[self._collection_name]

    def upsert(self, paragraph: Paragraph) -> None:
        if not paragraph.text_embedding:
            raise ValueError(f"Paragraph {paragraph.key} has no text embedding")
        with self._lock:
            self._paragraphs[paragraph.key] = copy.copy(paragraph)

    def get(self, key: str) -> Optional[Paragraph]:
        with self._lock:
            paragraph = self._paragraphs.get(key)
        return copy.copy(paragraph) if paragraph else None

    def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        field: VectorField = "text_embedding",
    ) -> list[tuple[Paragraph, float]]:
        if field not in VECTOR_FIELDS:
            raise ValueError(f"Unknown vector field: {field}")
        if limit <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        with self._lock:
            candidates = [
                p for p in self._paragraphs.values()
                if getattr(p, field) and len(getattr(p, field)) == len(query)
            ]
        if not candidates:
            return []

        embeddings = np.asarray([getattr(p, field) for p in candidates], dtype=np.float32)
        norms = np.linalg.norm(embeddings, axis=1)
        norms[norms == 0] = 1.0
        scores = (embeddings / norms[:, None]) @ (query / query_norm)

        top = np.argsort(-scores, kind="stable")[:limit]
        return [(copy.copy(candidates[i]), float(scores[i])) for i in top]

    def count(self) -> int:
        with self._lock:
            return len(self._paragraphs)
