import logging
import threading
from typing import Optional

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Text embedder backed by a sentence-transformers model.

    Inference is serialized with a lock; the model is not guaranteed to be
    safe for concurrent ``encode`` calls.
    """

    def __init__(self, model_name: str = "BAAI/bge-m3", dimension: int | None = None):
        self._model_name = model_name
        self._dimension = dimension
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()
        self._load_lock = threading.Lock()

    @property
    def model(self) -> SentenceTransformer:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    logger.info(f"Loading embedding model: {self._model_name}")
                    self._model = SentenceTransformer(self._model_name)
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = int(self.model.get_sentence_embedding_dimension())
        return self._dimension

    def warmup(self) -> None:
        _ = self.model
        logger.info("Embedding model warmed up")

    def encode(self, texts: str | list[str]) -> np.ndarray:
        with self._lock:
            return self.model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)

    def embed(self, text: str) -> list[float]:
        return self.encode(text).astype(np.float32).tolist()

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return self.encode(texts).astype(np.float32).tolist()
