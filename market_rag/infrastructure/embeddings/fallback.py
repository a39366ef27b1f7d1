import logging

from market_rag.core.protocols.embedder import EmbedderProtocol

from .hash_embedder import HashEmbedder

logger = logging.getLogger(__name__)


class FallbackEmbedder:
    """Uses the primary embedder, falling back to hash vectors on failure.

    Fallback vectors keep the configured dimension, so callers never see an
    exception or a vector of a different length.
    """

    def __init__(self, primary: EmbedderProtocol, dimension: int):
        self._primary = primary
        self._fallback = HashEmbedder(dimension)

    @property
    def dimension(self) -> int:
        return self._fallback.dimension

    def embed(self, text: str) -> list[float]:
        try:
            vector = self._primary.embed(text)
        except Exception as e:
            logger.warning(f"Embedding failed, using hash fallback: {e}")
            return self._fallback.embed(text)
        return self._checked(vector, text)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self._primary.embed_many(texts)
        except Exception as e:
            logger.warning(f"Batch embedding failed, using hash fallback: {e}")
            return self._fallback.embed_many(texts)
        if len(vectors) != len(texts):
            logger.warning(f"Embedder returned {len(vectors)} vectors for {len(texts)} texts")
            return self._fallback.embed_many(texts)
        return [self._checked(v, t) for v, t in zip(vectors, texts)]

    def _checked(self, vector: list[float], text: str) -> list[float]:
        if len(vector) != self.dimension:
            logger.warning(
                f"Embedding dimension {len(vector)} != {self.dimension}, using hash fallback"
            )
            return self._fallback.embed(text)
        return list(vector)
