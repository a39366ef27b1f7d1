import hashlib

import numpy as np


def hash_vector(data: bytes, dimension: int) -> list[float]:
    """Deterministic unit vector derived from SHA-256 of ``data``.

    Digest bytes are scaled to [0, 1], centred and repeated up to
    ``dimension``; equal input always gives the equal vector.
    """
    if dimension <= 0:
        raise ValueError(f"dimension must be positive, got {dimension}")

    digest = np.frombuffer(hashlib.sha256(data).digest(), dtype=np.uint8)
    values = np.resize(digest.astype(np.float32) / 255.0 - 0.5, dimension)
    norm = np.linalg.norm(values)
    if norm > 0:
        values = values / norm
    return values.astype(np.float32).tolist()


class HashEmbedder:
    """Model-free embedder used when the real model is unavailable."""

    def __init__(self, dimension: int = 1024):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        return hash_vector((text or "").encode("utf-8"), self._dimension)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]
