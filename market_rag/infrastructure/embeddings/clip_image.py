import io
import logging
import threading
from typing import Optional

import numpy as np
from PIL import Image
from sentence_transformers import SentenceTransformer

from .hash_embedder import hash_vector

logger = logging.getLogger(__name__)


class ClipImageEmbedder:
    """CLIP embeddings for images and for queries in the same space.

    Undecodable images and model failures produce a deterministic hash
    vector of the configured dimension.
    """

    def __init__(self, model_name: str = "clip-ViT-B-32", dimension: int = 512):
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
                    logger.info(f"Loading image embedding model: {self._model_name}")
                    self._model = SentenceTransformer(self._model_name)
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed_image(self, data: bytes) -> list[float]:
        if not data:
            return hash_vector(b"", self._dimension)
        try:
            with Image.open(io.BytesIO(data)) as img:
                image = img.convert("RGB")
            return self._encode(image)
        except Exception as e:
            logger.warning(f"Image embedding failed, using hash fallback: {e}")
            return hash_vector(data, self._dimension)

    def embed_text(self, text: str) -> list[float]:
        try:
            return self._encode(text or "")
        except Exception as e:
            logger.warning(f"CLIP text embedding failed, using hash fallback: {e}")
            return hash_vector((text or "").encode("utf-8"), self._dimension)

    def _encode(self, item) -> list[float]:
        with self._lock:
            vector = self.model.encode(item, convert_to_numpy=True, normalize_embeddings=True)
        vector = np.asarray(vector, dtype=np.float32)
        if vector.shape[-1] != self._dimension:
            raise ValueError(f"CLIP dimension {vector.shape[-1]} != {self._dimension}")
        return vector.tolist()
