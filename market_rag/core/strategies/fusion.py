"""Late fusion of text and image similarity."""

import logging
from typing import Optional, Sequence

import numpy as np

from ..models.document import SearchCandidate

logger = logging.getLogger(__name__)


def cosine_similarity(
    query_embedding: Sequence[float], embedding: Sequence[float]
) -> Optional[float]:
    """Cosine similarity, or None when the vectors are not comparable."""
    q = np.asarray(query_embedding, dtype=np.float32)
    e = np.asarray(embedding, dtype=np.float32)
    if q.shape != e.shape or q.size == 0:
        return None

    q_norm = np.linalg.norm(q)
    e_norm = np.linalg.norm(e)
    if q_norm == 0 or e_norm == 0:
        return None
    return float(np.dot(q / q_norm, e / e_norm))


class LateFusion:
    """Weighted sum of text and image scores.

    The image term is omitted entirely when a candidate has no image
    embedding, so text-only candidates keep their text score unchanged.
    """

    def __init__(self, text_weight: float = 0.7, image_weight: float = 0.3):
        """Initialize fusion.

        Args:
            text_weight: Weight of the text similarity.
            image_weight: Weight of the image similarity.
        """
        self._text_weight = text_weight
        self._image_weight = image_weight

    def fuse(self, text_score: float, image_score: Optional[float] = None) -> float:
        if image_score is None:
            return text_score
        return self._text_weight * text_score + self._image_weight * image_score

    def apply(
        self,
        candidates: list[SearchCandidate],
        text_query: Sequence[float],
        image_query: Optional[Sequence[float]] = None,
    ) -> list[SearchCandidate]:
        """Set ``fused_score`` on every candidate that has a text score."""
        fused = 0
        for candidate in candidates:
            text_score = None
            if candidate.text_embedding:
                text_score = cosine_similarity(text_query, candidate.text_embedding)
            if text_score is None:
                text_score = candidate.raw_score
            if text_score is None:
                continue

            image_score = None
            if candidate.image_embedding and image_query is not None:
                image_score = cosine_similarity(image_query, candidate.image_embedding)

            candidate.fused_score = self.fuse(text_score, image_score)
            if image_score is not None:
                fused += 1

        if fused:
            logger.debug(f"Late fusion: {fused}/{len(candidates)} candidates with image score")
        return candidates
