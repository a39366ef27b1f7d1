import logging
import threading
from typing import Optional

from sentence_transformers import CrossEncoder

from market_rag.core.models.document import SearchCandidate

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Reranker using CrossEncoder models.

    The model loads on first use; a failed load leaves the reranker not
    ready so a fallback chain can skip it.
    """

    def __init__(self, model_name: str = "BAAI/bge-reranker-v2-m3", eager: bool = False):
        """Initialize reranker.

        Args:
            model_name: HuggingFace model name.
            eager: Load the model immediately.
        """
        self._model_name = model_name
        self._model: Optional[CrossEncoder] = None
        self._load_failed = False
        self._lock = threading.Lock()
        if eager:
            self._load()

    def _load(self) -> Optional[CrossEncoder]:
        if self._model is not None or self._load_failed:
            return self._model
        with self._lock:
            if self._model is None and not self._load_failed:
                logger.info(f"Loading reranker: {self._model_name}")
                try:
                    self._model = CrossEncoder(self._model_name)
                    logger.info("Reranker loaded")
                except Exception as e:
                    self._load_failed = True
                    logger.error(f"Failed to load reranker {self._model_name}: {e}")
        return self._model

    @property
    def is_ready(self) -> bool:
        return self._load() is not None

    def rerank(self, query: str, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        """Rerank candidates by relevance.

        Args:
            query: User query.
            candidates: Search candidates.

        Returns:
            Candidates sorted by score (descending).

        Raises:
            RuntimeError: If the model is unavailable.
        """
        if len(candidates) <= 1:
            return candidates

        model = self._load()
        if model is None:
            raise RuntimeError(f"Reranker model {self._model_name} is not available")

        pairs = [[query, c.text] for c in candidates]
        with self._lock:
            scores = model.predict(pairs)

        for candidate, score in zip(candidates, scores):
            candidate.rerank_score = float(score)

        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{c.score:.2f}" for c in ranked[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return ranked
