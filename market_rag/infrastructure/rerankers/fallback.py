import logging

from market_rag.core.models.document import SearchCandidate
from market_rag.core.protocols.reranker import ReadinessProtocol, RerankerProtocol

logger = logging.getLogger(__name__)


class FallbackReranker:
    """Tries rerankers in order; the first success wins.

    Rerankers reporting ``is_ready == False`` are skipped. If every reranker
    fails the candidates come back in their original order.
    """

    def __init__(self, *rerankers: RerankerProtocol):
        if not rerankers:
            raise ValueError("FallbackReranker needs at least one reranker")
        self._rerankers = rerankers

    def rerank(self, query: str, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        if len(candidates) <= 1:
            return candidates

        for reranker in self._rerankers:
            name = type(reranker).__name__
            if isinstance(reranker, ReadinessProtocol) and not reranker.is_ready:
                logger.warning(f"Reranker {name} not ready, skipping")
                continue
            try:
                return reranker.rerank(query, list(candidates))
            except Exception as e:
                logger.warning(f"Reranker {name} failed: {e}")

        logger.error("All rerankers failed, keeping original order")
        return candidates
