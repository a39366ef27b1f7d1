import logging
from datetime import datetime
from typing import Callable

from market_rag.core.models.document import ScoredCandidate, SearchCandidate
from market_rag.core.strategies.scoring import (
    DiversityPenalty,
    FreshnessStrategy,
    LengthStrategy,
    RelevanceStrategy,
    ScoringConstants,
    ScoringWeights,
)

logger = logging.getLogger(__name__)


class HeuristicReranker:
    """Model-free reranker: relevance, freshness and length, then diversity."""

    def __init__(
        self,
        weights: ScoringWeights = ScoringWeights(),
        constants: ScoringConstants = ScoringConstants(),
        now: Callable[[], datetime] = datetime.now,
    ):
        """Initialize reranker.

        Args:
            weights: Signal weights.
            constants: Tokenizer, length and diversity constants.
            now: Clock used for freshness.
        """
        self._weights = weights
        self._relevance = RelevanceStrategy(constants)
        self._freshness = FreshnessStrategy(now)
        self._length = LengthStrategy(constants)
        self._diversity = DiversityPenalty(constants)

    @property
    def is_ready(self) -> bool:
        return True

    def score(self, query: str, candidates: list[SearchCandidate]) -> list[ScoredCandidate]:
        """Score candidates; the result keeps input order."""
        scored = []
        for candidate in candidates:
            relevance = self._relevance.score(query, candidate)
            freshness = self._freshness.score(query, candidate)
            length = self._length.score(query, candidate)
            total = (
                self._weights.relevance * relevance
                + self._weights.freshness * freshness
                + self._weights.length * length
            )
            scored.append(ScoredCandidate(candidate, relevance, freshness, length, total))

        self._diversity.apply(scored)
        return scored

    def rerank(self, query: str, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        """Rerank by heuristic score.

        Lists of zero or one candidate are returned unchanged. Any internal
        error returns the input order.
        """
        if len(candidates) <= 1:
            return candidates

        try:
            scored = self.score(query, candidates)
        except Exception as e:
            logger.error(f"Heuristic rerank failed, keeping input order: {e}")
            return candidates

        # sorted() is stable: equal totals keep their input order
        scored = sorted(scored, key=lambda s: s.total, reverse=True)
        for s in scored:
            s.candidate.rerank_score = s.total

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{s.total:.2f}" for s in scored[:3])
            logger.debug(f"Heuristic top-3 scores: [{top_scores}]")

        return [s.candidate for s in scored]
