"""Reranker protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.document import SearchCandidate


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for reranking service."""

    def rerank(
        self,
        query: str,
        candidates: list[SearchCandidate]
    ) -> list[SearchCandidate]:
        """Rerank candidates by relevance.

        Args:
            query: User query.
            candidates: Deduplicated candidates.

        Returns:
            Candidates sorted by relevance, best first.
        """
        ...


@runtime_checkable
class ReadinessProtocol(Protocol):
    """Optional capability of model-backed components."""

    @property
    def is_ready(self) -> bool:
        ...
