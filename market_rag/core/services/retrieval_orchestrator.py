"""Retrieval orchestrator - multi-query search, merge, dedup and rerank."""

import asyncio
import logging
from typing import Iterable, Optional

from ..models.document import RetrievalResult, SearchCandidate
from ..protocols.embedder import EmbedderProtocol, ImageEmbedderProtocol
from ..protocols.reranker import RerankerProtocol
from ..protocols.vector_store import VectorStoreProtocol
from ..strategies.fusion import LateFusion
from .query_rewrite_service import QueryRewriteService

logger = logging.getLogger(__name__)

MIN_PER_QUERY_LIMIT = 3


class SearchCancelledError(Exception):
    """A sub-query search was interrupted by the cancellation signal."""


def per_query_limit(top: int) -> int:
    return max(top // 2, MIN_PER_QUERY_LIMIT)


def deduplicate(candidates: Iterable[SearchCandidate]) -> list[SearchCandidate]:
    """Keep the first candidate for every (link, source id, text) key."""
    seen: set[tuple[str, str, str]] = set()
    unique = []
    for candidate in candidates:
        key = candidate.dedup_key
        if key not in seen:
            seen.add(key)
            unique.append(candidate)
    return unique


class RetrievalOrchestrator:
    """Rewrite, fan out, merge, dedup, fuse, rerank and truncate.

    Each call is independent; the orchestrator holds no per-request state.
    Sub-query failures are logged and skipped. If every sub-query fails, or
    the cancellation event is set, an empty ``RetrievalResult`` comes back
    instead of an exception.
    """

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        reranker: RerankerProtocol,
        rewriter: Optional[QueryRewriteService] = None,
        image_embedder: Optional[ImageEmbedderProtocol] = None,
        fusion: Optional[LateFusion] = None,
        rewrite_candidates: int = 3,
        top: int = 8,
    ):
        """Initialize orchestrator.

        Args:
            embedder: Text embedder for queries.
            vector_store: Paragraph store.
            reranker: Reranker (usually a fallback chain).
            rewriter: Query rewriter.
            image_embedder: Embeds queries into the image space for fusion.
            fusion: Late fusion of text and image scores.
            rewrite_candidates: Maximum number of rewrites per query.
            top: Default number of results.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._reranker = reranker
        self._rewriter = rewriter or QueryRewriteService()
        self._image_embedder = image_embedder
        self._fusion = fusion
        self._rewrite_candidates = rewrite_candidates
        self._top = top

    async def retrieve(
        self,
        query: str,
        top: Optional[int] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> RetrievalResult:
        """Retrieve ranked passages for a query.

        Args:
            query: User query.
            top: Number of results to return.
            cancel: Cancellation signal honoured by every stage.

        Returns:
            Ranked results, the queries issued and the ones that failed.

        Raises:
            ValueError: If ``top`` is negative.
        """
        top = self._top if top is None else top
        if top < 0:
            raise ValueError(f"top must be non-negative, got {top}")
        if not query or not query.strip() or top == 0:
            return RetrievalResult()
        if self._cancelled(cancel, "rewrite"):
            return RetrievalResult(cancelled=True)

        try:
            rewrites = self._rewriter.rewrite(query, self._rewrite_candidates)
        except Exception as e:
            logger.warning(f"Query rewrite failed, using original only: {e}")
            rewrites = []
        queries = [query, *rewrites]

        try:
            await asyncio.to_thread(self._vector_store.ensure_collection_exists)
        except Exception as e:
            logger.warning(f"Ensure collection failed: {e}")

        if self._cancelled(cancel, "search"):
            return RetrievalResult(queries=queries, cancelled=True)

        limit = per_query_limit(top)
        outcomes = await asyncio.gather(
            *(self._search(q, limit, cancel) for q in queries),
            return_exceptions=True,
        )
        if self._cancelled(cancel, "merge"):
            return RetrievalResult(queries=queries, cancelled=True)

        merged: list[SearchCandidate] = []
        failed: list[str] = []
        query_vector: Optional[list[float]] = None
        for i, (q, outcome) in enumerate(zip(queries, outcomes)):
            if isinstance(outcome, BaseException):
                logger.warning(f"Sub-query failed '{q[:50]}': {outcome!r}")
                failed.append(q)
                continue
            vector, candidates = outcome
            if i == 0:
                query_vector = vector
            merged.extend(candidates)

        if len(failed) == len(queries):
            logger.error(f"All {len(queries)} sub-queries failed for '{query[:50]}'")
            return RetrievalResult(queries=queries, failed_queries=failed)

        candidates = deduplicate(merged)
        logger.info(
            f"Merged {len(merged)} candidates from {len(queries) - len(failed)} queries, "
            f"{len(candidates)} after dedup"
        )
        if not candidates:
            return RetrievalResult(queries=queries, failed_queries=failed)

        if self._fusion is not None:
            await self._fuse(query, query_vector, candidates)

        if self._cancelled(cancel, "rerank"):
            return RetrievalResult(queries=queries, cancelled=True)

        try:
            ranked = await asyncio.to_thread(self._reranker.rerank, query, candidates)
        except Exception as e:
            logger.warning(f"Rerank failed, keeping merge order: {e}")
            ranked = candidates

        if self._cancelled(cancel, "truncate"):
            return RetrievalResult(queries=queries, cancelled=True)

        return RetrievalResult(results=ranked[:top], queries=queries, failed_queries=failed)

    def retrieve_sync(self, query: str, top: Optional[int] = None) -> RetrievalResult:
        """Blocking wrapper around ``retrieve`` for non-async callers."""
        return asyncio.run(self.retrieve(query, top))

    async def _search(
        self, query: str, limit: int, cancel: Optional[asyncio.Event]
    ) -> tuple[list[float], list[SearchCandidate]]:
        work = asyncio.ensure_future(asyncio.to_thread(self._search_sync, query, limit))
        if cancel is None:
            return await work

        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if work not in done:
            work.cancel()
            raise SearchCancelledError(query)
        return work.result()

    def _search_sync(self, query: str, limit: int) -> tuple[list[float], list[SearchCandidate]]:
        vector = self._embedder.embed(query)
        hits = self._vector_store.search(vector, limit=limit, field="text_embedding")
        logger.debug(f"Sub-query '{query[:50]}': {len(hits)} hits")
        return vector, [SearchCandidate.from_paragraph(p, score) for p, score in hits]

    async def _fuse(
        self,
        query: str,
        query_vector: Optional[list[float]],
        candidates: list[SearchCandidate],
    ) -> None:
        try:
            if query_vector is None:
                query_vector = await asyncio.to_thread(self._embedder.embed, query)
            image_vector = None
            if self._image_embedder is not None and any(c.image_embedding for c in candidates):
                image_vector = await asyncio.to_thread(self._image_embedder.embed_text, query)
            self._fusion.apply(candidates, query_vector, image_vector)
        except Exception as e:
            logger.warning(f"Score fusion skipped: {e}")

    @staticmethod
    def _cancelled(cancel: Optional[asyncio.Event], stage: str) -> bool:
        if cancel is not None and cancel.is_set():
            logger.info(f"Retrieval cancelled before {stage}")
            return True
        return False
