"""Paragraph and search domain models."""
from dataclasses import dataclass, field
from typing import Optional

from .blocks import BlockKind


@dataclass
class ImageMetadata:
    """Result of image processing handed to the block mapper."""
    caption: str
    stored_path: Optional[str]
    embedding: Optional[list[float]] = field(default=None, repr=False)


@dataclass
class Paragraph:
    """Persisted retrieval unit.

    ``key`` is derived from document identity, position and content hash, so
    re-ingesting the same content upserts over the previous record.
    ``image_embedding`` is only set for image paragraphs; branch on
    ``block_kind`` rather than on vector contents.
    """
    key: str
    document_uri: str
    paragraph_id: str
    text: str
    order: int
    source_type: str
    content_hash: str
    block_kind: BlockKind
    section: Optional[str] = None
    text_embedding: list[float] = field(default_factory=list, repr=False)
    image_embedding: Optional[list[float]] = field(default=None, repr=False)
    image_uri: Optional[str] = None
    heading_level: Optional[int] = None
    list_ordered: Optional[bool] = None
    published_at: Optional[str] = None

    def to_metadata(self) -> dict:
        """Flat metadata for stores that only accept scalar values."""
        meta = {
            "document_uri": self.document_uri,
            "paragraph_id": self.paragraph_id,
            "order": self.order,
            "source_type": self.source_type,
            "content_hash": self.content_hash,
            "block_kind": self.block_kind.value,
            "section": self.section,
            "image_uri": self.image_uri,
            "heading_level": self.heading_level,
            "list_ordered": self.list_ordered,
            "published_at": self.published_at,
        }
        return {k: v for k, v in meta.items() if v is not None}

    @classmethod
    def from_metadata(
        cls,
        key: str,
        text: str,
        metadata: dict,
        text_embedding: Optional[list[float]] = None,
        image_embedding: Optional[list[float]] = None,
    ) -> "Paragraph":
        return cls(
            key=key,
            document_uri=metadata.get("document_uri", ""),
            paragraph_id=metadata.get("paragraph_id", key),
            text=text,
            order=int(metadata.get("order", 0)),
            source_type=metadata.get("source_type", "unknown"),
            content_hash=metadata.get("content_hash", ""),
            block_kind=BlockKind(metadata.get("block_kind", BlockKind.TEXT.value)),
            section=metadata.get("section"),
            text_embedding=list(text_embedding) if text_embedding is not None else [],
            image_embedding=list(image_embedding) if image_embedding is not None else None,
            image_uri=metadata.get("image_uri"),
            heading_level=metadata.get("heading_level"),
            list_ordered=metadata.get("list_ordered"),
            published_at=metadata.get("published_at"),
        )


@dataclass
class SearchCandidate:
    """Search hit produced by one sub-query."""
    text: str
    source_id: str
    link: Optional[str] = None
    raw_score: Optional[float] = None
    rerank_score: Optional[float] = None
    fused_score: Optional[float] = None
    block_kind: BlockKind = BlockKind.TEXT
    text_embedding: Optional[list[float]] = field(default=None, repr=False)
    image_embedding: Optional[list[float]] = field(default=None, repr=False)

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.link or "", self.source_id, self.text)

    @property
    def score(self) -> float:
        """Final score (rerank, else fused, else vector)."""
        for value in (self.rerank_score, self.fused_score, self.raw_score):
            if value is not None:
                return value
        return 0.0

    @classmethod
    def from_paragraph(cls, paragraph: Paragraph, score: Optional[float]) -> "SearchCandidate":
        return cls(
            text=paragraph.text,
            source_id=paragraph.paragraph_id,
            link=paragraph.document_uri,
            raw_score=score,
            block_kind=paragraph.block_kind,
            text_embedding=paragraph.text_embedding or None,
            image_embedding=paragraph.image_embedding,
        )


@dataclass
class ScoredCandidate:
    """Heuristic reranker output for one candidate.

    ``total`` is computed from the weighted signals and then adjusted once by
    diversity de-biasing; the final order sorts on the adjusted value.
    """
    candidate: SearchCandidate
    relevance: float
    freshness: float
    length: float
    total: float


@dataclass
class RetrievalResult:
    """Retrieval response for callers of the orchestrator."""
    results: list[SearchCandidate] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)
    failed_queries: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.results

    @property
    def context(self) -> str:
        """Numbered passages for an LLM prompt."""
        return "\n\n".join(
            f"[{i}] {r.link or r.source_id}:\n{r.text}"
            for i, r in enumerate(self.results, 1)
        )

    @property
    def sources(self) -> list[str]:
        seen = set()
        sources = []
        for r in self.results:
            source = r.link or r.source_id
            if source not in seen:
                seen.add(source)
                sources.append(source)
        return sources
