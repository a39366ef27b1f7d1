import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()


container = Container()


def configure_container(settings: Settings) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.

    Returns:
        Configured container.
    """
    from .core.protocols.block_reader import BlockReaderProtocol
    from .core.protocols.captioner import CaptionerProtocol, ImageStorageProtocol
    from .core.protocols.embedder import EmbedderProtocol, ImageEmbedderProtocol
    from .core.protocols.reranker import RerankerProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.block_mapper import DocumentBlockMapper
    from .core.services.chunking_service import TextChunkingService
    from .core.services.ingest_service import IngestService
    from .core.services.query_rewrite_service import QueryRewriteService
    from .core.services.retrieval_orchestrator import RetrievalOrchestrator
    from .core.services.text_cleaning import TextCleaningService
    from .core.strategies.fusion import LateFusion
    from .infrastructure.captioning.openai_captioner import (
        OpenAICaptioner,
        PlaceholderCaptioner,
    )
    from .infrastructure.document_readers import CompositeBlockReader
    from .infrastructure.embeddings.clip_image import ClipImageEmbedder
    from .infrastructure.embeddings.fallback import FallbackEmbedder
    from .infrastructure.embeddings.sentence_transformer import (
        SentenceTransformerEmbedder,
    )
    from .infrastructure.rerankers.cross_encoder import CrossEncoderReranker
    from .infrastructure.rerankers.fallback import FallbackReranker
    from .infrastructure.rerankers.heuristic import HeuristicReranker
    from .infrastructure.storage.local_image_storage import LocalImageStorage
    from .infrastructure.vector_stores.chroma_store import ChromaVectorStore
    from .infrastructure.vector_stores.memory_store import InMemoryVectorStore

    container.register(
        EmbedderProtocol,
        lambda: FallbackEmbedder(
            SentenceTransformerEmbedder(settings.embedding_model, settings.embedding_dim),
            settings.embedding_dim,
        ),
        singleton=True,
    )

    container.register(
        ImageEmbedderProtocol,
        lambda: ClipImageEmbedder(settings.image_embedding_model, settings.image_embedding_dim)
        if settings.image_embedding_enabled
        else None,
        singleton=True,
    )

    container.register(
        CaptionerProtocol,
        lambda: OpenAICaptioner(
            base_url=settings.caption_base_url,
            api_key=settings.caption_api_key,
            model=settings.caption_model,
        )
        if settings.caption_enabled
        else PlaceholderCaptioner(),
        singleton=True,
    )

    container.register(
        ImageStorageProtocol,
        lambda: LocalImageStorage(settings.image_storage_root),
        singleton=True,
    )

    if settings.vector_store == "memory":
        container.register(
            VectorStoreProtocol,
            lambda: InMemoryVectorStore(settings.chroma_collection),
            singleton=True,
        )
    else:
        container.register(
            VectorStoreProtocol,
            lambda: ChromaVectorStore(
                host=settings.chroma_host,
                port=settings.chroma_port,
                collection_name=settings.chroma_collection,
            ),
            singleton=True,
        )

    container.register(
        RerankerProtocol,
        lambda: FallbackReranker(CrossEncoderReranker(settings.reranker_model), HeuristicReranker())
        if settings.reranker_enabled
        else FallbackReranker(HeuristicReranker()),
        singleton=True,
    )

    container.register(BlockReaderProtocol, CompositeBlockReader, singleton=True)

    container.register(
        DocumentBlockMapper,
        lambda: DocumentBlockMapper(
            TextChunkingService(
                max_tokens_per_line=settings.chunk_max_tokens_per_line,
                max_tokens_per_paragraph=settings.chunk_max_tokens_per_paragraph,
                overlap_tokens=settings.chunk_overlap_tokens,
            ),
            TextCleaningService(),
        ),
        singleton=True,
    )

    container.register(QueryRewriteService, QueryRewriteService, singleton=True)

    container.register(
        RetrievalOrchestrator,
        lambda: RetrievalOrchestrator(
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            reranker=container.resolve(RerankerProtocol),
            rewriter=container.resolve(QueryRewriteService),
            image_embedder=container.resolve(ImageEmbedderProtocol),
            fusion=LateFusion(settings.rag_fusion_text_weight, settings.rag_fusion_image_weight),
            rewrite_candidates=settings.rag_rewrite_candidates,
            top=settings.rag_top_k,
        ),
        singleton=True,
    )

    container.register(
        IngestService,
        lambda: IngestService(
            reader=container.resolve(BlockReaderProtocol),
            mapper=container.resolve(DocumentBlockMapper),
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            image_embedder=container.resolve(ImageEmbedderProtocol),
            captioner=container.resolve(CaptionerProtocol),
            image_storage=container.resolve(ImageStorageProtocol),
            docs_path=settings.docs_path,
            workers=settings.ingest_workers,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return container
