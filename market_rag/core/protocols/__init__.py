"""Protocol interfaces for dependency injection."""
from .block_reader import BlockReaderProtocol
from .captioner import CaptionerProtocol, ImageStorageProtocol
from .embedder import EmbedderProtocol, ImageEmbedderProtocol
from .reranker import ReadinessProtocol, RerankerProtocol
from .vector_store import VectorStoreProtocol

__all__ = [
    "BlockReaderProtocol",
    "CaptionerProtocol",
    "ImageStorageProtocol",
    "EmbedderProtocol",
    "ImageEmbedderProtocol",
    "ReadinessProtocol",
    "RerankerProtocol",
    "VectorStoreProtocol",
]
