"""Core business services."""
from .text_cleaning import TextCleaningService
from .chunking_service import TextChunkingService
from .block_mapper import DocumentBlockMapper
from .query_rewrite_service import QueryRewriteService
from .retrieval_orchestrator import RetrievalOrchestrator
from .ingest_service import IngestService

__all__ = [
    "TextCleaningService",
    "TextChunkingService",
    "DocumentBlockMapper",
    "QueryRewriteService",
    "RetrievalOrchestrator",
    "IngestService",
]
