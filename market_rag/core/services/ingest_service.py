"""Ingest service - document indexing."""

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable, Optional

from ..models.blocks import IMAGE_PLACEHOLDER, DocumentBlock, ImageBlock
from ..models.document import ImageMetadata, Paragraph
from ..protocols.block_reader import BlockReaderProtocol
from ..protocols.captioner import CaptionerProtocol, ImageStorageProtocol
from ..protocols.embedder import EmbedderProtocol, ImageEmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from .block_mapper import DocumentBlockMapper

logger = logging.getLogger(__name__)


class IngestService:
    """Service for indexing documents into vector store.

    Documents are independent: ``run`` ingests them on a thread pool and the
    store receives upserts keyed by ``Paragraph.key``, so re-ingesting a
    document overwrites its previous paragraphs.
    """

    def __init__(
        self,
        reader: BlockReaderProtocol,
        mapper: DocumentBlockMapper,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        image_embedder: Optional[ImageEmbedderProtocol] = None,
        captioner: Optional[CaptionerProtocol] = None,
        image_storage: Optional[ImageStorageProtocol] = None,
        docs_path: str = "./docs",
        workers: int = 4,
        batch_size: int = 32,
    ):
        """Initialize ingest service.

        Args:
            reader: Document block reader.
            mapper: Block to paragraph mapper.
            embedder: Text embedding service.
            vector_store: Vector store.
            image_embedder: Image embedding service (optional).
            captioner: Image caption service (optional).
            image_storage: Image file storage (optional).
            docs_path: Path to documents folder.
            workers: Number of documents ingested in parallel.
            batch_size: Batch size for text embedding.
        """
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        self._reader = reader
        self._mapper = mapper
        self._embedder = embedder
        self._vector_store = vector_store
        self._image_embedder = image_embedder
        self._captioner = captioner
        self._image_storage = image_storage
        self._docs_path = Path(docs_path)
        self._workers = workers
        self._batch_size = batch_size

    def build_paragraphs(self, blocks: Iterable[DocumentBlock], document_uri: str) -> list[Paragraph]:
        """Map blocks in document order, threading order and section."""
        paragraphs: list[Paragraph] = []
        order = 0
        section: Optional[str] = None
        seen_images: set[str] = set()

        for block in sorted(blocks, key=lambda b: b.order):
            metadata = None
            if isinstance(block, ImageBlock) and block.data:
                digest = hashlib.sha256(block.data).hexdigest()
                if digest in seen_images:
                    logger.debug(f"Duplicate image skipped in {document_uri}")
                    continue
                seen_images.add(digest)
                metadata = self._image_metadata(block, digest)

            mapped = self._mapper.map_block(block, document_uri, order, section, metadata)
            paragraphs.extend(mapped.paragraphs)
            order, section = mapped.next_order, mapped.section

        return paragraphs

    def _image_metadata(self, block: ImageBlock, digest: str) -> ImageMetadata:
        caption = block.description
        if not caption and self._captioner is not None:
            described = self._captioner.describe(block.data)
            if described and described != IMAGE_PLACEHOLDER:
                caption = described
        caption = caption or block.alt_text or IMAGE_PLACEHOLDER

        stored_path = block.resolved_path
        if self._image_storage is not None:
            try:
                stored_path = self._image_storage.save(block.data, digest[:16])
            except OSError as e:
                logger.warning(f"Failed to store image {digest[:16]}: {e}")

        embedding = None
        if self._image_embedder is not None:
            embedding = self._image_embedder.embed_image(block.data)

        return ImageMetadata(caption=caption, stored_path=stored_path, embedding=embedding)

    def _embed(self, paragraphs: list[Paragraph]) -> None:
        for i in range(0, len(paragraphs), self._batch_size):
            batch = paragraphs[i : i + self._batch_size]
            vectors = self._embedder.embed_many([p.text for p in batch])
            for paragraph, vector in zip(batch, vectors):
                paragraph.text_embedding = vector

    def ingest_file(self, file_path: str | Path) -> int:
        """Index one document.

        Returns:
            Number of paragraphs upserted.
        """
        path = Path(file_path)
        if not self._reader.supports(path):
            logger.error(f"Unsupported document format: {path}")
            return 0

        blocks = self._reader.read_blocks(path)
        if not blocks:
            logger.warning(f"No content extracted from {path.name}")
            return 0

        document_uri = path.resolve().as_posix()
        paragraphs = self.build_paragraphs(blocks, document_uri)
        self._embed(paragraphs)

        upserted = 0
        for paragraph in paragraphs:
            try:
                self._vector_store.upsert(paragraph)
                upserted += 1
            except Exception as e:
                logger.warning(f"Upsert failed for {paragraph.key}: {e}")

        logger.info(f"Indexed {path.name}: {len(blocks)} blocks, {upserted} paragraphs")
        return upserted

    def run(self, paths: Optional[Iterable[str | Path]] = None) -> int:
        """Index documents in parallel.

        Args:
            paths: Files to index; defaults to supported files in the docs folder.

        Returns:
            Total number of paragraphs upserted.
        """
        if paths is None:
            if not self._docs_path.exists():
                logger.error(f"Docs path not found: {self._docs_path}")
                return 0
            paths = sorted(
                p for p in self._docs_path.iterdir()
                if p.is_file() and self._reader.supports(p)
            )
        paths = [Path(p) for p in paths]
        if not paths:
            logger.info("No documents to index")
            return 0

        self._vector_store.ensure_collection_exists()

        total = 0
        with ThreadPoolExecutor(max_workers=min(self._workers, len(paths))) as pool:
            futures = {pool.submit(self.ingest_file, p): p for p in paths}
            for future in as_completed(futures):
                try:
                    total += future.result()
                except Exception as e:
                    logger.error(f"Failed to ingest {futures[future].name}: {e}")

        logger.info(f"Indexing complete: {total} paragraphs from {len(paths)} files")
        return total
