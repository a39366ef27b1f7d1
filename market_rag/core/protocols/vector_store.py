"""Vector store protocol for dependency injection."""
from typing import Literal, Protocol, runtime_checkable

from ..models.document import Paragraph

VectorField = Literal["text_embedding", "image_embedding"]
VECTOR_FIELDS: tuple[str, ...] = ("text_embedding", "image_embedding")


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for paragraph storage keyed by ``Paragraph.key``."""

    def ensure_collection_exists(self, name: str | None = None) -> None:
        """Create the collection if it is missing.

        Args:
            name: Collection name; defaults to the store's configured one.
        """
        ...

    def upsert(self, paragraph: Paragraph) -> None:
        """Insert or overwrite a paragraph by its key."""
        ...

    def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        field: VectorField = "text_embedding",
    ) -> list[tuple[Paragraph, float]]:
        """Search by vector.

        Args:
            query_vector: Query embedding.
            limit: Maximum number of hits.
            field: Which stored vector to compare against.

        Returns:
            (paragraph, similarity) pairs, best first.

        Raises:
            Exception: When the store cannot be queried; callers treat
                this as a failed search, distinct from zero hits.
        """
        ...

    def count(self) -> int:
        """Get paragraph count."""
        ...
