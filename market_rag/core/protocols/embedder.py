"""Embedder protocols for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for text embedding service.

    Implementations never raise: on internal failure they return a
    deterministic fallback vector of the same dimension.
    """

    @property
    def dimension(self) -> int:
        """Length of every returned vector."""
        ...

    def embed(self, text: str) -> list[float]:
        """Embed one text.

        Args:
            text: Text to embed.

        Returns:
            Embedding vector of length ``dimension``.
        """
        ...

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts."""
        ...


@runtime_checkable
class ImageEmbedderProtocol(Protocol):
    """Protocol for image embedding service (text and image towers)."""

    @property
    def dimension(self) -> int:
        ...

    def embed_image(self, data: bytes) -> list[float]:
        """Embed raw image bytes.

        Args:
            data: Encoded image (PNG, JPEG, ...).

        Returns:
            Embedding vector of length ``dimension``.
        """
        ...

    def embed_text(self, text: str) -> list[float]:
        """Embed a query into the image embedding space."""
        ...
