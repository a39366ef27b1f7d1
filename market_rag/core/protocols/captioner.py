"""Image captioner protocol."""
from typing import Protocol, runtime_checkable

CAPTION_MAX_LENGTH = 60


@runtime_checkable
class CaptionerProtocol(Protocol):
    """Short image descriptions. Never raises; falls back to a placeholder."""

    def describe(self, data: bytes) -> str:
        ...


@runtime_checkable
class ImageStorageProtocol(Protocol):
    """Persists image bytes and returns a path relative to the storage root."""

    def save(self, data: bytes, file_name: str) -> str:
        ...
