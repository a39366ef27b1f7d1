import logging
from typing import Optional

import requests

from market_rag.core.models.blocks import BlockKind
from market_rag.core.models.document import Paragraph
from market_rag.core.protocols.vector_store import VectorField

logger = logging.getLogger(__name__)

IMAGE_COLLECTION_SUFFIX = "_images"


class ChromaVectorStore:
    """Paragraph store using ChromaDB HTTP API.

    Text vectors live in ``collection_name``; image vectors of image
    paragraphs live in a sibling ``<collection_name>_images`` collection
    under the same key.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "market_paragraphs",
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 30.0,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Text collection name.
            tenant: Tenant name.
            database: Database name.
            timeout: HTTP timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._image_collection_name = f"{collection_name}{IMAGE_COLLECTION_SUFFIX}"
        self._timeout = timeout
        self._collection_ids: dict[str, str] = {}

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _collection_for(self, field: VectorField) -> str:
        if field == "image_embedding":
            return self._image_collection_name
        if field == "text_embedding":
            return self._collection_name
        raise ValueError(f"Unknown vector field: {field}")

    def _ensure_collection(self, name: str) -> str:
        """Get or create collection, return ID."""
        if name in self._collection_ids:
            return self._collection_ids[name]

        resp = requests.get(self._collections_url, timeout=self._timeout)
        if resp.status_code == 200:
            for col in resp.json():
                if col["name"] == name:
                    self._collection_ids[name] = col["id"]
                    return col["id"]

        resp = requests.post(
            self._collections_url,
            json={"name": name, "metadata": {"hnsw:space": "cosine"}, "get_or_create": True},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        self._collection_ids[name] = resp.json()["id"]
        logger.info(f"Created collection: {name}")
        return self._collection_ids[name]

    def ensure_collection_exists(self, name: str | None = None) -> None:
        if name is not None:
            self._ensure_collection(name)
            return
        self._ensure_collection(self._collection_name)
        self._ensure_collection(self._image_collection_name)

    def _upsert(self, collection: str, paragraph: Paragraph, embedding: list[float]) -> None:
        col_id = self._ensure_collection(collection)
        resp = requests.post(
            f"{self._collections_url}/{col_id}/upsert",
            json={
                "ids": [paragraph.key],
                "embeddings": [embedding],
                "documents": [paragraph.text],
                "metadatas": [paragraph.to_metadata()],
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()

    def upsert(self, paragraph: Paragraph) -> None:
        """Insert or overwrite a paragraph by key."""
        if not paragraph.text_embedding:
            raise ValueError(f"Paragraph {paragraph.key} has no text embedding")

        self._upsert(self._collection_name, paragraph, paragraph.text_embedding)
        if paragraph.image_embedding:
            self._upsert(self._image_collection_name, paragraph, paragraph.image_embedding)

    def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        field: VectorField = "text_embedding",
    ) -> list[tuple[Paragraph, float]]:
        """Search by embedding."""
        collection = self._collection_for(field)
        col_id = self._ensure_collection(collection)
        resp = requests.post(
            f"{self._collections_url}/{col_id}/query",
            json={
                "query_embeddings": [query_vector],
                "n_results": limit,
                "include": ["documents", "metadatas", "distances", "embeddings"],
            },
            timeout=self._timeout,
        )

        resp.raise_for_status()

        data = resp.json()
        hits: list[tuple[Paragraph, float]] = []
        if not data.get("ids") or not data["ids"][0]:
            return hits

        embeddings = (data.get("embeddings") or [[]])[0] or []
        for i, key in enumerate(data["ids"][0]):
            vector = embeddings[i] if i < len(embeddings) else None
            paragraph = Paragraph.from_metadata(
                key=key,
                text=data["documents"][0][i] or "",
                metadata=data["metadatas"][0][i] or {},
                text_embedding=vector if field == "text_embedding" else None,
                image_embedding=vector if field == "image_embedding" else None,
            )
            hits.append((paragraph, 1.0 - data["distances"][0][i]))

        if field == "text_embedding":
            self._attach_image_embeddings([p for p, _ in hits])
        return hits

    def _attach_image_embeddings(self, paragraphs: list[Paragraph]) -> None:
        images = [p for p in paragraphs if p.block_kind == BlockKind.IMAGE]
        if not images:
            return

        vectors = self._get_embeddings(self._image_collection_name, [p.key for p in images])
        for paragraph in images:
            paragraph.image_embedding = vectors.get(paragraph.key)

    def _get_embeddings(self, collection: str, ids: list[str]) -> dict[str, list[float]]:
        col_id = self._ensure_collection(collection)
        resp = requests.post(
            f"{self._collections_url}/{col_id}/get",
            json={"ids": ids, "include": ["embeddings"]},
            timeout=self._timeout,
        )
        if resp.status_code != 200:
            return {}
        data = resp.json()
        return {
            key: list(vector)
            for key, vector in zip(data.get("ids", []), data.get("embeddings") or [])
            if vector is not None
        }

    def get(self, key: str) -> Optional[Paragraph]:
        """Fetch one paragraph by key."""
        col_id = self._ensure_collection(self._collection_name)
        resp = requests.post(
            f"{self._collections_url}/{col_id}/get",
            json={"ids": [key], "include": ["documents", "metadatas", "embeddings"]},
            timeout=self._timeout,
        )
        if resp.status_code != 200:
            return None
        data = resp.json()
        if not data.get("ids"):
            return None
        embeddings = data.get("embeddings") or [None]
        return Paragraph.from_metadata(
            key=data["ids"][0],
            text=data["documents"][0] or "",
            metadata=data["metadatas"][0] or {},
            text_embedding=embeddings[0],
        )

    def count(self) -> int:
        """Get paragraph count."""
        col_id = self._ensure_collection(self._collection_name)
        resp = requests.get(f"{self._collections_url}/{col_id}/count", timeout=self._timeout)
        return resp.json() if resp.status_code == 200 else 0
