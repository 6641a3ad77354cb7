# =============================================================================
# Local Vector Index — File-Based ChromaDB Collection
# =============================================================================
#
# The RAG example keeps its knowledge base in a folder on disk so the
# expensive indexing phase (download → chunk → embed) runs only once.
#
# DESIGN DECISION: ChromaDB PersistentClient rooted at the index folder.
# No server, no extra infrastructure, and `agentic-patterns clean` can
# reset everything by deleting the folder.
#
# DESIGN DECISION: Cosine space, similarity reported as 1 - distance.
# Results come back sorted highest similarity first.
#
# ARCHITECTURE:
#   LocalVectorIndex
#   ├── is_index_created() — collection exists and holds items
#   ├── create_index()     — create the (empty) collection
#   ├── insert_items()     — add text + vector pairs
#   ├── query_items()      — top-k cosine search
#   └── delete_index()     — drop the collection
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path

import chromadb
from chromadb.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class VectorSearchResult:
    """
    A single result from vector similarity search.

    similarity_score is cosine similarity (higher = more relevant).
    """

    item_id: str
    text: str
    similarity_score: float
    metadata: dict = field(default_factory=dict)


class LocalVectorIndex:
    """Persistent vector index stored under `folder`."""

    def __init__(self, folder: Path | str, name: str) -> None:
        self._folder = Path(folder)
        self._folder.mkdir(parents=True, exist_ok=True)
        self._name = name
        self._client = chromadb.PersistentClient(path=str(self._folder))
        self._collection = None

    @property
    def folder(self) -> Path:
        return self._folder

    def _get_collection(self):
        if self._collection is None:
            self._collection = self._client.get_collection(name=self._name)
        return self._collection

    def is_index_created(self) -> bool:
        """True when the collection exists and already holds items."""
        existing = {
            c if isinstance(c, str) else c.name
            for c in self._client.list_collections()
        }
        if self._name not in existing:
            return False
        return self._get_collection().count() > 0

    def create_index(self) -> None:
        """Create the collection (no-op if it already exists)."""
        self._collection = self._client.get_or_create_collection(
            name=self._name,
            metadata={"hnsw:space": "cosine"},
        )
        logger.info("Created vector index '%s' in %s", self._name, self._folder)

    def insert_items(
        self,
        texts: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict] | None = None,
    ) -> list[str]:
        """Store texts with their vectors. Returns the generated item ids."""
        if not texts:
            return []
        if len(texts) != len(embeddings):
            raise ValueError(
                f"Got {len(texts)} texts but {len(embeddings)} embeddings"
            )

        ids = [uuid.uuid4().hex for _ in texts]
        kwargs: dict = {"ids": ids, "documents": texts, "embeddings": embeddings}
        if metadatas:
            kwargs["metadatas"] = metadatas
        self._get_collection().add(**kwargs)

        logger.debug("Inserted %d items into '%s'", len(ids), self._name)
        return ids

    def query_items(
        self,
        query_embedding: list[float],
        top_k: int = 20,
    ) -> list[VectorSearchResult]:
        """Return the `top_k` most similar items, highest similarity first."""
        collection = self._get_collection()
        n_results = min(top_k, collection.count())
        if n_results == 0:
            return []

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

        search_results: list[VectorSearchResult] = []
        if results and results["ids"] and results["ids"][0]:
            for i, item_id in enumerate(results["ids"][0]):
                distance = results["distances"][0][i] if results["distances"] else 0.0
                text = results["documents"][0][i] if results["documents"] else ""
                metadata = (
                    results["metadatas"][0][i] if results["metadatas"] else None
                )
                search_results.append(VectorSearchResult(
                    item_id=item_id,
                    text=text or "",
                    similarity_score=round(1.0 - distance, 4),
                    metadata=metadata or {},
                ))

        search_results.sort(key=lambda r: r.similarity_score, reverse=True)
        logger.debug(
            "Vector search returned %d items (top_k=%d)", len(search_results), top_k,
        )
        return search_results

    def delete_index(self) -> None:
        """Drop the collection if present."""
        try:
            self._client.delete_collection(name=self._name)
        except (ValueError, NotFoundError):
            logger.debug("Vector index '%s' did not exist", self._name)
        self._collection = None
