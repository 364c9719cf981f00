"""Abstract base class for vector-store backends.

Adding a new backend (Pinecone, Qdrant, ...) only requires subclassing
:class:`VectorStoreBase` and implementing the abstract methods.  The rest
of the pipeline is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from knowledge_rag.config import Settings
    from knowledge_rag.models import EmbeddingRecord, SearchResult


class VectorStoreBase(ABC):
    """Backend-agnostic, namespace-scoped vector-store interface.

    Parameters
    ----------
    namespace:
        Logical partition every operation is confined to.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, records: list[EmbeddingRecord]) -> None:
        """Insert or overwrite *records* keyed by ``record.id``.

        Re-upserting an existing id replaces its vector, content and
        metadata.  Raises :class:`~knowledge_rag.errors.StoreError` on
        failure.
        """
        ...

    @abstractmethod
    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        include_scores: bool = True,
    ) -> list[SearchResult]:
        """Return at most *top_k* records ordered by descending similarity.

        Scores follow the cosine convention (higher = more similar) and are
        left at ``0.0`` when *include_scores* is false.  Tie order is
        whatever the backend returns.
        """
        ...

    @abstractmethod
    def list_all(self, *, limit: int = 10_000) -> list[SearchResult]:
        """Return up to *limit* stored records of the namespace (score ``0.0``)."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete(self, ids: list[str]) -> None:
        """Delete records by their IDs.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")


def get_vector_store(settings: Settings) -> VectorStoreBase:
    """Build the backend selected by ``settings.vector_store_backend``."""
    if settings.vector_store_backend == "memory":
        from knowledge_rag.retrieval.memory_store import InMemoryVectorStore

        return InMemoryVectorStore(settings.namespace)

    from knowledge_rag.retrieval.chroma_store import ChromaVectorStore

    return ChromaVectorStore(
        settings.namespace,
        host=settings.chroma_host,
        port=settings.chroma_port,
        upsert_batch_size=settings.upsert_batch_size,
    )
