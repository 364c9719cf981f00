"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import chromadb
from pydantic import ValidationError as PydanticValidationError

from knowledge_rag.errors import StoreError
from knowledge_rag.models import ChunkMetadata, SearchResult
from knowledge_rag.retrieval.base import VectorStoreBase

if TYPE_CHECKING:
    from knowledge_rag.models import EmbeddingRecord

logger = logging.getLogger(__name__)


def _distance_to_score(distance: float) -> float:
    """Convert a Chroma cosine distance (0..2) into a 0-1 similarity score."""
    return max(0.0, min(1.0, 1.0 - distance))


def _to_result(
    doc_id: str, content: str | None, meta: dict[str, Any] | None, score: float = 0.0
) -> SearchResult:
    try:
        metadata = ChunkMetadata.from_store(meta or {})
    except PydanticValidationError as exc:
        raise StoreError(f"Record {doc_id!r} has malformed metadata: {exc}") from exc
    return SearchResult(id=doc_id, content=content or "", metadata=metadata, score=score)


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    The namespace maps onto one Chroma collection created with cosine
    distance, so query scores follow the cosine convention.

    Parameters
    ----------
    namespace:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    upsert_batch_size:
        Max records per upsert call.
    client:
        Pre-built Chroma client (tests, embedded ``PersistentClient``).
    """

    def __init__(
        self,
        namespace: str = "knowledge-base",
        *,
        host: str = "localhost",
        port: int = 8000,
        upsert_batch_size: int = 500,
        client: Any = None,
    ) -> None:
        super().__init__(namespace)
        self._host = host
        self._port = port
        self.upsert_batch_size = upsert_batch_size
        try:
            self._client = client or chromadb.HttpClient(host=host, port=port)
            self._collection = self._client.get_or_create_collection(
                name=namespace,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as exc:
            raise StoreError(f"Cannot open Chroma collection {namespace!r}: {exc}") from exc

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        if not records:
            return

        t0 = time.monotonic()
        batches = 0
        for start in range(0, len(records), self.upsert_batch_size):
            batch = records[start : start + self.upsert_batch_size]
            try:
                self._collection.upsert(
                    ids=[r.id for r in batch],
                    embeddings=[r.values for r in batch],
                    documents=[r.content for r in batch],
                    metadatas=[r.metadata.to_store() for r in batch],
                )
            except Exception as exc:
                raise StoreError(
                    f"Chroma upsert failed after {start} of {len(records)} records: {exc}"
                ) from exc
            batches += 1
            logger.info("  upserted batch %d (%d-%d)", batches, start, start + len(batch))

        logger.info(
            "Indexed %d vectors into %r in %.1fs (%d batches)",
            len(records),
            self.namespace,
            time.monotonic() - t0,
            batches,
        )

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        include_scores: bool = True,
    ) -> list[SearchResult]:
        include = ["documents", "metadatas"]
        if include_scores:
            include.append("distances")
        try:
            results = self._collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                include=include,
            )
        except Exception as exc:
            raise StoreError(f"Chroma query failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0] if include_scores else []

        hits: list[SearchResult] = []
        for i, (doc_id, content, meta) in enumerate(zip(ids, docs, metas)):
            score = _distance_to_score(distances[i]) if include_scores else 0.0
            hits.append(_to_result(doc_id, content, meta, score))
        return hits

    def list_all(self, *, limit: int = 10_000) -> list[SearchResult]:
        """Page through the collection with Chroma's native ``get``."""
        page_size = min(limit, 1000)
        hits: list[SearchResult] = []
        offset = 0
        while len(hits) < limit:
            try:
                page = self._collection.get(
                    limit=min(page_size, limit - len(hits)),
                    offset=offset,
                    include=["documents", "metadatas"],
                )
            except Exception as exc:
                raise StoreError(f"Chroma listing failed: {exc}") from exc

            ids = page.get("ids") or []
            if not ids:
                break
            docs = page.get("documents") or [""] * len(ids)
            metas = page.get("metadatas") or [{}] * len(ids)
            for doc_id, content, meta in zip(ids, docs, metas):
                hits.append(_to_result(doc_id, content, meta))
            offset += len(ids)
        return hits

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete(self, ids: list[str]) -> None:
        try:
            self._collection.delete(ids=ids)
        except Exception as exc:
            raise StoreError(f"Chroma delete failed: {exc}") from exc
