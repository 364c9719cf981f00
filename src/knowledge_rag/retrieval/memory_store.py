"""In-process vector store used for tests and single-node development."""

from __future__ import annotations

import math
import threading
from typing import TYPE_CHECKING

from knowledge_rag.errors import StoreError
from knowledge_rag.models import SearchResult
from knowledge_rag.retrieval.base import VectorStoreBase

if TYPE_CHECKING:
    from knowledge_rag.models import EmbeddingRecord


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise StoreError(f"Dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    return dot / norm


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store with brute-force cosine search.

    Records keep their first insertion position, so :meth:`list_all`
    and score ties are stable.  Writes are serialised with a lock.
    """

    def __init__(self, namespace: str = "knowledge-base") -> None:
        super().__init__(namespace)
        self._records: dict[str, EmbeddingRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        include_scores: bool = True,
    ) -> list[SearchResult]:
        with self._lock:
            records = list(self._records.values())

        scored = [(cosine_similarity(vector, rec.values), rec) for rec in records]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            SearchResult(
                id=rec.id,
                content=rec.content,
                metadata=rec.metadata,
                score=max(0.0, min(1.0, score)) if include_scores else 0.0,
            )
            for score, rec in scored[:top_k]
        ]

    def list_all(self, *, limit: int = 10_000) -> list[SearchResult]:
        with self._lock:
            records = list(self._records.values())[:limit]
        return [
            SearchResult(id=rec.id, content=rec.content, metadata=rec.metadata)
            for rec in records
        ]

    def health_check(self) -> bool:
        return True

    def delete(self, ids: list[str]) -> None:
        with self._lock:
            for record_id in ids:
                self._records.pop(record_id, None)
