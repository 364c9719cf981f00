"""Context assembly — embed, search, filter by relevance, render.

This module is the primary retrieval interface.  It only depends on the
:class:`~knowledge_rag.retrieval.base.VectorStoreBase` and
:class:`~knowledge_rag.ingestion.embedder.Embedder` capabilities, so
tests can run it against in-memory fakes.

Usage::

    assembler = ContextAssembler(store, embedder, threshold=0.4)
    result = assembler.get_relevant_context("What is the refund policy?")
    if result.has_context:
        for source in result.sources:
            print(source.short_ref(), source.score)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_rag.models import ContextResult, SourceAttribution
from knowledge_rag.prompts import CONTEXT_SEPARATOR

if TYPE_CHECKING:
    from knowledge_rag.ingestion.embedder import Embedder
    from knowledge_rag.models import SearchResult
    from knowledge_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


def filter_by_threshold(results: list[SearchResult], threshold: float) -> list[SearchResult]:
    """Keep results scoring strictly above *threshold*."""
    return [r for r in results if r.score > threshold]


def render_context(results: list[SearchResult], separator: str = CONTEXT_SEPARATOR) -> str:
    """Join result contents, each prefixed with ``[Score: x.xxx]``."""
    return separator.join(f"[Score: {r.score:.3f}] {r.content}" for r in results)


class ContextAssembler:
    """Turn a question into a bounded context string plus citations.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Embeds the query text.
    threshold:
        Default relevance threshold; results must score strictly above it.
    preview_length:
        Characters of chunk content shown in each source preview.
    separator:
        String placed between chunks in the assembled context.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        threshold: float = 0.4,
        preview_length: int = 150,
        separator: str = CONTEXT_SEPARATOR,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.threshold = threshold
        self.preview_length = preview_length
        self.separator = separator

    # -- public API -----------------------------------------------------------

    def search_with_score(self, query: str, k: int = 5) -> list[SearchResult]:
        """Return the top-*k* chunks for *query*, highest score first."""
        vector = self._embedder.embed(query)
        results = self._store.query(vector, top_k=k, include_scores=True)
        results = sorted(results, key=lambda r: r.score, reverse=True)
        logger.info("Found %d similar chunks for query: %r", len(results), query)
        return results

    def select_relevant(
        self,
        query: str,
        max_chunks: int = 3,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Return at most *max_chunks* results scoring above the threshold."""
        limit = self.threshold if threshold is None else threshold
        results = self.search_with_score(query, k=max_chunks)
        relevant = filter_by_threshold(results, limit)[:max_chunks]
        if not relevant:
            logger.info("No relevant context found for query (threshold=%.2f)", limit)
        return relevant

    def get_relevant_context(
        self,
        query: str,
        max_chunks: int = 3,
        threshold: float | None = None,
    ) -> ContextResult:
        """Assemble context from chunks scoring above the relevance threshold.

        Returns :meth:`ContextResult.empty` when nothing passes the
        threshold.  Embedding and store errors propagate unchanged so the
        caller can tell "no knowledge" apart from "retrieval failed".
        """
        return self.assemble(self.select_relevant(query, max_chunks, threshold))

    def assemble(self, relevant: list[SearchResult]) -> ContextResult:
        """Render already-filtered results into a :class:`ContextResult`."""
        if not relevant:
            return ContextResult.empty()

        sources = [
            SourceAttribution.from_result(r, preview_length=self.preview_length)
            for r in relevant
        ]
        logger.info("Retrieved %d relevant context chunks", len(relevant))
        return ContextResult(
            context=render_context(relevant, self.separator),
            sources=sources,
            has_context=True,
        )
