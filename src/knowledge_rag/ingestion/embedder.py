"""Embedding generation behind a provider-agnostic wrapper."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from knowledge_rag.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from knowledge_rag.config import Settings

logger = logging.getLogger(__name__)


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``openai`` talks to the OpenAI API (or any OpenAI-compatible server
    when ``embedding_base_url`` is set); ``huggingface`` runs a local
    sentence-transformer.
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(
            model_name=settings.embedding_model,
            encode_kwargs={"normalize_embeddings": True},
        )

    from langchain_openai import OpenAIEmbeddings

    kwargs: dict = {"model": settings.embedding_model}
    if settings.openai_api_key:
        kwargs["api_key"] = settings.openai_api_key
    if settings.embedding_base_url:
        logger.info("Using embedding endpoint: %s", settings.embedding_base_url)
        kwargs["base_url"] = settings.embedding_base_url
    return OpenAIEmbeddings(**kwargs)


class Embedder:
    """Map text to fixed-size vectors; never returns a placeholder vector.

    Parameters
    ----------
    model:
        Any LangChain :class:`~langchain_core.embeddings.Embeddings`.
    dimensions:
        Expected vector length.  ``None`` skips the check.
    batch_size:
        Texts per ``embed_documents`` call.
    max_workers:
        Batches embedded concurrently (1 = sequential).
    """

    def __init__(
        self,
        model: Embeddings,
        *,
        dimensions: int | None = None,
        batch_size: int = 64,
        max_workers: int = 1,
    ) -> None:
        self._model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings: Settings) -> Embedder:
        return cls(
            get_embedding_function(settings),
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
            max_workers=settings.embedding_max_workers,
        )

    # -- public API -----------------------------------------------------------

    def embed(self, text: str) -> list[float]:
        """Embed a single query string."""
        try:
            vector = self._model.embed_query(text)
        except Exception as exc:
            raise EmbeddingError(f"Embedding model call failed: {exc}") from exc
        return self._check(vector)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, preserving input order regardless of completion order."""
        if not texts:
            return []

        batches = [
            texts[start : start + self.batch_size]
            for start in range(0, len(texts), self.batch_size)
        ]
        t0 = time.monotonic()
        if self.max_workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(self._embed_batch, batches))
        else:
            results = [self._embed_batch(batch) for batch in batches]

        vectors = [vec for batch in results for vec in batch]
        logger.info(
            "Embedded %d texts in %d batches (%.1fs)",
            len(vectors),
            len(batches),
            time.monotonic() - t0,
        )
        return vectors

    # -- internals ------------------------------------------------------------

    def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        try:
            vectors = self._model.embed_documents(batch)
        except Exception as exc:
            raise EmbeddingError(f"Embedding model call failed: {exc}") from exc
        if len(vectors) != len(batch):
            raise EmbeddingError(
                f"Embedding model returned {len(vectors)} vectors for {len(batch)} texts"
            )
        return [self._check(v) for v in vectors]

    def _check(self, vector: list[float]) -> list[float]:
        if not vector:
            raise EmbeddingError("Embedding model returned an empty vector")
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Expected {self.dimensions}-dimensional embedding, got {len(vector)}"
            )
        return [float(x) for x in vector]
