"""
Retrieval — vector storage, similarity search, and context assembly.

This package wraps the vector store behind a clean interface so that the
rest of the pipeline never needs to know which DB is backing retrieval.

Public surface
--------------
- :class:`ContextAssembler` — embed → search → threshold → context + sources.
- :class:`VectorStoreBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`InMemoryVectorStore` — dict-backed backend for tests and dev.
- :class:`ChromaVectorStore` — default Chroma backend.
- :func:`get_vector_store` — backend factory driven by settings.
"""

from knowledge_rag.retrieval.base import VectorStoreBase, get_vector_store
from knowledge_rag.retrieval.memory_store import InMemoryVectorStore
from knowledge_rag.retrieval.retriever import ContextAssembler

__all__ = [
    "ChromaVectorStore",
    "ContextAssembler",
    "InMemoryVectorStore",
    "VectorStoreBase",
    "get_vector_store",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from knowledge_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
