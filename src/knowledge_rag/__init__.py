"""knowledge-rag — document ingestion and retrieval for a RAG knowledge base."""

__version__ = "0.1.0"
