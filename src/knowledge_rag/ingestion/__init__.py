"""
Ingestion — text extraction, chunking, and embedding.

This package turns raw uploads (PDF bytes, Markdown text) and static web
pages into ordered, embedded chunks ready to be upserted into the vector
store.  The orchestration lives in :mod:`knowledge_rag.processor`.
"""
