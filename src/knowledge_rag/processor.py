"""Document processor — the single entry point for ingestion and retrieval.

Build one :class:`DocumentProcessor` at process start and pass it to the
request handlers::

    processor = DocumentProcessor.from_settings(get_settings())
    processor.process_document("report.pdf", pdf_bytes, "pdf")
    result = processor.get_relevant_context_with_sources("refund policy")

Ingestion runs ``extract → chunk → embed → store``.  A failure at any
stage raises the matching :class:`~knowledge_rag.errors.PipelineError`
tagged with the filename and stage.  All chunks are embedded before
anything is written, but a store failure halfway through a multi-batch
upsert is not rolled back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from knowledge_rag.errors import ExtractionError, PipelineError, ValidationError
from knowledge_rag.ingestion.chunker import build_chunks
from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.ingestion.extractors import (
    ExtractedText,
    extract_markdown,
    extract_pdf,
    extract_website,
)
from knowledge_rag.ingestion.validation import (
    detect_file_type,
    validate_limit,
    validate_query,
    validate_url,
)
from knowledge_rag.models import (
    BatchItemOutcome,
    Document,
    DocumentInfo,
    EmbeddingRecord,
    IngestionResult,
    SourceKind,
)
from knowledge_rag.prompts import build_chat_messages, format_context_for_prompt
from knowledge_rag.retrieval.base import get_vector_store
from knowledge_rag.retrieval.retriever import ContextAssembler

if TYPE_CHECKING:
    import requests
    from langchain_core.messages import BaseMessage

    from knowledge_rag.config import Settings
    from knowledge_rag.models import Chunk, ContextResult, SearchResult
    from knowledge_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


def _resolve_kind(filename: str, file_type: SourceKind | str | None) -> SourceKind:
    if not file_type:
        return detect_file_type(filename)
    try:
        return SourceKind(file_type)
    except ValueError as exc:
        raise ValidationError(f"Unsupported file type: {file_type!r}", filename=filename) from exc


class DocumentProcessor:
    """Combine extraction, chunking, embedding and storage.

    Parameters
    ----------
    settings:
        Chunking, retrieval and fetch configuration.
    embedder:
        Embeds chunks and queries.
    store:
        Vector store scoped to ``settings.namespace``.
    session:
        Optional ``requests.Session`` reused for website fetches.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        embedder: Embedder,
        store: VectorStoreBase,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings
        self.embedder = embedder
        self.store = store
        self._session = session
        self.assembler = ContextAssembler(
            store,
            embedder,
            threshold=settings.relevance_threshold,
            preview_length=settings.preview_length,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> DocumentProcessor:
        """Build the embedding client and vector store from *settings*."""
        return cls(
            settings,
            embedder=Embedder.from_settings(settings),
            store=get_vector_store(settings),
        )

    # -- ingestion ------------------------------------------------------------

    def process_document(
        self,
        filename: str,
        content: bytes | str,
        file_type: SourceKind | str | None = None,
    ) -> IngestionResult:
        """Ingest one uploaded PDF or Markdown file.

        *file_type* defaults to the kind implied by the file extension.
        """
        if not filename:
            raise ValidationError("Filename is required")
        kind = _resolve_kind(filename, file_type)
        if kind is SourceKind.WEBSITE:
            raise ValidationError(
                "Websites are ingested with process_website()", filename=filename
            )

        logger.info("Processing %s file: %s", kind.value, filename)
        if kind is SourceKind.PDF:
            if isinstance(content, str):
                raise ValidationError("PDF content must be bytes", filename=filename)
            extracted = extract_pdf(content, filename=filename)
        else:
            extracted = extract_markdown(content, filename=filename)

        document = Document(filename=filename, source_kind=kind)
        return self._ingest(document, extracted)

    def process_website(self, url: str) -> IngestionResult:
        """Fetch a static page and ingest its body text under the page title."""
        url = validate_url(url)
        logger.info("Processing website URL: %s", url)
        extracted = extract_website(
            url,
            session=self._session,
            timeout=self.settings.request_timeout,
            max_retries=self.settings.max_retries,
            user_agent=self.settings.user_agent,
        )
        document = Document(
            filename=extracted.title,
            source_kind=SourceKind.WEBSITE,
            source_url=url,
        )
        return self._ingest(document, extracted)

    def process_batch(self, files: list[tuple[str, bytes | str]]) -> list[BatchItemOutcome]:
        """Ingest several uploads; one file's failure never aborts the others."""
        outcomes: list[BatchItemOutcome] = []
        for filename, content in files:
            try:
                result = self.process_document(filename, content)
            except PipelineError as exc:
                logger.error("✗ %s failed at %s: %s", filename, exc.stage, exc.message)
                outcomes.append(
                    BatchItemOutcome(
                        filename=filename,
                        ok=False,
                        error=exc.message,
                        stage=exc.stage,
                        retryable=exc.retryable,
                    )
                )
            except Exception as exc:
                logger.exception("✗ %s failed unexpectedly", filename)
                outcomes.append(BatchItemOutcome(filename=filename, ok=False, error=str(exc)))
            else:
                outcomes.append(BatchItemOutcome(filename=filename, ok=True, result=result))
        return outcomes

    # -- retrieval ------------------------------------------------------------

    def search_with_score(self, query: str, k: int = 5) -> list[SearchResult]:
        """Return up to *k* chunks with scores, highest first."""
        return self.assembler.search_with_score(validate_query(query), k=validate_limit(k, "k"))

    def get_relevant_context(
        self,
        query: str,
        max_chunks: int | None = None,
        threshold: float | None = None,
    ) -> ContextResult:
        """Return the assembled context; check ``has_context`` before using it."""
        return self.get_relevant_context_with_sources(query, max_chunks, threshold)

    def get_relevant_context_with_sources(
        self,
        query: str,
        max_chunks: int | None = None,
        threshold: float | None = None,
    ) -> ContextResult:
        """Return the assembled context together with per-chunk citations."""
        if max_chunks is None:
            max_chunks = self.settings.max_context_chunks
        return self.assembler.get_relevant_context(
            validate_query(query),
            max_chunks=validate_limit(max_chunks, "max_chunks"),
            threshold=threshold,
        )

    def build_messages(
        self,
        query: str,
        max_chunks: int | None = None,
    ) -> tuple[list[BaseMessage], ContextResult]:
        """Retrieve context for *query* and wrap it into chat-model messages.

        The configured ``system_prompt`` leads.  Each chunk in the prompt
        carries a ``[Source: ... | Score: ...]`` header so the model can
        cite it; with no relevant context the human message is the bare
        query.
        """
        query = validate_query(query)
        if max_chunks is None:
            max_chunks = self.settings.max_context_chunks
        relevant = self.assembler.select_relevant(query, validate_limit(max_chunks, "max_chunks"))
        messages = build_chat_messages(
            format_context_for_prompt(relevant),
            query,
            system_prompt=self.settings.system_prompt,
        )
        return messages, self.assembler.assemble(relevant)

    def list_documents(self) -> list[DocumentInfo]:
        """Group stored chunks by filename; the first record seen wins."""
        documents: dict[str, DocumentInfo] = {}
        for hit in self.store.list_all(limit=self.settings.list_limit):
            meta = hit.metadata
            if meta.filename in documents:
                continue
            documents[meta.filename] = DocumentInfo(
                id=hit.id,
                filename=meta.filename,
                total_chunks=meta.total_chunks,
                source=meta.source,
                url=meta.url,
            )
        return list(documents.values())

    def health(self) -> dict[str, Any]:
        return {"vector_store": self.store.health_check(), "namespace": self.store.namespace}

    # -- internals ------------------------------------------------------------

    def _ingest(self, document: Document, extracted: ExtractedText) -> IngestionResult:
        filename = document.filename
        try:
            chunks = self._chunk(document, extracted.text)
            vectors = self.embedder.embed_many([c.content for c in chunks])
            records = [
                EmbeddingRecord(
                    id=chunk.chunk_id,
                    values=vector,
                    content=chunk.content,
                    metadata=chunk.metadata,
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            self.store.upsert(records)
        except PipelineError as exc:
            exc.filename = exc.filename or filename
            raise

        logger.info("Stored %d chunks for %s in %r", len(records), filename, self.store.namespace)
        return IngestionResult(
            filename=filename,
            source_kind=document.source_kind,
            total_chunks=len(chunks),
            chunk_ids=[c.chunk_id for c in chunks],
            char_count=extracted.char_count,
            url=document.source_url,
        )

    def _chunk(self, document: Document, text: str) -> list[Chunk]:
        chunks = build_chunks(
            text,
            document,
            chunk_size=self.settings.chunk_size,
            chunk_overlap=self.settings.chunk_overlap,
            min_chunk_size=self.settings.chunk_min_size,
        )
        if not chunks:
            raise ExtractionError(
                "Document produced no chunks",
                reason="no-content",
                filename=document.filename,
                stage="chunk",
            )
        return chunks
