"""FastAPI application exposing ingestion and retrieval as a REST API.

Authentication, user management and the chat completion call are handled
elsewhere; these routes only validate intake and delegate to the
:class:`~knowledge_rag.processor.DocumentProcessor`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from knowledge_rag.config import configure_logging, get_settings
from knowledge_rag.errors import (
    EmbeddingError,
    ExtractionError,
    PipelineError,
    StoreError,
    ValidationError,
)
from knowledge_rag.ingestion.validation import detect_file_type
from knowledge_rag.models import BatchItemOutcome, DocumentInfo, SourceAttribution
from knowledge_rag.processor import DocumentProcessor

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[PipelineError], int] = {
    ValidationError: 400,
    ExtractionError: 422,
    EmbeddingError: 503,
    StoreError: 502,
}


# ── Request / Response schemas ────────────────────────────────────────
class SearchRequest(BaseModel):
    """Similarity search over the knowledge base."""

    query: str
    max_results: int = Field(default=5, gt=0, le=100, alias="maxResults")

    model_config = {"populate_by_name": True}


class SearchHit(BaseModel):
    content: str
    metadata: dict[str, Any]
    score: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHit]
    total_results: int


class ContextRequest(BaseModel):
    query: str
    max_chunks: int = Field(default=3, gt=0, le=50, alias="maxChunks")

    model_config = {"populate_by_name": True}


class ContextResponse(BaseModel):
    query: str
    context: str
    has_context: bool


class SourcesResponse(BaseModel):
    success: bool = True
    sources: list[SourceAttribution]


class UrlRequest(BaseModel):
    url: str


class UrlResponse(BaseModel):
    success: bool = True
    filename: str
    chunks: int
    url: str
    message: str


class UploadResponse(BaseModel):
    success: bool
    results: list[BatchItemOutcome]


class DocumentsResponse(BaseModel):
    success: bool = True
    documents: list[DocumentInfo]
    count: int


# ── Wiring ────────────────────────────────────────────────────────────
_build_lock = threading.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and build the shared processor once at startup."""
    settings = get_settings()
    configure_logging(settings.log_level)
    if app.state.processor is None:
        logger.info("Building document processor (namespace=%r)", settings.namespace)
        app.state.processor = await run_in_threadpool(DocumentProcessor.from_settings, settings)
    yield
    logger.info("Application shutdown")


def get_processor(request: Request) -> DocumentProcessor:
    """Return the app's processor; built here only when startup did not run."""
    state = request.app.state
    if state.processor is None:
        with _build_lock:
            if state.processor is None:
                state.processor = DocumentProcessor.from_settings(get_settings())
    return state.processor


async def _pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        500,
    )
    return JSONResponse(status_code=status, content=exc.to_dict())


def create_app(processor: DocumentProcessor | None = None) -> FastAPI:
    """Build the API.  Pass *processor* to inject a pre-built pipeline."""
    app = FastAPI(
        title="Knowledge RAG API",
        version="0.1.0",
        description="Document ingestion and retrieval for a RAG knowledge base.",
        lifespan=lifespan,
    )
    app.state.processor = processor
    app.add_exception_handler(PipelineError, _pipeline_error_handler)

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok"}

    @app.get("/ready")
    def ready(processor: DocumentProcessor = Depends(get_processor)) -> JSONResponse:
        """Readiness check: reports whether the vector store is reachable."""
        status = processor.health()
        return JSONResponse(status_code=200 if status["vector_store"] else 503, content=status)

    @app.post("/upload", response_model=UploadResponse)
    async def upload(
        files: list[UploadFile] = File(...),
        processor: DocumentProcessor = Depends(get_processor),
    ) -> UploadResponse:
        """Ingest one or more PDF / Markdown files, reporting each separately."""
        outcomes: list[BatchItemOutcome | None] = []
        batch: list[tuple[str, bytes]] = []
        for upload_file in files:
            filename = upload_file.filename or ""
            try:
                detect_file_type(filename)
            except ValidationError as exc:
                outcomes.append(
                    BatchItemOutcome(
                        filename=filename, ok=False, error=exc.message, stage=exc.stage
                    )
                )
                continue
            outcomes.append(None)
            batch.append((filename, await upload_file.read()))

        # Processed outcomes fill the accepted slots in upload order.
        processed = iter(await run_in_threadpool(processor.process_batch, batch))
        outcomes = [o if o is not None else next(processed) for o in outcomes]
        return UploadResponse(success=all(o.ok for o in outcomes), results=outcomes)

    @app.post("/upload-url", response_model=UrlResponse)
    def upload_url(
        request: UrlRequest,
        processor: DocumentProcessor = Depends(get_processor),
    ) -> UrlResponse:
        """Ingest a static web page."""
        result = processor.process_website(request.url)
        return UrlResponse(
            filename=result.filename,
            chunks=result.total_chunks,
            url=result.url or request.url,
            message=f"Successfully processed {result.total_chunks} chunks from {request.url}",
        )

    def _search(query: str, max_results: int, processor: DocumentProcessor) -> SearchResponse:
        hits = [SearchHit(**r.to_dict()) for r in processor.search_with_score(query, max_results)]
        return SearchResponse(query=query, results=hits, total_results=len(hits))

    @app.post("/search", response_model=SearchResponse)
    def search(
        request: SearchRequest,
        processor: DocumentProcessor = Depends(get_processor),
    ) -> SearchResponse:
        return _search(request.query, request.max_results, processor)

    @app.get("/search", response_model=SearchResponse)
    def search_get(
        q: str = Query(..., min_length=1),
        max: int = Query(5, gt=0, le=100),  # noqa: A002
        processor: DocumentProcessor = Depends(get_processor),
    ) -> SearchResponse:
        return _search(q, max, processor)

    @app.post("/context", response_model=ContextResponse)
    def context(
        request: ContextRequest,
        processor: DocumentProcessor = Depends(get_processor),
    ) -> ContextResponse:
        """Assembled context for the chat layer; ``has_context`` is false when nothing matched."""
        result = processor.get_relevant_context(request.query, request.max_chunks)
        return ContextResponse(
            query=request.query, context=result.context, has_context=result.has_context
        )

    @app.post("/sources", response_model=SourcesResponse)
    def sources(
        request: ContextRequest,
        processor: DocumentProcessor = Depends(get_processor),
    ) -> SourcesResponse:
        result = processor.get_relevant_context_with_sources(request.query, request.max_chunks)
        return SourcesResponse(sources=result.sources)

    @app.get("/documents", response_model=DocumentsResponse)
    def documents(processor: DocumentProcessor = Depends(get_processor)) -> DocumentsResponse:
        docs = processor.list_documents()
        return DocumentsResponse(documents=docs, count=len(docs))

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8080)


app = create_app()
