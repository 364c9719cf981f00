"""Error taxonomy for the ingestion and retrieval pipeline.

Every failure raised by the pipeline is a :class:`PipelineError`.  The
subclass tells the caller what went wrong and whether a retry can help:

* :class:`ValidationError` – bad input rejected before any work starts.
* :class:`ExtractionError` – the document itself could not be read.
* :class:`EmbeddingError` – the embedding provider failed (retryable).
* :class:`StoreError` – the vector database failed or refused a write.

"No relevant context" is *not* an error; see
:class:`~knowledge_rag.models.ContextResult`.
"""

from __future__ import annotations

from typing import Any, Literal

ExtractionReason = Literal["unparseable", "no-content", "fetch-failed"]


class PipelineError(Exception):
    """Base class for all pipeline failures.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    filename:
        Document (or URL) being processed when the failure happened.
    stage:
        Pipeline stage: ``validate``, ``extract``, ``chunk``, ``embed``,
        ``store`` or ``retrieve``.
    """

    retryable: bool = False
    default_stage: str | None = None

    def __init__(
        self,
        message: str,
        *,
        filename: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.stage = stage or self.default_stage

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}: {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "filename": self.filename,
            "stage": self.stage,
            "retryable": self.retryable,
        }


class ValidationError(PipelineError):
    """Unsupported file extension, malformed URL, empty query, ..."""

    default_stage = "validate"


class ExtractionError(PipelineError):
    """Raised when text cannot be extracted from an input."""

    default_stage = "extract"

    def __init__(
        self,
        message: str,
        *,
        reason: ExtractionReason,
        filename: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, filename=filename, stage=stage)
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class EmbeddingError(PipelineError):
    """The embedding model is unavailable or returned an unusable vector."""

    retryable = True
    default_stage = "embed"


class StoreError(PipelineError):
    """The vector store is unreachable or rejected an operation."""

    default_stage = "store"
