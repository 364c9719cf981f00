"""Intake checks run before any pipeline work starts."""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urlparse

from knowledge_rag.errors import ValidationError
from knowledge_rag.models import SourceKind

_EXTENSIONS = {
    ".pdf": SourceKind.PDF,
    ".md": SourceKind.MARKDOWN,
    ".markdown": SourceKind.MARKDOWN,
}


def detect_file_type(filename: str) -> SourceKind:
    """Map an upload's extension to a :class:`SourceKind`."""
    suffix = PurePosixPath(filename).suffix.lower()
    kind = _EXTENSIONS.get(suffix)
    if kind is None:
        raise ValidationError(
            "Unsupported file type. Only PDF and Markdown files are supported.",
            filename=filename,
        )
    return kind


def validate_url(url: str) -> str:
    """Return *url* stripped, or raise unless it is an http(s) URL with a host."""
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required")

    candidate = url.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise ValidationError(f"Invalid URL: {exc}", filename=candidate) from exc

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(
            "Invalid URL format. Please provide a valid HTTP or HTTPS URL.",
            filename=candidate,
        )
    return candidate


def validate_query(query: str) -> str:
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query is required", stage="retrieve")
    return query.strip()


def validate_limit(value: int, name: str = "k") -> int:
    """Reject result-count limits below one."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(
            f"{name} must be a positive integer, got {value!r}", stage="retrieve"
        )
    return value
