"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import io
import math
import re
import zlib
from collections.abc import Callable

import pytest
from langchain_core.embeddings import Embeddings
from pypdf import PdfWriter

from knowledge_rag.config import Settings
from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.processor import DocumentProcessor
from knowledge_rag.retrieval.memory_store import InMemoryVectorStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake embedding model ───────────────────────────────────────────────


class HashingEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings: shared words → higher cosine."""

    def __init__(self, dims: int = 512) -> None:
        self.dims = dims
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dims
        for word in re.findall(r"\w+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.dims] += 1.0
        norm = math.sqrt(sum(x * x for x in vec)) or 1.0
        return [x / norm for x in vec]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class FailingEmbeddings(Embeddings):
    """Simulates an unavailable embedding provider."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        raise ConnectionError("embedding provider unavailable")

    def embed_query(self, text: str) -> list[float]:
        raise ConnectionError("embedding provider unavailable")


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        vector_store_backend="memory",
        embedding_dimensions=None,
        max_retries=1,
    )


@pytest.fixture()
def embeddings() -> HashingEmbeddings:
    return HashingEmbeddings()


@pytest.fixture()
def failing_embeddings() -> FailingEmbeddings:
    return FailingEmbeddings()


@pytest.fixture()
def embedder(embeddings: HashingEmbeddings) -> Embedder:
    return Embedder(embeddings, dimensions=embeddings.dims, batch_size=4)


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore("knowledge-base")


@pytest.fixture()
def processor(settings: Settings, embedder: Embedder, store: InMemoryVectorStore) -> DocumentProcessor:
    return DocumentProcessor(settings, embedder=embedder, store=store)


# ── PDF builders ───────────────────────────────────────────────────────


def _escape_pdf_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_text_pdf(pages: list[str]) -> bytes:
    """Assemble a minimal PDF with one line of Helvetica text per page."""
    n = len(pages)
    page_ids = [4 + 2 * i for i in range(n)]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for pid, text in zip(page_ids, pages):
        stream = f"BT /F1 12 Tf 72 720 Td ({_escape_pdf_text(text)}) Tj ET".encode("latin-1")
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for num, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % num + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


def build_blank_pdf(pages: int = 1, password: str | None = None) -> bytes:
    """A PDF with no text at all, like a scanned document without OCR."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    if password:
        writer.encrypt(user_password=password, algorithm="RC4-128")
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture()
def text_pdf() -> Callable[[list[str]], bytes]:
    return build_text_pdf


@pytest.fixture()
def blank_pdf() -> Callable[..., bytes]:
    return build_blank_pdf
