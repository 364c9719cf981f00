"""Text chunking with sentence/line-boundary preference and overlap."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_rag.models import Chunk, ChunkMetadata, make_chunk_id

if TYPE_CHECKING:
    from knowledge_rag.models import Document

logger = logging.getLogger(__name__)

# A natural break is only used when it falls past this fraction of the window.
BOUNDARY_RATIO = 0.7


def _validate(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be >= 0 and < chunk_size ({chunk_size})"
        )


def chunk_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    min_chunk_size: int = 1,
) -> list[str]:
    """Split *text* into ordered, overlapping chunks.

    Each window spans up to *chunk_size* characters.  When the window does
    not reach the end of the text, the last ``.`` or newline inside it is
    used as the cut if it lies beyond 70% of the window; the next window
    then starts right after that break.  Otherwise the window is cut hard
    and the next one starts *chunk_overlap* characters before the cut.

    Parameters
    ----------
    text:
        Normalised plain text.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Characters repeated between consecutive hard-cut chunks.
    min_chunk_size:
        Chunks whose trimmed length is below this are dropped.

    Returns
    -------
    list[str]
        Trimmed chunk texts in document order.
    """
    _validate(chunk_size, chunk_overlap)

    chunks: list[str] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        window = text[start:end]

        if end < length:
            break_point = max(window.rfind("."), window.rfind("\n"))
            if break_point > chunk_size * BOUNDARY_RATIO:
                window = window[: break_point + 1]
                next_start = start + break_point + 1
            else:
                next_start = end - chunk_overlap
        else:
            next_start = length

        piece = window.strip()
        if piece and len(piece) >= min_chunk_size:
            chunks.append(piece)
        start = next_start

    return chunks


def build_chunks(
    text: str,
    document: Document,
    *,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    min_chunk_size: int = 1,
) -> list[Chunk]:
    """Chunk *text* and attach per-chunk metadata derived from *document*."""
    pieces = chunk_text(
        text,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        min_chunk_size=min_chunk_size,
    )
    total = len(pieces)
    timestamp = document.ingested_at.isoformat()

    chunks = [
        Chunk(
            content=piece,
            metadata=ChunkMetadata(
                source=document.source_kind,
                filename=document.filename,
                chunk_index=idx,
                total_chunks=total,
                chunk_id=make_chunk_id(document.filename, idx),
                timestamp=timestamp,
                url=document.source_url,
            ),
        )
        for idx, piece in enumerate(pieces)
    ]
    logger.info(
        "Split %s into %d chunks (size=%d, overlap=%d)",
        document.filename,
        total,
        chunk_size,
        chunk_overlap,
    )
    return chunks
