"""Format-specific text extractors: PDF, Markdown and static web pages.

Every extractor returns an :class:`ExtractedText` holding normalised
plain text, or raises :class:`~knowledge_rag.errors.ExtractionError`.
"""

from __future__ import annotations

import io
import logging
import re
import time
import unicodedata
from dataclasses import dataclass
from urllib.parse import urlparse

import markdown
import requests
from bs4 import BeautifulSoup
from pypdf import PdfReader

from knowledge_rag.errors import ExtractionError

logger = logging.getLogger(__name__)

# Tags that never carry readable page content, page chrome included.
_NON_CONTENT_TAGS = [
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "aside",
    "noscript",
    "iframe",
    "template",
]


@dataclass
class ExtractedText:
    """Plain text pulled out of a source, plus what we learned on the way."""

    text: str
    title: str = ""
    page_count: int | None = None

    @property
    def char_count(self) -> int:
        return len(self.text)


def normalise_text(text: str) -> str:
    """Unicode NFC, strip control chars, collapse whitespace."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ── PDF ───────────────────────────────────────────────────────────────


def extract_pdf(data: bytes, *, filename: str = "") -> ExtractedText:
    """Extract text from every page of a PDF held in memory.

    Encrypted, corrupted and image-only (scanned) PDFs are rejected with
    ``reason="unparseable"``; there is no OCR fallback.
    """
    logger.info("Starting PDF extraction for %s (%d bytes)", filename or "<upload>", len(data))
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            raise ExtractionError(
                "PDF is encrypted", reason="unparseable", filename=filename
            )
        pages = [page.extract_text() or "" for page in reader.pages]
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(
            f"Failed to parse PDF file: {exc}", reason="unparseable", filename=filename
        ) from exc

    text = normalise_text("\n\n".join(pages))
    if not text:
        raise ExtractionError(
            "PDF contains no extractable text (scanned or image-only PDFs are not supported)",
            reason="unparseable",
            filename=filename,
        )

    logger.info("PDF parsing successful: %d pages, %d characters", len(pages), len(text))
    return ExtractedText(text=text, page_count=len(pages))


# ── Markdown ──────────────────────────────────────────────────────────


def markdown_to_text(source: str) -> str:
    """Render Markdown to HTML and keep only the visible text.

    Link text is kept and link targets are dropped.  Images are replaced
    by their alt text before the tags are stripped.
    """
    html = markdown.markdown(source, extensions=["extra"])
    soup = BeautifulSoup(html, "html.parser")
    for img in soup.find_all("img"):
        img.replace_with(img.get("alt", ""))
    return soup.get_text()


def extract_markdown(content: str | bytes, *, filename: str = "") -> ExtractedText:
    """Convert a Markdown document to plain text."""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")

    text = normalise_text(markdown_to_text(content))
    if not text:
        raise ExtractionError(
            "Markdown document contains no text", reason="no-content", filename=filename
        )

    logger.info("Markdown extraction successful: %d characters", len(text))
    return ExtractedText(text=text)


# ── Website ───────────────────────────────────────────────────────────


def _fetch(
    url: str,
    *,
    session: requests.Session,
    headers: dict[str, str],
    timeout: float,
    max_retries: int,
    backoff: float,
) -> requests.Response:
    """GET *url* with exponential-backoff retries on transient errors."""
    last_exc: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            resp = session.get(url, headers=headers, timeout=timeout)
            resp.raise_for_status()
            return resp
        except requests.RequestException as exc:
            last_exc = exc
            if attempt < max_retries:
                wait = backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Retry %d/%d for %s (wait %.1fs): %s", attempt, max_retries, url, wait, exc
                )
                time.sleep(wait)

    raise ExtractionError(
        f"Failed to fetch {url} after {max_retries} attempts: {last_exc}",
        reason="fetch-failed",
        filename=url,
    ) from last_exc


def extract_website(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float = 30.0,
    max_retries: int = 3,
    user_agent: str = "knowledge-rag/0.1",
    backoff: float = 1.0,
) -> ExtractedText:
    """Fetch a static HTML page and extract the text of its ``<body>``.

    The page ``<title>`` becomes :attr:`ExtractedText.title`, falling
    back to the URL hostname.  JavaScript is never executed.
    """
    logger.info("Starting website extraction for URL: %s", url)
    http = session or requests.Session()
    resp = _fetch(
        url,
        session=http,
        headers={"User-Agent": user_agent},
        timeout=timeout,
        max_retries=max_retries,
        backoff=backoff,
    )

    soup = BeautifulSoup(resp.text, "html.parser")
    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
    if not title:
        title = urlparse(url).hostname or url

    # html.parser does not synthesise <body> when the page omits it.
    body = soup.body
    if body is None:
        for tag in soup(["head", "title"]):
            tag.decompose()
        body = soup
    for tag in body(_NON_CONTENT_TAGS):
        tag.decompose()
    text = normalise_text(body.get_text(separator="\n", strip=True))

    if not text:
        raise ExtractionError(
            "No content found on the webpage", reason="no-content", filename=url
        )

    logger.info("Website extraction successful: %d characters, title: %r", len(text), title)
    return ExtractedText(text=text, title=title)
