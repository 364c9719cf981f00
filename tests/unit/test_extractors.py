"""Unit tests for the PDF, Markdown and website extractors.

Website fetches run against a mocked ``requests.Session``; PDFs are
generated in-process, so no network or fixture files are needed.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from knowledge_rag.errors import ExtractionError
from knowledge_rag.ingestion.extractors import (
    extract_markdown,
    extract_pdf,
    extract_website,
    normalise_text,
)


def _session_returning(html: str) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.get.return_value = MagicMock(text=html, raise_for_status=MagicMock())
    return session


# ──────────────────────────────────────────────────────────────────────
# normalise_text
# ──────────────────────────────────────────────────────────────────────


class TestNormaliseText:
    def test_collapses_whitespace_and_control_chars(self) -> None:
        text = normalise_text("Hello   \t  world\x00\x01\n\n\n\nNext")
        assert text == "Hello world\n\nNext"

    def test_normalises_line_endings(self) -> None:
        assert normalise_text("a\r\nb\rc") == "a\nb\nc"

    def test_unicode_nfc(self) -> None:
        assert normalise_text("Cafe\u0301") == "Caf\u00e9"


# ──────────────────────────────────────────────────────────────────────
# PDF
# ──────────────────────────────────────────────────────────────────────


class TestExtractPdf:
    def test_extracts_all_pages(self, text_pdf) -> None:
        data = text_pdf(["Rental agreements in Zurich.", "Deposits are limited."])
        extracted = extract_pdf(data, filename="lease.pdf")
        assert extracted.page_count == 2
        assert "Rental agreements in Zurich." in extracted.text
        assert "Deposits are limited." in extracted.text
        assert extracted.char_count == len(extracted.text)

    def test_corrupted_pdf_is_unparseable(self) -> None:
        with pytest.raises(ExtractionError) as excinfo:
            extract_pdf(b"this is not a pdf at all", filename="broken.pdf")
        assert excinfo.value.reason == "unparseable"
        assert excinfo.value.filename == "broken.pdf"
        assert excinfo.value.stage == "extract"

    def test_image_only_pdf_is_unparseable(self, blank_pdf) -> None:
        with pytest.raises(ExtractionError) as excinfo:
            extract_pdf(blank_pdf(pages=2), filename="scan.pdf")
        assert excinfo.value.reason == "unparseable"

    def test_encrypted_pdf_is_unparseable(self, blank_pdf) -> None:
        with pytest.raises(ExtractionError, match="encrypted") as excinfo:
            extract_pdf(blank_pdf(password="secret"), filename="locked.pdf")
        assert excinfo.value.reason == "unparseable"


# ──────────────────────────────────────────────────────────────────────
# Markdown
# ──────────────────────────────────────────────────────────────────────


class TestExtractMarkdown:
    def test_strips_markup(self) -> None:
        md = "# Title\n\nSome **bold** and *italic* text.\n\n## Section\n\n- item one\n- item two\n"
        text = extract_markdown(md).text
        assert "#" not in text
        assert "*" not in text
        assert "<" not in text
        assert "Title" in text
        assert "Some bold and italic text." in text
        assert "item one" in text

    def test_keeps_link_text_drops_target(self) -> None:
        text = extract_markdown("Read the [house rules](https://example.com/rules) first.").text
        assert text == "Read the house rules first."
        assert "example.com" not in text

    def test_keeps_image_alt_text(self) -> None:
        text = extract_markdown("Floor plan: ![ground floor layout](plan.png)").text
        assert "ground floor layout" in text
        assert "plan.png" not in text

    def test_accepts_bytes(self) -> None:
        assert extract_markdown("Grüße".encode()).text == "Grüße"

    def test_empty_markdown_has_no_content(self) -> None:
        with pytest.raises(ExtractionError) as excinfo:
            extract_markdown("   \n\n", filename="empty.md")
        assert excinfo.value.reason == "no-content"


# ──────────────────────────────────────────────────────────────────────
# Website
# ──────────────────────────────────────────────────────────────────────


class TestExtractWebsite:
    def test_extracts_body_and_title(self) -> None:
        html = (
            "<html><head><title> Tenancy FAQ </title><style>p{}</style></head>"
            "<body><p>Notice periods are three months.</p>"
            "<script>var tracking = 1;</script></body></html>"
        )
        session = _session_returning(html)
        extracted = extract_website("https://example.com/faq", session=session)
        assert extracted.title == "Tenancy FAQ"
        assert extracted.text == "Notice periods are three months."
        session.get.assert_called_once()

    def test_title_falls_back_to_hostname(self) -> None:
        session = _session_returning("<html><body><p>Hello</p></body></html>")
        extracted = extract_website("https://docs.example.org/a/b", session=session)
        assert extracted.title == "docs.example.org"

    def test_page_without_body_tag(self) -> None:
        html = (
            "<!DOCTYPE html><html><head><title>Rules</title></head>"
            "<p>Quiet hours start at 22:00.</p></html>"
        )
        extracted = extract_website("https://example.com", session=_session_returning(html))
        assert extracted.title == "Rules"
        assert extracted.text == "Quiet hours start at 22:00."

    def test_page_chrome_is_dropped(self) -> None:
        html = (
            "<html><body><header>Site banner</header><nav>Home | About | Login</nav>"
            "<p>Actual article text.</p><aside>Related posts</aside>"
            "<iframe>ad</iframe><footer>Copyright 2024 ACME</footer></body></html>"
        )
        extracted = extract_website("https://example.com/post", session=_session_returning(html))
        assert extracted.text == "Actual article text."

    def test_empty_body_has_no_content(self) -> None:
        session = _session_returning("<html><head><title>Blank</title></head><body></body></html>")
        with pytest.raises(ExtractionError) as excinfo:
            extract_website("https://example.com", session=session)
        assert excinfo.value.reason == "no-content"

    def test_script_only_body_has_no_content(self) -> None:
        session = _session_returning("<html><body><script>render()</script></body></html>")
        with pytest.raises(ExtractionError) as excinfo:
            extract_website("https://example.com/app", session=session)
        assert excinfo.value.reason == "no-content"

    def test_network_failure_is_fetch_failed(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(ExtractionError) as excinfo:
            extract_website("https://example.com", session=session, max_retries=2, backoff=0)
        assert excinfo.value.reason == "fetch-failed"
        assert session.get.call_count == 2

    def test_http_error_is_fetch_failed(self) -> None:
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        session = MagicMock(spec=requests.Session)
        session.get.return_value = resp
        with pytest.raises(ExtractionError) as excinfo:
            extract_website("https://example.com/missing", session=session, max_retries=1)
        assert excinfo.value.reason == "fetch-failed"

    def test_retry_then_success(self) -> None:
        ok = MagicMock(text="<html><body><p>Recovered</p></body></html>")
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = [requests.Timeout("slow"), ok]
        extracted = extract_website("https://example.com", session=session, backoff=0)
        assert extracted.text == "Recovered"
        assert session.get.call_count == 2
