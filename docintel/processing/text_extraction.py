"""
Page Text Extraction  —  PyMuPDF Native Text Layer
═══════════════════════════════════════════════════

ExtractPageText(bytes) → PageTextResult (page number → text)

Policy documents arrive as text-based PDFs. PyMuPDF reads the native text
layer in-process (no API calls). Image-only PDFs have no usable text
layer; when the average extracted characters per page falls below
MIN_CHARS_PER_PAGE_THRESHOLD the document is treated as scanned and the
pipeline fails it with InputQualityError (OCR is not part of this system).

Plain-text payloads (no %PDF header) are accepted too; form feeds ("\f")
separate pages. This is what test fixtures and text exports use.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from docintel.core.errors import InputQualityError

logger = logging.getLogger(__name__)

# If average extracted chars per page is below this threshold,
# the document is classified as scanned / image-based.
MIN_CHARS_PER_PAGE_THRESHOLD = 50

PDF_MAGIC = b"%PDF"


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class PageText:
    """
    page_number : 1-based page index
    text        : raw extracted text (may be empty for image-only pages)
    """
    page_number: int
    text:        str


@dataclass
class PageTextResult:
    pages:         list[PageText]
    method:        str
    elapsed_ms:    float = 0.0

    @property
    def total_chars(self) -> int:
        return sum(len(p.text) for p in self.pages)

    @property
    def avg_chars_per_page(self) -> float:
        if not self.pages:
            return 0.0
        return self.total_chars / len(self.pages)

    def is_likely_scanned(self) -> bool:
        """Return True if the document appears to be image-based."""
        return self.avg_chars_per_page < MIN_CHARS_PER_PAGE_THRESHOLD

    def as_page_map(self) -> dict[int, str]:
        return {p.page_number: p.text for p in self.pages}


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class PageTextExtractor(ABC):
    """ExtractPageText(byte stream) → PageText; raises InputQualityError on scanned input."""

    @abstractmethod
    async def extract_page_text(self, data: bytes) -> PageTextResult:
        """Return per-page text. Raises InputQualityError for unreadable/scanned documents."""


# ---------------------------------------------------------------------------
# PyMuPDF implementation
# ---------------------------------------------------------------------------

class PyMuPDFPageTextExtractor(PageTextExtractor):
    """
    Uses PyMuPDF to read the native PDF text layer.

    Limitations:
      - Cannot OCR image-only pages (returns empty string for those)
      - Password-protected PDFs raise InputQualityError

    Thread-safety: fitz.open() returns an independent document object
    per call — safe for concurrent use.
    """

    async def extract_page_text(self, data: bytes) -> PageTextResult:
        if not data:
            raise InputQualityError("Empty document payload", user_message="The uploaded document is empty.")

        t0 = time.monotonic()
        if data[:4] == PDF_MAGIC:
            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(None, self._extract_pdf_sync, data)
            except InputQualityError:
                raise
            except Exception as exc:
                logger.warning("PyMuPDF extraction failed: %s", exc)
                raise InputQualityError(
                    f"PDF could not be opened: {type(exc).__name__}: {exc}",
                    user_message="The document could not be read. It may be corrupted or password-protected.",
                ) from exc
        else:
            result = self._extract_plain_text(data)

        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "PageTextExtractor | method=%s pages=%d total_chars=%d avg_chars_per_page=%.0f elapsed_ms=%.0f",
            result.method, len(result.pages), result.total_chars,
            result.avg_chars_per_page, result.elapsed_ms,
        )

        if result.is_likely_scanned():
            raise InputQualityError(
                f"Average {result.avg_chars_per_page:.0f} chars/page is below "
                f"{MIN_CHARS_PER_PAGE_THRESHOLD}; document looks scanned"
            )
        return result

    @staticmethod
    def _extract_pdf_sync(data: bytes) -> PageTextResult:
        """Blocking extraction — runs in thread executor."""
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        pages: list[PageText] = []
        with fitz.open(stream=data, filetype="pdf") as doc:
            if doc.needs_pass:
                raise InputQualityError(
                    "PDF is password-protected",
                    user_message="The document is password-protected and cannot be processed.",
                )
            for page_num, page in enumerate(doc, start=1):
                raw = page.get_text("text") or ""
                pages.append(PageText(page_number=page_num, text=raw.strip()))

        return PageTextResult(pages=pages, method="pymupdf")

    @staticmethod
    def _extract_plain_text(data: bytes) -> PageTextResult:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            text = data.decode("latin-1", errors="replace")

        pages = [
            PageText(page_number=i, text=page.strip())
            for i, page in enumerate(text.split("\f"), start=1)
        ]
        return PageTextResult(pages=pages, method="plain_text")
