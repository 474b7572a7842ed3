"""Page-text extraction for text-layer PDFs (the jurisdiction listing)."""

from __future__ import annotations

import io
import logging

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .exceptions import PdfReadError

logger = logging.getLogger(__name__)


def extract_pdf_text(data: bytes) -> str:
    """Return every page's plain text, pages separated by a newline.

    Raises:
        PdfReadError: if the PDF cannot be opened or its text layer read.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, OSError) as e:
        raise PdfReadError(f"PDF text extraction failed: {e}") from e

    text = "\n".join(pages)
    if not text.strip():
        logger.warning("PDF has no text layer (%d pages) — may be image-based", len(pages))
    return text
