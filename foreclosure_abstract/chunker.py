"""
Page-bounded PDF chunking.

The document service accepts a limited number of pages per request, so each
PDF is cut into contiguous, non-overlapping page ranges. Chunking is pure:
the same bytes and bound always produce the same boundaries.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from .exceptions import PdfReadError
from .models import Chunk, DocumentRole, SourceDocument

logger = logging.getLogger(__name__)


def _open(data: bytes, source_file: str) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(data))
    except (PyPdfError, ValueError, OSError) as e:
        raise PdfReadError(
            f"Could not open PDF '{source_file}': {e}", {"file": source_file}
        ) from e


def _write_pages(reader: PdfReader, start: int, end: int) -> bytes:
    """Serialize pages [start, end) of ``reader`` as a standalone PDF."""
    writer = PdfWriter()
    for i in range(start, end):
        writer.add_page(reader.pages[i])
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def page_ranges(total_pages: int, max_pages_per_chunk: int) -> list[tuple[int, int]]:
    """Zero-based [start, end) ranges covering ``total_pages`` in order."""
    if max_pages_per_chunk < 1:
        raise ValueError("max_pages_per_chunk must be at least 1")
    return [
        (start, min(start + max_pages_per_chunk, total_pages))
        for start in range(0, total_pages, max_pages_per_chunk)
    ]


def split_pdf(
    data: bytes,
    source_file: str,
    max_pages_per_chunk: int,
    *,
    first_ordinal: int = 0,
    authoritative: bool = False,
) -> list[Chunk]:
    """Split one PDF into chunks of at most ``max_pages_per_chunk`` pages.

    A document that already fits is returned as a single chunk carrying the
    original bytes untouched.

    Raises:
        ValueError: if the bound is below 1.
        PdfReadError: if the bytes are not a readable PDF.
    """
    if max_pages_per_chunk < 1:
        raise ValueError("max_pages_per_chunk must be at least 1")

    reader = _open(data, source_file)
    total = len(reader.pages)

    if total <= max_pages_per_chunk:
        return [
            Chunk(
                source_file=source_file,
                index=0,
                start_page=1,
                end_page=total,
                data=data,
                ordinal=first_ordinal,
                authoritative=authoritative,
            )
        ]

    chunks: list[Chunk] = []
    for index, (start, end) in enumerate(page_ranges(total, max_pages_per_chunk)):
        chunks.append(
            Chunk(
                source_file=source_file,
                index=index,
                start_page=start + 1,
                end_page=end,
                data=_write_pages(reader, start, end),
                ordinal=first_ordinal + index,
                authoritative=authoritative,
            )
        )

    logger.info("Split %s (%d pages) into %d chunks", source_file, total, len(chunks))
    return chunks


def split_documents(
    documents: Iterable[SourceDocument], max_pages_per_chunk: int
) -> list[Chunk]:
    """Chunk every document except the jurisdiction listing.

    Ordinals run across the whole bundle so every chunk of a job has a
    unique, stable position.
    """
    chunks: list[Chunk] = []
    for doc in documents:
        if doc.role == DocumentRole.JURISDICTION_LISTING:
            continue
        chunks.extend(
            split_pdf(
                doc.data,
                doc.name,
                max_pages_per_chunk,
                first_ordinal=len(chunks),
                authoritative=doc.authoritative,
            )
        )
    return chunks


def first_page_pdf(data: bytes, source_file: str = "document") -> bytes:
    """The first page as a standalone PDF — the identity-step preview."""
    reader = _open(data, source_file)
    if len(reader.pages) == 0:
        raise PdfReadError(f"PDF '{source_file}' has no pages", {"file": source_file})
    return _write_pages(reader, 0, 1)
