"""Test doubles shared by the suite: PDF builders, a scripted document service, a clean abstract."""

from __future__ import annotations

import asyncio
import io
import json
from collections.abc import Callable
from typing import Any

from pypdf import PdfReader, PdfWriter

from foreclosure_abstract.models import FileAbstract


def make_pdf(pages: int = 1) -> bytes:
    """A blank letter-size PDF with ``pages`` pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def page_count(data: bytes) -> int:
    return len(PdfReader(io.BytesIO(data)).pages)


Reply = Any  # dict → JSON reply, str → raw reply, Exception → raised


class FakeDocumentService:
    """Answers by chunk label; records every call.

    ``replies`` maps a label (``"<file> pages <range>"``) to a reply. A
    callable reply receives the instruction, so the repair pass can be told
    apart from the first pass. ``delays`` lets tests force completion order.
    """

    def __init__(
        self,
        replies: dict[str, Reply | Callable[[str], Reply]] | None = None,
        default: Reply = None,
        delays: dict[str, float] | None = None,
    ):
        self.replies = replies or {}
        self.default = default if default is not None else {}
        self.delays = delays or {}
        self.calls: list[tuple[str, str]] = []

    async def extract(self, document: bytes, instruction: str, *, label: str = "") -> str:
        self.calls.append((label, instruction))
        await asyncio.sleep(self.delays.get(label, 0))
        reply = self.replies.get(label, self.default)
        if callable(reply):
            reply = reply(instruction)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return reply
        return json.dumps(reply)

    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]


def make_abstract(**overrides: Any) -> FileAbstract:
    """A complete, clean abstract (every validation check passes)."""
    kwargs: dict[str, Any] = {
        "grantor_name": "Lone Star Holdings LLC",
        "grantor_rep": "John Q. Public",
        "grantor_rep_title": "Managing Member",
        "common_address": "1234 Elm Street, McKinney, Texas 75069",
        "county": "Collin County, Texas",
        "ein": "12-3456789",
        "government_id": "123456789",
        "date_of_birth": "01/02/1970",
        "note_date": "March 1, 2021",
        "note_amount": "1234567",
        "note_maturity_date": "March 1, 2024",
        "interest_rate": "9.5%",
        "loan_servicer": "Acme Loan Servicing LLC",
        "trustee": "Pat Trustee",
        "original_grantee": "First Lender Bank, N.A.",
        "current_grantee": "First Lender Bank, N.A.",
        "dot_effective_date": "March 1, 2021",
        "dot_recording_date": "March 5, 2021",
        "dot_instrument_number": "20210305000123",
        "legal_description_recording": (
            "SITUATED IN COLLIN COUNTY, TEXAS, BEING LOT 7, BLOCK A OF ELM ESTATES"
        ),
        "legal_description_metes_bounds": (
            "BEGINNING AT AN IRON ROD FOR CORNER; THENCE N 89 DEG E 100 FEET "
            "TO THE POINT OF BEGINNING"
        ),
        "jurisdiction_trustees": ["Jane Smith", "Robert Lee Jones"],
        "county_seat": "McKinney",
        "sale_hours": "10am-4pm",
        "sale_location": (
            "The north steps of the Collin County Courthouse, 2100 Bloomdale Road, McKinney, Texas"
        ),
        "jurisdiction_date": "03-15-2024",
    }
    kwargs.update(overrides)
    return FileAbstract(**kwargs)
