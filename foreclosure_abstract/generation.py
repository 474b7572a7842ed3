"""
Document generation boundary.

Generation never trusts the caller: the abstract is re-validated here and
refused while any blocking error remains. Rendering itself is pluggable; the
default renderer writes a plain-text ``PLACEHOLDER: value`` document, and a
real template engine can be passed in its place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .exceptions import GenerationBlockedError
from .models import FileAbstract
from .validators import validate_abstract

logger = logging.getLogger(__name__)

Renderer = Callable[[dict[str, str]], bytes]


def build_template_data(abstract: FileAbstract) -> dict[str, str]:
    """Map abstract fields to template placeholders (missing → empty string)."""
    a = abstract
    trustees = ", ".join(a.jurisdiction_trustees or [])
    return {
        "COMMON-ADDRESS": a.common_address or "",
        "GRANTOR-NAME": a.grantor_name or "",
        "GRANTOR-REP": a.grantor_rep or "",
        "GRANTOR-REP-TITLE": a.grantor_rep_title or "",
        "EIN": a.ein or "",
        "GOVERNMENT-ID": a.government_id or "",
        "DATE-OF-BIRTH": a.date_of_birth or "",
        "ORIGINAL-GRANTEE-NAME": a.original_grantee or "",
        "CURRENT-GRANTEE-NAME": a.current_grantee or "",
        "TRUSTEE": a.trustee or "",
        "LOAN-SERVICER": a.loan_servicer or "",
        "LEGAL DESCRIPTION": a.legal_description_recording or "",
        # Some templates carry only one legal block; fall back to the recording.
        "LEGAL-DESCRIPTION": a.legal_description_metes_bounds or a.legal_description_recording or "",
        "DOT-INSTRUMENT#": a.dot_instrument_number or "",
        "DOT-EFF-DATE": a.dot_effective_date or "",
        "DOT-R-DATE": a.dot_recording_date or "",
        "COUNTY": a.county or "",
        "NOTE-DATE": a.note_date or "",
        "NOTE-AMOUNT": a.note_amount or "",
        "NOTE-MATURITY-DATE": a.note_maturity_date or "",
        "INTEREST-RATE": a.interest_rate or "",
        "COUNTY-SEAT": a.county_seat or "",
        "SUB-TRUSTEES": trustees,
        "JURISDICTION-DATE": a.jurisdiction_date or "",
        "HOURS OF SALES": a.sale_hours or "",
        "LOCATION OF SALES": a.sale_location or "",
    }


def render_plain_text(data: dict[str, str]) -> bytes:
    lines = [f"{key}: {value}" for key, value in data.items()]
    return ("\n".join(lines) + "\n").encode("utf-8")


def generate_document(
    abstract: FileAbstract, renderer: Renderer = render_plain_text
) -> bytes:
    """Render the abstract, refusing while validation reports errors.

    Raises:
        GenerationBlockedError: carrying the validation errors.
    """
    validation = validate_abstract(abstract)
    if not validation.can_generate:
        logger.warning("Generation blocked: %d validation error(s)", len(validation.errors))
        raise GenerationBlockedError(validation.errors)
    return renderer(build_template_data(abstract))


def output_file_name(abstract: FileAbstract, extension: str = "txt") -> str:
    if abstract.common_address:
        return f"File Abstract - {abstract.common_address}.{extension}"
    return f"File Abstract - Generated.{extension}"
