"""
Deterministic post-merge repairs.

Once every chunk has been merged, the abstract is corrected by code — not by
asking the LLM again:

  1. Split a combined legal description at the metes-and-bounds marker.
  2. Inject jurisdiction sale logistics from the parsed trustee listing
     (wholesale replace; lookup data and AI data never mix).
  3. Default the current lien holder to the original one when no
     assignment was found.
  4. Check structural integrity.

Problems found here are returned as blocking error strings. They flow into
validation as errors and are never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .jurisdiction_parser import normalize_county_name
from .models import FileAbstract, JurisdictionRecord

logger = logging.getLogger(__name__)

METES_START_MARKER = "BEGINNING AT"
METES_ALT_MARKER = "COMMENCING"
FORBIDDEN_METES_PREFIX = "SITUATED"
MAX_JURISDICTION_TRUSTEES = 25


@dataclass
class LegalDescriptionSplit:
    recording: str | None
    metes: str | None


# ─── Legal Description ───────────────────────────────────────────────


def split_legal_description(full_text: str | None) -> LegalDescriptionSplit:
    """Split a full legal description at ``BEGINNING AT``.

    Everything before the marker is the recording description, everything
    from the marker on is the metes and bounds. A metes portion that would
    start with ``SITUATED`` is rejected and the whole text stays in the
    recording field.
    """
    if not full_text or not full_text.strip():
        return LegalDescriptionSplit(recording=None, metes=None)

    text = full_text.strip()
    index = text.upper().find(METES_START_MARKER)
    if index == -1:
        return LegalDescriptionSplit(recording=text, metes=None)

    recording = text[:index].strip()
    metes = text[index:].strip()

    if metes.upper().startswith(FORBIDDEN_METES_PREFIX):
        logger.warning("Metes section starts with %s — keeping full text in recording", FORBIDDEN_METES_PREFIX)
        return LegalDescriptionSplit(recording=text, metes=None)

    return LegalDescriptionSplit(recording=recording or None, metes=metes or None)


def apply_legal_description_split(abstract: FileAbstract) -> bool:
    """Split in place if the description arrived combined. Returns True if split.

    Fields that arrived already separated are never re-split.
    """
    recording = abstract.legal_description_recording
    metes = abstract.legal_description_metes_bounds

    if recording and METES_START_MARKER in recording.upper():
        source = recording
    elif metes and not recording and METES_START_MARKER in metes.upper():
        source = metes
    else:
        return False

    split = split_legal_description(source)
    if split.metes is None:
        return False
    abstract.legal_description_recording = split.recording
    abstract.legal_description_metes_bounds = split.metes
    logger.info("Legal description split at '%s'", METES_START_MARKER)
    return True


# ─── Jurisdiction Lookup ─────────────────────────────────────────────


def apply_jurisdiction(
    abstract: FileAbstract, jurisdictions: dict[str, JurisdictionRecord]
) -> str | None:
    """Wholesale-replace sale logistics from the lookup.

    Returns:
        None on a hit (or when there is no county to look up); an error
        message naming the attempted and available keys on a miss.
    """
    if not abstract.county:
        return None

    key = normalize_county_name(abstract.county)
    record = jurisdictions.get(key)

    if record is None:
        abstract.jurisdiction_trustees = []
        abstract.sale_hours = None
        abstract.county_seat = None
        abstract.sale_location = None
        abstract.jurisdiction_date = None
        available = ", ".join(sorted(jurisdictions)) or "(none)"
        logger.warning("Jurisdiction lookup miss for '%s' (key '%s')", abstract.county, key)
        return (
            f'Jurisdiction match failed: "{abstract.county}" (normalized: "{key}") '
            f"not found. Available: {available}"
        )

    abstract.jurisdiction_trustees = list(record.trustees)
    abstract.sale_hours = record.sale_hours
    abstract.county_seat = record.county_seat
    abstract.sale_location = record.sale_location
    abstract.jurisdiction_date = record.date
    logger.info("Jurisdiction '%s' matched: %d trustee(s)", key, len(record.trustees))
    return None


# ─── Assignment Default ──────────────────────────────────────────────


def apply_assignment_default(abstract: FileAbstract) -> bool:
    """No assignment of the lien found → the original holder is still current."""
    if not abstract.current_grantee and abstract.original_grantee:
        abstract.current_grantee = abstract.original_grantee
        return True
    return False


# ─── Structural Integrity ────────────────────────────────────────────


def check_structural_integrity(abstract: FileAbstract) -> list[str]:
    """Guards against merged counties and misplaced legal text."""
    errors: list[str] = []

    trustees = abstract.jurisdiction_trustees or []
    if len(trustees) > MAX_JURISDICTION_TRUSTEES:
        errors.append(
            f"STRUCTURAL ERROR: Trustee count ({len(trustees)}) exceeds maximum "
            f"({MAX_JURISDICTION_TRUSTEES}) - likely merged multiple counties"
        )

    if abstract.legal_description_metes_bounds:
        upper = abstract.legal_description_metes_bounds.upper()
        if METES_START_MARKER not in upper and METES_ALT_MARKER not in upper:
            errors.append(
                "STRUCTURAL ERROR: legal_description_metes_bounds does not contain "
                f'"{METES_START_MARKER}" or "{METES_ALT_MARKER}"'
            )
        if upper.lstrip().startswith(FORBIDDEN_METES_PREFIX):
            errors.append(
                "STRUCTURAL ERROR: legal_description_metes_bounds incorrectly starts with "
                f'"{FORBIDDEN_METES_PREFIX}" - should be in recording field'
            )

    return errors


# ─── All Repairs ─────────────────────────────────────────────────────


def apply_post_merge_repairs(
    abstract: FileAbstract,
    jurisdictions: dict[str, JurisdictionRecord] | None,
    *,
    jurisdiction_unreadable: bool = False,
) -> list[str]:
    """Run every deterministic repair in order and collect blocking errors.

    Args:
        jurisdictions: the parsed listing, or None when no listing was
            supplied (AI-extracted sale logistics are then left as they are).
        jurisdiction_unreadable: a listing was supplied but its text could
            not be extracted.
    """
    errors: list[str] = []

    apply_legal_description_split(abstract)

    if jurisdictions is not None:
        miss = apply_jurisdiction(abstract, jurisdictions)
        if miss:
            errors.append(miss)
    elif jurisdiction_unreadable:
        errors.append(
            "Jurisdiction listing PDF detected but text extraction failed. "
            "The PDF may be image-based."
        )

    apply_assignment_default(abstract)
    errors.extend(check_structural_integrity(abstract))
    return errors
