"""
Deterministic parser for the jurisdiction trustee listing.

The listing is a table — one row per county with sale hours, substitute
trustees, and the sale location — that arrives as a text-layer PDF. Table
structure is lost in text extraction, so rows are recovered from anchors:
every ``<County> <time range>`` occurrence starts a new block.

This module NEVER calls the LLM. A wrong trustee list means a void sale, so
the parser is conservative: a block it cannot read yields no record rather
than a guessed one, and downstream validation reports the gap.
"""

from __future__ import annotations

import logging
import re

from .models import JurisdictionRecord

logger = logging.getLogger(__name__)


# ─── Constants ───────────────────────────────────────────────────────

US_STATE_NAMES: tuple[str, ...] = (
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado",
    "Connecticut", "Delaware", "Florida", "Georgia", "Hawaii", "Idaho",
    "Illinois", "Indiana", "Iowa", "Kansas", "Kentucky", "Louisiana", "Maine",
    "Maryland", "Massachusetts", "Michigan", "Minnesota", "Mississippi",
    "Missouri", "Montana", "Nebraska", "Nevada", "New Hampshire", "New Jersey",
    "New Mexico", "New York", "North Carolina", "North Dakota", "Ohio",
    "Oklahoma", "Oregon", "Pennsylvania", "Rhode Island", "South Carolina",
    "South Dakota", "Tennessee", "Texas", "Utah", "Vermont", "Virginia",
    "Washington", "West Virginia", "Wisconsin", "Wyoming",
)

_STATE_ALTERNATION = "|".join(
    sorted((re.escape(s) for s in US_STATE_NAMES), key=len, reverse=True)
)

_TIME = r"1?\d(?::\d{2})?\s?[AaPp]\.?[Mm]\.?"

# "Collin 10am-4pm", "Fort Bend 10:00 AM - 1:00 PM". County names are one or two words.
_ANCHOR_RE = re.compile(rf"\b((?:[A-Z][a-z]+\s)?[A-Z][a-z]+)\s+({_TIME}\s?(?:-|to)\s?{_TIME})")

_ENDS_WITH_STATE_RE = re.compile(rf"\b(?:{_STATE_ALTERNATION})$")

_UPDATED_RE = re.compile(r"Updated\s+(\d{1,2}-\d{1,2}-\d{4})", re.IGNORECASE)

# Administrative asides run from "Add:" up to the next location sentence.
_ASIDE_RE = re.compile(r"Add:\s.*?(?=\b(?:The|At|On)\s|$)")

_LOCATION_ANCHOR_RE = re.compile(r"\b(?:The|At|On)\s+")

_SEAT_RE = re.compile(rf",\s([A-Z][a-zA-Z ]+?),\s(?:{_STATE_ALTERNATION}|[A-Z]{{2}})\b")

_NAME_RE = re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][A-Za-z.'-]+)+$")

_NOISE_RE = re.compile(r"County|Courthouse|Building|Road|Street|Avenue|Drive|Add:", re.IGNORECASE)

_STATE_SUFFIX_RE = re.compile(
    rf"(?:,\s*|\s+)(?:{_STATE_ALTERNATION})\s*$", re.IGNORECASE
)


# ─── Public API ──────────────────────────────────────────────────────


def normalize_county_name(county: str) -> str:
    """Normalize a county name for lookup.

    "Collin County, Texas" → "collin"
    "COLLIN COUNTY"        → "collin"
    "Fort Bend County, TX" → "fort bend"
    """
    upper = re.sub(r"\s+", " ", county.upper()).strip()
    upper = re.sub(r",\s*[A-Z]{2}\s*$", "", upper)  # ", TX"
    upper = _STATE_SUFFIX_RE.sub("", upper)
    upper = re.sub(r"\bCOUNTY\b", " ", upper)
    upper = upper.replace(",", " ")
    return re.sub(r"\s+", " ", upper).strip().lower()


def parse_jurisdiction_table(text: str) -> dict[str, JurisdictionRecord]:
    """Parse the listing into a map of normalized county name → record.

    Returns an empty map (never raises) when no row anchors are found.
    """
    flat = re.sub(r"\s+", " ", text or "").strip()
    records: dict[str, JurisdictionRecord] = {}

    if "COUNTY" not in flat.upper():
        logger.warning("Jurisdiction listing has no recognizable header")

    # The "Updated MM-DD-YYYY" stamp applies to every row; keep it out of blocks.
    date_match = _UPDATED_RE.search(flat)
    listing_date = date_match.group(1) if date_match else None
    flat = re.sub(r"\s+", " ", _UPDATED_RE.sub(" ", flat)).strip()

    anchors = list(_ANCHOR_RE.finditer(flat))
    if not anchors:
        logger.warning("Jurisdiction listing: no county rows found")
        return records

    rows = [_row_start(flat, anchor) for anchor in anchors]
    for i, anchor in enumerate(anchors):
        county = rows[i][0]
        sale_hours = re.sub(r"\s+", " ", anchor.group(2)).strip()
        block_end = rows[i + 1][1] if i + 1 < len(anchors) else len(flat)
        block = flat[anchor.end():block_end].strip()

        record = parse_county_block(block, sale_hours, listing_date)
        if not record.trustees:
            logger.info("Jurisdiction row '%s' has no readable trustees — skipped", county)
            continue
        records[normalize_county_name(county)] = record

    logger.info("Parsed %d jurisdiction rows", len(records))
    return records


def _row_start(flat: str, anchor: re.Match[str]) -> tuple[str, int]:
    """County name of a row anchor and the offset where the row begins.

    The anchor may have swallowed the last word of the previous row
    ("..., McKinney, Texas Dallas 10am-4pm"). A leading word that completes
    a state name or is an address word is handed back to that row.
    """
    county = anchor.group(1)
    first, _, rest = county.partition(" ")
    if rest and (
        _ENDS_WITH_STATE_RE.search(flat[:anchor.start(1)] + first) or _NOISE_RE.fullmatch(first)
    ):
        return rest, anchor.start(1) + len(first) + 1
    return county, anchor.start(1)


def parse_county_block(
    block: str, sale_hours: str | None, listing_date: str | None
) -> JurisdictionRecord:
    """Extract trustees, seat and sale location from one county's block.

    Order matters: asides are removed first, then the location sentence is
    cut off, and only the text *before* it is searched for trustee names.
    """
    cleaned = re.sub(r"\s+", " ", _ASIDE_RE.sub(" ", block)).strip()

    # ── Sale location: from the first locative preposition to the end ──
    sale_location: str | None = None
    location_start = len(cleaned)
    location_match = _LOCATION_ANCHOR_RE.search(cleaned)
    if location_match:
        location_start = location_match.start()
        sale_location = cleaned[location_start:].strip() or None

    # ── County seat: ", City, State" inside the location sentence ──
    county_seat: str | None = None
    if sale_location:
        seat_match = _SEAT_RE.search(sale_location)
        if seat_match:
            county_seat = seat_match.group(1).strip()
        if county_seat and county_seat not in sale_location:
            county_seat = None

    # ── Trustees: comma-separated names before the location ──
    trustees = extract_trustee_names(cleaned[:location_start])

    return JurisdictionRecord(
        trustees=trustees,
        sale_hours=sale_hours,
        county_seat=county_seat,
        sale_location=sale_location,
        date=listing_date,
    )


def extract_trustee_names(text: str) -> list[str]:
    """Keep comma-separated tokens that look like 'First [Middle] Last'."""
    names: list[str] = []
    for part in (p.strip() for p in text.split(",")):
        if not part or " " not in part:
            continue
        if _NOISE_RE.search(part) or re.search(r"\d", part):
            continue
        if not (4 < len(part) < 50) or not _NAME_RE.match(part):
            continue
        if part not in names:
            names.append(part)
    return names
