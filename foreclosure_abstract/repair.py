"""
Repair pass — a targeted second extraction for fields that failed validation.

The repair pass never invents values on its own: it asks the document
service again, over only the chunks that produced data the first time, for
only the fields that failed. Answers go through the same merge engine and
precedence rules as the first pass, and through the same deterministic
validators afterwards.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from .config import PipelineSettings
from .extractor_llm import DocumentService
from .merge import MergeEngine
from .models import (
    IDENTITY_FIELDS,
    Chunk,
    ChunkResult,
    FileAbstract,
    RepairSummary,
    ValidationResult,
)
from .orchestrator import ProgressCallback, run_extraction

logger = logging.getLogger(__name__)

# Every abstract field the document service may be asked about again.
REPAIRABLE_FIELDS: frozenset[str] = frozenset(
    name for name in FileAbstract.model_fields if name not in IDENTITY_FIELDS
)

_MISSING_RE = re.compile(r"Missing required field: (\w+)")
_LEADING_FIELD_RE = re.compile(r"^(\w+) ")


# ─── Field Selection ─────────────────────────────────────────────────


def identify_repair_fields(validation: ValidationResult) -> list[str]:
    """Map validation complaints (errors AND warnings) and gaps to field names.

    Messages are matched by pattern; anything that does not name a
    repairable field ("File", "STRUCTURAL", ...) is dropped by the whitelist.
    """
    fields: list[str] = []

    def add(name: str) -> None:
        if name not in fields:
            fields.append(name)

    for issue in [*validation.errors, *validation.warnings]:
        missing = _MISSING_RE.search(issue)
        if missing:
            add(missing.group(1))
            continue
        leading = _LEADING_FIELD_RE.match(issue)
        if leading and leading.group(1) in REPAIRABLE_FIELDS:
            add(leading.group(1))
            continue
        if "legal_description_recording" in issue:
            add("legal_description_recording")
        elif "legal_description_metes_bounds" in issue:
            add("legal_description_metes_bounds")
        elif "County" in issue and "not found" in issue:
            add("county")
        elif "sale_location" in issue:
            add("sale_location")
        elif "sale_hours" in issue:
            add("sale_hours")
        elif "county_seat" in issue:
            add("county_seat")

    for name in validation.missing_fields:
        add(name)

    return [name for name in fields if name in REPAIRABLE_FIELDS]


def identify_relevant_chunks(
    chunks: Sequence[Chunk], chunk_results: Sequence[ChunkResult]
) -> list[Chunk]:
    """Chunks whose first-pass extraction found anything at all."""
    return [
        chunk
        for chunk, result in zip(chunks, chunk_results)
        if result.fields_found > 0
    ]


# ─── Prompt ──────────────────────────────────────────────────────────

_FIELD_GUIDANCE: dict[str, str] = {
    "legal_description_recording": """\
legal_description_recording EXTRACTION RULES:
- This is the LEGAL PROPERTY DESCRIPTION from the Deed of Trust or recorded document
- It MUST contain the word "COUNTY" (e.g., "Collin County", "Dallas County")
- It MUST contain either "SURVEY" or "LOT" (survey name, lot number, or subdivision)
- Look for sections starting with "SITUATED IN" or "BEING" or "TRACT"
- Copy the COMPLETE legal description verbatim - do NOT truncate
- Do NOT use the property address here""",
    "legal_description_metes_bounds": """\
legal_description_metes_bounds EXTRACTION RULES:
- This is the METES AND BOUNDS section (directional survey with bearings/distances)
- It MUST start with "BEGINNING" or "COMMENCING"
- Contains bearings (N85°51'40"W) and distances (295.48 FEET)
- Copy the COMPLETE metes and bounds verbatim""",
    "sale_location": """\
sale_location EXTRACTION RULES:
- The SPECIFIC place where the foreclosure sale occurs
- Must be a PHYSICAL BUILDING or COURTHOUSE, not generic text
- If the document says "varies by county" or similar, return null""",
    "sale_hours": """\
sale_hours EXTRACTION RULES:
- Specific time window for the sale (e.g., "10:00 AM to 4:00 PM")
- Do NOT return generic text like "varies" or "business hours"
- Return null if not explicitly stated""",
    "county_seat": """\
county_seat EXTRACTION RULES:
- City that serves as the county seat (e.g., "McKinney" for Collin County)
- Return null if not found""",
}


def build_repair_prompt(
    fields: Sequence[str], abstract: FileAbstract, validation_errors: Sequence[str]
) -> str:
    """Instruction naming each field with its current value plus guidance."""
    requested = "\n".join(
        f'- {name}: currently "{_current(abstract, name)}" - needs correction'
        for name in fields
    )
    failures = "\n".join(validation_errors) or "(none)"
    guidance = "\n\n".join(_FIELD_GUIDANCE[name] for name in fields if name in _FIELD_GUIDANCE)
    guidance_block = f"\n{guidance}\n" if guidance else ""

    return f"""\
You are a legal document analyst specializing in nonjudicial foreclosures.

A first-pass extraction was already performed on this document. Some fields failed validation.

Your task: re-extract ONLY the specific fields listed below.

FIELDS TO RE-EXTRACT:
{requested}

VALIDATION FAILURES:
{failures}
{guidance_block}
GENERAL RULES:
- Return JSON with only the requested field keys
- Use null if the field truly cannot be found in this document
- Do NOT guess or fabricate values
- For dollar amounts, include the raw number (no $ or commas)
- For dates, use the exact format found in the document
- For names, use the full legal name as written

Return ONLY valid JSON. No markdown, no explanation.
"""


def _current(abstract: FileAbstract, name: str) -> str:
    value = getattr(abstract, name)
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(value)
    return value


# ─── Repair Pass ─────────────────────────────────────────────────────


def needs_repair(validation: ValidationResult) -> bool:
    return bool(validation.errors or validation.missing_fields)


async def run_repair(
    chunks: Sequence[Chunk],
    chunk_results: Sequence[ChunkResult],
    validation: ValidationResult,
    service: DocumentService,
    merge_engine: MergeEngine,
    *,
    settings: PipelineSettings,
    is_cancelled: Callable[[], bool] = lambda: False,
    on_progress: ProgressCallback | None = None,
) -> RepairSummary:
    """Re-extract failing fields from relevant chunks into the merge engine.

    The caller re-runs the deterministic repairs and validation afterwards.
    """
    fields = identify_repair_fields(validation)
    if not fields:
        logger.info("Repair skipped: no repairable fields")
        return RepairSummary()

    relevant = identify_relevant_chunks(chunks, chunk_results)
    logger.info(
        "Repairing %d field(s) over %d chunk(s): %s", len(fields), len(relevant), ", ".join(fields)
    )

    prompt = build_repair_prompt(fields, merge_engine.abstract, validation.errors)
    results = await run_extraction(
        relevant,
        prompt,
        service,
        merge_engine,
        settings=settings,
        is_cancelled=is_cancelled,
        on_progress=on_progress,
        allowed_fields=frozenset(fields),
    )

    fixed = sum(r.fields_merged for r in results)
    logger.info("Repair pass changed %d field value(s)", fixed)
    return RepairSummary(ran=True, fields_attempted=fields, fields_fixed=fixed)
