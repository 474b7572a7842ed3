"""
Deterministic validation engine — the "paranoid" layer.

These validators run PURE CODE checks on the merged File Abstract.
They NEVER call an LLM.  They NEVER guess.  They catch what the AI missed.

Each validator function:
  - Takes a FileAbstract (plus chunk diagnostics where it needs them)
  - Returns a list of ValidationFinding objects
  - Records a passed check as an INFO finding
  - Is independently testable

validate_abstract() runs every check, appends pipeline errors and derives the
ValidationResult. It is recomputed from scratch on every call; nothing is
carried over between passes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from .jurisdiction_parser import normalize_county_name
from .models import (
    DATE_FIELDS,
    REQUIRED_FIELDS,
    ChunkResult,
    FileAbstract,
    Severity,
    ValidationFinding,
    ValidationResult,
    is_empty_value,
)


# ─── Constants ───────────────────────────────────────────────────────

INSUFFICIENT_COMPLETION = 0.75  # below → error
INCOMPLETE_COMPLETION = 0.90  # below → warning

NOTE_AMOUNT_MIN = 1_000
NOTE_AMOUNT_MAX = 1_000_000_000

MIN_INSTRUMENT_NUMBER_LENGTH = 5
GOVERNMENT_ID_LENGTH = (4, 15)

_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?")
_DATE_PLACEHOLDERS = frozenset({"null", "unknown"})

WARNING_PENALTY = 0.05
ERROR_PENALTY = 0.15


def _passed(code: str, field: str, message: str) -> ValidationFinding:
    return ValidationFinding(severity=Severity.INFO, code=code, field=field, message=message)


# ─── Orchestrator ────────────────────────────────────────────────────


def validate_all(
    abstract: FileAbstract, chunk_results: Sequence[ChunkResult] = ()
) -> list[ValidationFinding]:
    """Run ALL validators and collect findings."""
    findings: list[ValidationFinding] = []
    findings.extend(validate_completion(abstract))
    findings.extend(validate_required_fields(abstract))
    findings.extend(validate_note_amount(abstract))
    findings.extend(validate_instrument_number(abstract))
    findings.extend(validate_dates(abstract))
    findings.extend(validate_government_id(abstract))
    findings.extend(validate_ein(abstract))
    findings.extend(validate_legal_description(abstract))
    findings.extend(validate_county_cross_reference(abstract))
    findings.extend(validate_grantor_corroboration(abstract, chunk_results))
    findings.extend(validate_jurisdiction(abstract))
    return findings


def validate_abstract(
    abstract: FileAbstract,
    chunk_results: Sequence[ChunkResult] = (),
    pipeline_errors: Iterable[str] = (),
) -> ValidationResult:
    """Validate a File Abstract and derive confidence and the generation gate.

    Args:
        chunk_results: first-pass chunk diagnostics (for corroboration).
        pipeline_errors: blocking errors raised by the deterministic repairs
            (jurisdiction miss, structural problems). They are appended as
            errors on every validation pass.
    """
    findings = validate_all(abstract, chunk_results)
    for message in pipeline_errors:
        findings.append(
            ValidationFinding(
                severity=Severity.ERROR,
                code="PIPELINE_ERROR",
                field="abstract",
                message=message,
            )
        )

    filled, total, missing = completion_stats(abstract)
    ratio = round(filled / total, 2) if total else 0.0

    errors = [f.message for f in findings if f.severity == Severity.ERROR]
    warnings = [f.message for f in findings if f.severity == Severity.WARNING]
    passed = sum(1 for f in findings if f.severity == Severity.INFO)

    return ValidationResult(
        confidence=compute_confidence(len(warnings), len(errors), ratio),
        warnings=warnings,
        errors=errors,
        checks_passed=passed,
        checks_failed=len(warnings) + len(errors),
        filled_fields=filled,
        total_fields=total,
        completion_ratio=ratio,
        missing_fields=missing,
        findings=findings,
    )


def compute_confidence(warning_count: int, error_count: int, completion_ratio: float) -> float:
    """Penalize each warning and error, then scale by completion."""
    confidence = 1.0 - WARNING_PENALTY * warning_count - ERROR_PENALTY * error_count
    return round(max(0.0, confidence) * completion_ratio, 2)


def can_generate(result: ValidationResult) -> bool:
    return not result.errors


def completion_stats(abstract: FileAbstract) -> tuple[int, int, list[str]]:
    """(filled, total, missing field names) over every abstract field."""
    names = FileAbstract.field_names()
    missing = [name for name in names if is_empty_value(getattr(abstract, name))]
    return len(names) - len(missing), len(names), missing


# ─── Individual Validators ───────────────────────────────────────────


def validate_completion(abstract: FileAbstract) -> list[ValidationFinding]:
    """Too few fields filled means the bundle was not really read."""
    filled, total, missing = completion_stats(abstract)
    ratio = round(filled / total, 2) if total else 0.0
    details = {"filled_fields": filled, "total_fields": total, "missing_fields": missing}

    if ratio < INSUFFICIENT_COMPLETION:
        return [
            ValidationFinding(
                severity=Severity.ERROR,
                code="ABSTRACT_INSUFFICIENT",
                field="abstract",
                message=(
                    f"File Abstract insufficient — only {filled}/{total} fields "
                    f"filled ({round(ratio * 100)}%)"
                ),
                details=details,
            )
        ]
    if ratio < INCOMPLETE_COMPLETION:
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="ABSTRACT_INCOMPLETE",
                field="abstract",
                message=(
                    f"File Abstract incomplete — {filled}/{total} fields filled "
                    f"({round(ratio * 100)}%)"
                ),
                details=details,
            )
        ]
    return []


def validate_required_fields(abstract: FileAbstract) -> list[ValidationFinding]:
    """Documents cannot be drafted without these."""
    findings: list[ValidationFinding] = []
    for name in REQUIRED_FIELDS:
        if is_empty_value(getattr(abstract, name)):
            findings.append(
                ValidationFinding(
                    severity=Severity.ERROR,
                    code="MISSING_REQUIRED_FIELD",
                    field=name,
                    message=f"Missing required field: {name}",
                )
            )
        else:
            findings.append(_passed("REQUIRED_FIELD_PRESENT", name, f"{name} present"))
    return findings


def validate_note_amount(abstract: FileAbstract) -> list[ValidationFinding]:
    """The note amount must be a number in a plausible range.

    A non-numeric amount is an error; implausible magnitudes are only flagged
    for review.
    """
    if is_empty_value(abstract.note_amount):
        return []

    raw = abstract.note_amount
    cleaned = re.sub(r"[$,\s]", "", raw)
    match = _NUMBER_RE.match(cleaned)
    if match is None:
        return [
            ValidationFinding(
                severity=Severity.ERROR,
                code="NOTE_AMOUNT_NOT_NUMERIC",
                field="note_amount",
                message="note_amount is not numeric",
                details={"value": raw},
            )
        ]

    amount = float(match.group(0))
    if amount <= NOTE_AMOUNT_MIN:
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="NOTE_AMOUNT_TOO_LOW",
                field="note_amount",
                message=f"note_amount seems too low: {raw}",
                details={"value": raw},
            )
        ]
    if amount >= NOTE_AMOUNT_MAX:
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="NOTE_AMOUNT_TOO_HIGH",
                field="note_amount",
                message=f"note_amount seems too high: {raw}",
                details={"value": raw},
            )
        ]
    return [_passed("NOTE_AMOUNT_VALID", "note_amount", "note_amount is numeric and plausible")]


def validate_instrument_number(abstract: FileAbstract) -> list[ValidationFinding]:
    value = abstract.dot_instrument_number
    if is_empty_value(value):
        return []
    if not re.search(r"\d", value) or len(value.strip()) < MIN_INSTRUMENT_NUMBER_LENGTH:
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="INSTRUMENT_NUMBER_INVALID",
                field="dot_instrument_number",
                message=f'dot_instrument_number looks invalid: "{value}"',
            )
        ]
    return [_passed("INSTRUMENT_NUMBER_VALID", "dot_instrument_number", "instrument number looks valid")]


def validate_dates(abstract: FileAbstract) -> list[ValidationFinding]:
    """Dates stay in document format; we only insist on a plausible year."""
    findings: list[ValidationFinding] = []
    for name in DATE_FIELDS:
        value = getattr(abstract, name)
        if is_empty_value(value):
            continue
        if value.strip().lower() in _DATE_PLACEHOLDERS:
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="DATE_PLACEHOLDER",
                    field=name,
                    message=f'{name} has placeholder value: "{value}"',
                )
            )
        elif not _YEAR_RE.search(value):
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="DATE_YEAR_MISSING",
                    field=name,
                    message=f'{name} may not contain a valid year: "{value}"',
                )
            )
        else:
            findings.append(_passed("DATE_HAS_YEAR", name, f"{name} contains a year"))
    return findings


def validate_government_id(abstract: FileAbstract) -> list[ValidationFinding]:
    """Manually-entered id (SSN, license, passport): length check only."""
    value = abstract.government_id
    if is_empty_value(value):
        return []
    low, high = GOVERNMENT_ID_LENGTH
    length = len(value.strip())
    if length < low or length > high:
        # The value itself is sensitive; report the length only.
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="GOVERNMENT_ID_LENGTH",
                field="government_id",
                message=f"Government ID length invalid (expected {low}-{high} chars): {length}",
                details={"length": length},
            )
        ]
    return [_passed("GOVERNMENT_ID_VALID", "government_id", "government id length valid")]


def validate_ein(abstract: FileAbstract) -> list[ValidationFinding]:
    value = abstract.ein
    if is_empty_value(value):
        return []
    if not re.fullmatch(r"\d{9}", re.sub(r"[-\s]", "", value)):
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="EIN_INVALID",
                field="ein",
                message=f'EIN format invalid (expected 9 digits): "{value}"',
            )
        ]
    return [_passed("EIN_VALID", "ein", "EIN has 9 digits")]


def validate_legal_description(abstract: FileAbstract) -> list[ValidationFinding]:
    """Recording references name the county and a survey or lot; metes start somewhere."""
    findings: list[ValidationFinding] = []

    if not is_empty_value(abstract.legal_description_recording):
        upper = abstract.legal_description_recording.upper()
        valid = True
        if "COUNTY" not in upper:
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="LEGAL_RECORDING_NO_COUNTY",
                    field="legal_description_recording",
                    message='legal_description_recording does not contain "COUNTY"',
                )
            )
            valid = False
        if "SURVEY" not in upper and "LOT" not in upper:
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="LEGAL_RECORDING_NO_SURVEY",
                    field="legal_description_recording",
                    message='legal_description_recording does not contain "SURVEY" or "LOT"',
                )
            )
            valid = False
        if valid:
            findings.append(
                _passed("LEGAL_RECORDING_VALID", "legal_description_recording", "recording reference looks complete")
            )

    if not is_empty_value(abstract.legal_description_metes_bounds):
        if "BEGINNING" not in abstract.legal_description_metes_bounds.upper():
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="LEGAL_METES_NO_BEGINNING",
                    field="legal_description_metes_bounds",
                    message='legal_description_metes_bounds does not contain "BEGINNING"',
                )
            )
        else:
            findings.append(
                _passed("LEGAL_METES_VALID", "legal_description_metes_bounds", "metes and bounds has a point of beginning")
            )

    return findings


def validate_county_cross_reference(abstract: FileAbstract) -> list[ValidationFinding]:
    """The county should appear somewhere in the legal description.

    "Collin County, Texas" is reduced to "COLLIN" before searching.
    """
    if is_empty_value(abstract.county):
        return []
    core = normalize_county_name(abstract.county).upper()
    if not core:
        return []

    legal = " ".join(
        (abstract.legal_description_recording or "", abstract.legal_description_metes_bounds or "")
    ).upper()
    if core not in legal:
        return [
            ValidationFinding(
                severity=Severity.WARNING,
                code="COUNTY_NOT_IN_LEGAL",
                field="county",
                message=f'County "{abstract.county}" not found in legal descriptions',
                details={"normalized": core},
            )
        ]
    return [_passed("COUNTY_IN_LEGAL", "county", "county appears in legal description")]


def validate_grantor_corroboration(
    abstract: FileAbstract, chunk_results: Sequence[ChunkResult]
) -> list[ValidationFinding]:
    """Data from more than one chunk plus a grantor name is a good sign."""
    productive = sum(1 for r in chunk_results if r.fields_found > 0)
    if productive > 1 and not is_empty_value(abstract.grantor_name):
        return [
            _passed(
                "GRANTOR_CORROBORATED",
                "grantor_name",
                f"grantor extracted with data from {productive} chunks",
            )
        ]
    return []


def validate_jurisdiction(abstract: FileAbstract) -> list[ValidationFinding]:
    """Sale logistics: trustees are mandatory; location and date sanity-checked."""
    findings: list[ValidationFinding] = []

    trustees = abstract.jurisdiction_trustees
    if trustees is None:
        findings.append(
            ValidationFinding(
                severity=Severity.ERROR,
                code="JURISDICTION_TRUSTEES_MISSING",
                field="jurisdiction_trustees",
                message="Jurisdiction trustees missing - a trustee listing is mandatory",
            )
        )
    elif not trustees:
        findings.append(
            ValidationFinding(
                severity=Severity.ERROR,
                code="JURISDICTION_TRUSTEES_EMPTY",
                field="jurisdiction_trustees",
                message="Jurisdiction trustees empty - county match failed or trustee listing missing",
            )
        )
    else:
        findings.append(
            _passed("JURISDICTION_TRUSTEES_PRESENT", "jurisdiction_trustees", f"{len(trustees)} trustee(s)")
        )

    if not is_empty_value(abstract.sale_location):
        upper = abstract.sale_location.upper()
        if "COURTHOUSE" not in upper and "BUILDING" not in upper:
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="SALE_LOCATION_SUSPECT",
                    field="sale_location",
                    message=f'sale_location may be invalid: "{abstract.sale_location}"',
                )
            )
        else:
            findings.append(_passed("SALE_LOCATION_VALID", "sale_location", "sale location names a building"))

    if not is_empty_value(abstract.jurisdiction_date):
        if not _YEAR_RE.search(abstract.jurisdiction_date):
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    code="JURISDICTION_DATE_YEAR_MISSING",
                    field="jurisdiction_date",
                    message=f'jurisdiction_date may not contain a valid year: "{abstract.jurisdiction_date}"',
                )
            )
        else:
            findings.append(_passed("JURISDICTION_DATE_VALID", "jurisdiction_date", "listing date has a year"))

    return findings
