"""
Data models for the File Abstract pipeline.

Pydantic models describe everything that crosses a boundary (the abstract,
validation results, jurisdiction records, API payloads). Plain dataclasses
hold the in-process working state (chunks of PDF bytes, jobs) that is never
serialized as-is.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ─── Field Categories ───────────────────────────────────────────────

REQUIRED_FIELDS: tuple[str, ...] = (
    "grantor_name",
    "common_address",
    "note_amount",
    "note_date",
    "trustee",
    "county",
)

DATE_FIELDS: tuple[str, ...] = (
    "note_date",
    "note_maturity_date",
    "dot_effective_date",
    "dot_recording_date",
    "jurisdiction_date",
)

ARRAY_FIELDS: frozenset[str] = frozenset({"jurisdiction_trustees"})

MONETARY_FIELDS: frozenset[str] = frozenset({"note_amount"})

LEGAL_DESCRIPTION_FIELDS: frozenset[str] = frozenset({
    "legal_description_recording",
    "legal_description_metes_bounds",
})

# Human-sourced only: never taken from the document service, never repaired.
IDENTITY_FIELDS: frozenset[str] = frozenset({"government_id", "date_of_birth"})

# Replaced wholesale from the jurisdiction lookup.
JURISDICTION_FIELDS: tuple[str, ...] = (
    "jurisdiction_trustees",
    "sale_hours",
    "county_seat",
    "sale_location",
    "jurisdiction_date",
)


# ─── File Abstract ──────────────────────────────────────────────────


class FileAbstract(BaseModel):
    """The canonical structured record for one foreclosure case.

    Every field is optional: extraction fills what it can and validation
    reports the gaps. Values stay as strings in document format (dates are
    not parsed) because the generated documents quote them verbatim.
    """

    # Borrower / grantor
    grantor_name: Optional[str] = None
    grantor_rep: Optional[str] = None
    grantor_rep_title: Optional[str] = None
    common_address: Optional[str] = None
    county: Optional[str] = None
    ein: Optional[str] = None

    # Identity (manual input only)
    government_id: Optional[str] = None
    date_of_birth: Optional[str] = None

    # Promissory note
    note_date: Optional[str] = None
    note_amount: Optional[str] = None
    note_maturity_date: Optional[str] = None
    interest_rate: Optional[str] = None
    loan_servicer: Optional[str] = None

    # Deed of trust
    trustee: Optional[str] = None
    original_grantee: Optional[str] = None
    current_grantee: Optional[str] = None
    dot_effective_date: Optional[str] = None
    dot_recording_date: Optional[str] = None
    dot_instrument_number: Optional[str] = None
    legal_description_recording: Optional[str] = None
    legal_description_metes_bounds: Optional[str] = None

    # Jurisdiction sale logistics
    jurisdiction_trustees: Optional[list[str]] = None
    county_seat: Optional[str] = None
    sale_hours: Optional[str] = None
    sale_location: Optional[str] = None
    jurisdiction_date: Optional[str] = None

    @classmethod
    def field_names(cls) -> list[str]:
        return list(cls.model_fields)


def is_empty_value(value: object) -> bool:
    """True for None, blank strings and empty lists."""
    if value is None:
        return True
    if isinstance(value, list):
        return len(value) == 0
    return str(value).strip() == ""


# ─── Documents & Chunks ─────────────────────────────────────────────


class DocumentRole(str, Enum):
    """What an uploaded PDF is, inferred from its file name."""

    FUNDING_PACKAGE = "funding_package"
    RECORDED_INSTRUMENT = "recorded_instrument"  # authoritative source
    JURISDICTION_LISTING = "jurisdiction_listing"  # parsed without the LLM
    SUPPORTING = "supporting"


@dataclass
class SourceDocument:
    """One uploaded PDF and the role it plays in the bundle."""

    name: str
    data: bytes
    role: DocumentRole = DocumentRole.SUPPORTING

    @property
    def authoritative(self) -> bool:
        return self.role == DocumentRole.RECORDED_INSTRUMENT


@dataclass(frozen=True)
class Chunk:
    """An immutable, page-bounded unit of extraction work."""

    source_file: str
    index: int  # position within its source file
    start_page: int  # 1-based, inclusive
    end_page: int  # 1-based, inclusive
    data: bytes = field(repr=False)
    ordinal: int = 0  # position in the job-wide chunk list
    authoritative: bool = False

    @property
    def page_range(self) -> str:
        return f"{self.start_page}-{self.end_page}"

    @property
    def label(self) -> str:
        return f"{self.source_file} pages {self.page_range}"


class ChunkResult(BaseModel):
    """Diagnostics for one chunk's extraction."""

    source_file: str
    page_range: str
    fields_found: int = 0
    fields_merged: int = 0


# ─── Jurisdiction ───────────────────────────────────────────────────


class JurisdictionRecord(BaseModel):
    """Per-county sale logistics parsed from the trustee listing."""

    trustees: list[str] = Field(default_factory=list)
    sale_hours: Optional[str] = None
    county_seat: Optional[str] = None
    sale_location: Optional[str] = None
    date: Optional[str] = None


# ─── Validation ─────────────────────────────────────────────────────


class Severity(str, Enum):
    """Severity of a validation finding."""

    ERROR = "ERROR"  # Blocking — generation is refused
    WARNING = "WARNING"  # Advisory — needs human review
    INFO = "INFO"  # A check that passed


class ValidationFinding(BaseModel):
    """A single validation finding with severity, machine-readable code, and details."""

    severity: Severity
    code: str  # Machine-readable, e.g. "MISSING_REQUIRED_FIELD"
    field: str  # Which abstract field this relates to ("abstract" for global checks)
    message: str  # Human-readable explanation
    details: dict = Field(default_factory=dict)


class ValidationResult(BaseModel):
    """Outcome of one validation pass over a FileAbstract."""

    confidence: float = 0.0
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    checks_passed: int = 0
    checks_failed: int = 0
    filled_fields: int = 0
    total_fields: int = 0
    completion_ratio: float = 0.0
    missing_fields: list[str] = Field(default_factory=list)
    findings: list[ValidationFinding] = Field(default_factory=list)

    @property
    def can_generate(self) -> bool:
        return not self.errors


# ─── Identity ───────────────────────────────────────────────────────


class IdentityFields(BaseModel):
    """The two manually-entered identity fields."""

    government_id: str = Field(..., min_length=1)
    date_of_birth: str = Field(..., min_length=1)

    @field_validator("government_id", "date_of_birth")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ─── Jobs ───────────────────────────────────────────────────────────


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobStage(str, Enum):
    UPLOADING = "uploading"
    SPLITTING = "splitting"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    WAITING_FOR_IDENTITY = "waiting_for_identity"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RepairSummary(BaseModel):
    ran: bool = False
    fields_attempted: list[str] = Field(default_factory=list)
    fields_fixed: int = 0


class PipelineSummary(BaseModel):
    chunks: list[ChunkResult] = Field(default_factory=list)
    total_chunks: int = 0
    extracted_chunks: int = 0
    repair: RepairSummary = Field(default_factory=RepairSummary)
    identity_wait: str = "not_needed"  # not_needed | skipped | received | expired


@dataclass
class Job:
    """The unit of orchestration: one upload batch and its lifecycle.

    Only the job controller mutates status/stage/progress. The abstract is
    attached once the job completes; until then callers see none of it.
    """

    id: str
    file_names: list[str] = field(default_factory=list)
    status: JobStatus = JobStatus.RUNNING
    stage: JobStage = JobStage.UPLOADING
    progress: int = 0
    abstract: Optional[FileAbstract] = None
    validation: Optional[ValidationResult] = None
    can_generate: bool = False
    cancelled: bool = False
    manual_identity: Optional[IdentityFields] = None
    created_at: float = field(default_factory=time.time)
    error: Optional[str] = None
    preview: Optional[bytes] = field(default=None, repr=False)
    funding_package: Optional[bytes] = field(default=None, repr=False)
    summary: Optional[PipelineSummary] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.RUNNING

    def advance(self, progress: int, stage: JobStage | None = None) -> None:
        """Move progress forward (never backward) and optionally change stage."""
        self.progress = max(self.progress, min(100, int(progress)))
        if stage is not None:
            self.stage = stage

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.id,
            status=self.status,
            stage=self.stage,
            progress=self.progress,
            error=self.error,
            preview_available=self.preview is not None,
            funding_package_available=self.funding_package is not None,
            file_names=list(self.file_names),
        )


class JobSnapshot(BaseModel):
    """What a status poll sees. The abstract is never part of it."""

    job_id: str
    status: JobStatus
    stage: JobStage
    progress: int
    error: Optional[str] = None
    preview_available: bool = False
    funding_package_available: bool = False
    file_names: list[str] = Field(default_factory=list)
