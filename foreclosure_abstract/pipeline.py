"""
Job controller — runs the full File Abstract workflow for one upload batch.

Flow:
  ┌──────────┐
  │  Upload  │   ← classify files, keep funding package + preview
  └────┬─────┘
       │
  ┌────▼─────┐     ┌──────────────┐
  │  Split   │     │ Jurisdiction │   ← listing parsed by code, not the LLM
  └────┬─────┘     │    Parser    │
       │           └──────┬───────┘
  ┌────▼─────┐            │
  │ Extract  │   ← worker pool → merge engine
  └────┬─────┘            │
       │                  │
  ┌────▼──────────────────▼──┐
  │ Deterministic repairs    │   ← legal split, lookup, defaults, structure
  └────┬─────────────────────┘
       │
  ┌────▼─────┐
  │ Validate │   ← pass 1
  └────┬─────┘
       │ errors or gaps?
  ┌────▼─────┐
  │  Repair  │   ← targeted re-extraction, repairs re-run, pass 2
  └────┬─────┘
       │
  ┌────▼─────┐
  │ Identity │   ← wait for the two human-entered fields
  └────┬─────┘
       │
  ┌────▼─────┐
  │ Complete │   ← final validation, generation gate
  └──────────┘

Design principles:
  - ``submit`` returns at once; the workflow is a background asyncio task.
  - Only this controller mutates job status, stage and progress.
  - Cancellation is cooperative and checked at every loop boundary.
  - Domain problems become validation errors; only machinery failures fail
    the job, and a failed job exposes no partial abstract.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .chunker import first_page_pdf, split_documents
from .config import PipelineSettings
from .enrichment import apply_post_merge_repairs
from .exceptions import JobStateError, PdfReadError
from .extractor_llm import UNIFIED_EXTRACTION_PROMPT, DocumentService, OpenAIDocumentService
from .generation import Renderer, generate_document, render_plain_text
from .jobs import JobRegistry
from .jurisdiction_parser import parse_jurisdiction_table
from .merge import MergeEngine
from .models import (
    DocumentRole,
    FileAbstract,
    IdentityFields,
    Job,
    JobSnapshot,
    JobStage,
    JobStatus,
    JurisdictionRecord,
    PipelineSummary,
    RepairSummary,
    SourceDocument,
    ValidationResult,
)
from .orchestrator import run_extraction
from .pdf_text import extract_pdf_text
from .repair import identify_repair_fields, needs_repair, run_repair
from .validators import validate_abstract

logger = logging.getLogger(__name__)

TextExtractor = Callable[[bytes], str]

# Progress checkpoints
SPLIT_PROGRESS = 3
EXTRACT_SPAN = 75
VALIDATE_PROGRESS = 80
PRE_REPAIR_PROGRESS = 83
REPAIR_START_PROGRESS = 85
REPAIR_SPAN = 10
POST_REPAIR_PROGRESS = 96
IDENTITY_PROGRESS = 97


def classify_document(name: str, settings: PipelineSettings) -> DocumentRole:
    """Infer a document's role from keywords in its file name."""
    lower = name.lower()
    if any(k in lower for k in settings.jurisdiction_keywords):
        return DocumentRole.JURISDICTION_LISTING
    if any(k in lower for k in settings.recorded_keywords):
        return DocumentRole.RECORDED_INSTRUMENT
    if any(k in lower for k in settings.funding_keywords):
        return DocumentRole.FUNDING_PACKAGE
    return DocumentRole.SUPPORTING


class AbstractPipeline:
    """Orchestrates File Abstract jobs.

    Usage:
        pipeline = AbstractPipeline(PipelineSettings.from_env())
        job_id = pipeline.submit([("funding_pkg.pdf", data), ...])
        ...
        pipeline.submit_identity(job_id, IdentityFields(...))
        await pipeline.wait(job_id)
        job = pipeline.result(job_id)
        if job.can_generate:
            document = pipeline.generate(job.abstract)
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        service: DocumentService | None = None,
        registry: JobRegistry | None = None,
        text_extractor: TextExtractor = extract_pdf_text,
    ):
        self.settings = settings or PipelineSettings()
        self.registry = registry or JobRegistry.from_settings(self.settings)
        self._service = service
        self._text_extractor = text_extractor
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def service(self) -> DocumentService:
        # Built on first use so validation-only callers never need an API key.
        if self._service is None:
            self._service = OpenAIDocumentService(self.settings)
        return self._service

    # ─── Job Operations ─────────────────────────────────────────────

    def submit(self, files: Sequence[tuple[str, bytes]]) -> str:
        """Register a job and start its workflow in the background.

        Must be called from within a running event loop.
        """
        documents = [
            SourceDocument(name=name, data=data, role=classify_document(name, self.settings))
            for name, data in files
        ]
        job = self.registry.create([d.name for d in documents])
        task = asyncio.create_task(self._run(job, documents), name=f"abstract-job-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return job.id

    def status(self, job_id: str) -> JobSnapshot:
        return self.registry.get(job_id).snapshot()

    def submit_identity(self, job_id: str, identity: IdentityFields) -> bool:
        """Hand the two identity fields to a running job.

        Returns:
            True if accepted; False if ignored (already supplied, or the job
            has finished; a finished job is never reopened).
        """
        job = self.registry.get(job_id)
        if job.is_terminal:
            logger.info("Identity for finished job %s ignored", job_id)
            return False
        if job.manual_identity is not None:
            logger.info("Duplicate identity submission for job %s ignored", job_id)
            return False
        job.manual_identity = identity
        logger.info("Identity received for job %s", job_id)
        return True

    def cancel(self, job_id: str) -> JobSnapshot:
        """Cancel a running job; the workflow stops at its next check.

        Raises:
            JobStateError: if the job is not running.
        """
        job = self.registry.get(job_id)
        if job.status != JobStatus.RUNNING:
            raise JobStateError(
                f"Job '{job_id}' is not running", {"status": job.status.value}
            )
        job.cancelled = True
        self._mark_cancelled(job)
        return job.snapshot()

    def result(self, job_id: str) -> Job:
        """The finished job with its abstract and validation.

        Raises:
            JobStateError: unless the job completed.
        """
        job = self.registry.get(job_id)
        if job.status != JobStatus.COMPLETED:
            raise JobStateError(
                f"Job '{job_id}' not completed yet", {"status": job.status.value}
            )
        return job

    async def wait(self, job_id: str) -> JobSnapshot:
        """Await the job's background task (CLI and tests)."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return self.status(job_id)

    # ─── Stateless Operations ───────────────────────────────────────

    @staticmethod
    def revalidate(fields: Mapping[str, Any] | FileAbstract) -> ValidationResult:
        """Validate user-edited fields in isolation (no chunking, no merging)."""
        abstract = fields if isinstance(fields, FileAbstract) else FileAbstract.model_validate(fields)
        return validate_abstract(abstract)

    @staticmethod
    def generate(
        fields: Mapping[str, Any] | FileAbstract, renderer: Renderer = render_plain_text
    ) -> bytes:
        """Render a document; raises GenerationBlockedError on validation errors."""
        abstract = fields if isinstance(fields, FileAbstract) else FileAbstract.model_validate(fields)
        return generate_document(abstract, renderer)

    # ─── Workflow ───────────────────────────────────────────────────

    async def _run(self, job: Job, documents: list[SourceDocument]) -> None:
        try:
            await self._execute(job, documents)
        except Exception as e:
            logger.exception("Pipeline error [%s]", job.id)
            if job.status == JobStatus.RUNNING:
                job.status = JobStatus.FAILED
                job.stage = JobStage.FAILED
                job.error = str(e) or "Processing failed"
                job.abstract = None
                job.validation = None
                job.can_generate = False

    async def _execute(self, job: Job, documents: list[SourceDocument]) -> None:
        settings = self.settings

        # ── Step 0: Upload — funding package, preview, listing ──────
        funding = next((d for d in documents if d.role == DocumentRole.FUNDING_PACKAGE), None)
        if funding is not None:
            job.funding_package = funding.data
            try:
                job.preview = await asyncio.to_thread(first_page_pdf, funding.data, funding.name)
            except PdfReadError as e:
                logger.warning("No preview for %s: %s", funding.name, e)

        jurisdictions, listing_unreadable = await self._parse_listing(documents)
        if self._stopped(job):
            return

        # ── Step 1: Split ───────────────────────────────────────────
        job.advance(SPLIT_PROGRESS, JobStage.SPLITTING)
        chunks = await asyncio.to_thread(split_documents, documents, settings.max_pages_per_chunk)
        logger.info("Job %s: %d chunk(s) from %d document(s)", job.id, len(chunks), len(documents))
        if self._stopped(job):
            return

        # ── Step 2: Extract ─────────────────────────────────────────
        job.stage = JobStage.EXTRACTING
        engine = MergeEngine()
        chunk_results = await run_extraction(
            chunks,
            UNIFIED_EXTRACTION_PROMPT,
            self.service,
            engine,
            settings=settings,
            is_cancelled=lambda: job.cancelled,
            on_progress=lambda done, total: job.advance(
                SPLIT_PROGRESS + round(done / total * EXTRACT_SPAN)
            ),
        )
        if self._stopped(job):
            return
        abstract = engine.abstract

        # ── Step 3: Deterministic repairs + validation pass 1 ───────
        pipeline_errors = apply_post_merge_repairs(
            abstract, jurisdictions, jurisdiction_unreadable=listing_unreadable
        )
        job.advance(VALIDATE_PROGRESS, JobStage.VALIDATING)
        validation = validate_abstract(abstract, chunk_results, pipeline_errors)
        logger.info(
            "Job %s pass 1: %d error(s), %d warning(s), confidence %.2f",
            job.id, len(validation.errors), len(validation.warnings), validation.confidence,
        )
        if self._stopped(job):
            return

        # ── Step 4: Repair pass ─────────────────────────────────────
        job.advance(PRE_REPAIR_PROGRESS)
        repair = RepairSummary()
        if needs_repair(validation) and identify_repair_fields(validation):
            job.advance(REPAIR_START_PROGRESS, JobStage.REPAIRING)
            repair = await run_repair(
                chunks,
                chunk_results,
                validation,
                self.service,
                engine,
                settings=settings,
                is_cancelled=lambda: job.cancelled,
                on_progress=lambda done, total: job.advance(
                    REPAIR_START_PROGRESS + round(done / total * REPAIR_SPAN)
                ),
            )
            if self._stopped(job):
                return
            pipeline_errors = apply_post_merge_repairs(
                abstract, jurisdictions, jurisdiction_unreadable=listing_unreadable
            )
            job.advance(POST_REPAIR_PROGRESS)
            validation = validate_abstract(abstract, chunk_results, pipeline_errors)

        # ── Step 5: Identity rendezvous ─────────────────────────────
        # Identity data must never mask a structural or lookup failure.
        identity_wait = "not_needed"
        if job.funding_package is not None and not pipeline_errors:
            if job.manual_identity is not None:
                identity_wait = "skipped"
            else:
                job.advance(IDENTITY_PROGRESS, JobStage.WAITING_FOR_IDENTITY)
                received = await self._await_identity(job)
                if self._stopped(job):
                    return
                identity_wait = "received" if received else "expired"

        if job.manual_identity is not None:
            abstract.government_id = job.manual_identity.government_id
            abstract.date_of_birth = job.manual_identity.date_of_birth

        # ── Step 6: Final validation ────────────────────────────────
        validation = validate_abstract(abstract, chunk_results, pipeline_errors)
        if self._stopped(job):
            return

        job.abstract = abstract
        job.validation = validation
        job.can_generate = validation.can_generate
        job.summary = PipelineSummary(
            chunks=chunk_results,
            total_chunks=len(chunks),
            extracted_chunks=sum(1 for r in chunk_results if r.fields_found > 0),
            repair=repair,
            identity_wait=identity_wait,
        )
        job.status = JobStatus.COMPLETED
        job.advance(100, JobStage.COMPLETE)
        logger.info(
            "Job %s complete: can_generate=%s, confidence %.2f",
            job.id, job.can_generate, validation.confidence,
        )

    async def _parse_listing(
        self, documents: list[SourceDocument]
    ) -> tuple[dict[str, JurisdictionRecord] | None, bool]:
        """(county map or None when no listing was supplied, text-extraction failed)."""
        listing = next(
            (d for d in documents if d.role == DocumentRole.JURISDICTION_LISTING), None
        )
        if listing is None:
            return None, False
        try:
            text = await asyncio.to_thread(self._text_extractor, listing.data)
        except PdfReadError as e:
            logger.error("Jurisdiction listing %s unreadable: %s", listing.name, e)
            return None, True
        jurisdictions = parse_jurisdiction_table(text)
        logger.info("Jurisdiction listing %s: %d county record(s)", listing.name, len(jurisdictions))
        return jurisdictions, False

    async def _await_identity(self, job: Job) -> bool:
        """Poll for the identity fields until received, cancelled, or timed out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.identity_wait_timeout
        while not job.cancelled:
            if job.manual_identity is not None:
                return True
            if loop.time() >= deadline:
                logger.warning("Job %s: identity wait expired", job.id)
                return False
            await asyncio.sleep(self.settings.identity_poll_interval)
        return False

    # ─── Cancellation ───────────────────────────────────────────────

    def _stopped(self, job: Job) -> bool:
        if not job.cancelled:
            return False
        self._mark_cancelled(job)
        return True

    @staticmethod
    def _mark_cancelled(job: Job) -> None:
        if job.status == JobStatus.RUNNING:
            logger.info("Job %s cancelled at stage %s", job.id, job.stage.value)
            job.status = JobStatus.CANCELLED
            job.stage = JobStage.CANCELLED
            job.error = "Job cancelled by user"
