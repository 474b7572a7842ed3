"""
File Abstract Extractor — FastAPI Server
========================================

REST API over the File Abstract job controller.

Endpoints:
    POST /jobs                          Upload PDFs, start a job (returns at once)
    GET  /jobs/{job_id}                 Status, stage, progress
    POST /jobs/{job_id}/identity        Submit government id + date of birth
    POST /jobs/{job_id}/cancel          Cancel a running job
    GET  /jobs/{job_id}/result          Abstract + validation (completed jobs)
    GET  /jobs/{job_id}/preview         First page of the funding package (PDF)
    GET  /jobs/{job_id}/funding-package Full funding package (PDF)
    POST /validate                      Re-validate edited fields
    POST /generate                      Generate a document (gated)
    GET  /health                        Health check / readiness probe

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
    uvicorn api:app --host 0.0.0.0        # Production

Docs:
    http://localhost:8000/docs             # Swagger UI (auto-generated)
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from foreclosure_abstract import __version__
from foreclosure_abstract.config import PipelineSettings
from foreclosure_abstract.exceptions import (
    AbstractPipelineError,
    ConfigurationError,
    GenerationBlockedError,
    JobNotFoundError,
    JobStateError,
    PdfReadError,
    RegistryFullError,
)
from foreclosure_abstract.generation import output_file_name
from foreclosure_abstract.models import (
    FileAbstract,
    IdentityFields,
    JobSnapshot,
    PipelineSummary,
    ValidationResult,
)
from foreclosure_abstract.pipeline import AbstractPipeline

load_dotenv()

logger = logging.getLogger(__name__)

MAX_FILES = 10
MAX_FILE_BYTES = 50 * 1024 * 1024


# ─── Application Lifespan ───────────────────────────────────────────

_pipeline: AbstractPipeline | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline from the environment and start the job sweeper."""
    global _pipeline  # noqa: PLW0603
    settings = PipelineSettings.from_env()
    _pipeline = AbstractPipeline(settings)
    sweeper = asyncio.create_task(_pipeline.registry.run_sweeper(settings.sweep_interval))
    yield
    sweeper.cancel()
    _pipeline = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="File Abstract Extractor API",
    description=(
        "Extracts a foreclosure File Abstract from scanned PDFs. "
        "Chunked LLM extraction, deterministic merge, code-based jurisdiction "
        "lookup and validation, targeted repair, and a gated generation step."
    ),
    version=__version__,
    lifespan=lifespan,
)


_STATUS_CODES: dict[type[AbstractPipelineError], int] = {
    JobNotFoundError: 404,
    JobStateError: 409,
    GenerationBlockedError: 400,
    PdfReadError: 422,
    RegistryFullError: 503,
    ConfigurationError: 503,
}


@app.exception_handler(AbstractPipelineError)
async def _pipeline_error_handler(request: Request, exc: AbstractPipelineError) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    return JSONResponse(
        status_code=status,
        content={"error": exc.code, "message": str(exc), "details": exc.details},
    )


# ─── Request / Response Schemas ─────────────────────────────────────


class SubmitResponse(BaseModel):
    job_id: str
    file_names: list[str]


class IdentityResponse(BaseModel):
    accepted: bool = Field(description="False if identity was already supplied or the job finished")


class JobResultResponse(BaseModel):
    job_id: str
    fields: FileAbstract
    validation: ValidationResult
    can_generate: bool
    pipeline: Optional[PipelineSummary] = None
    file_names: list[str]


class FieldsRequest(BaseModel):
    """User-edited abstract fields."""

    fields: FileAbstract


class ValidateResponse(BaseModel):
    validation: ValidationResult
    can_generate: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    model: str
    api_key_configured: bool
    active_jobs: int


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_pipeline() -> AbstractPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return _pipeline


def _is_pdf(file: UploadFile) -> bool:
    name = (file.filename or "").lower()
    return name.endswith(".pdf") or file.content_type == "application/pdf"


def _content_disposition(disposition: str, filename: str) -> str:
    """RFC 6266 header value: an ASCII ``filename`` plus a UTF-8 ``filename*``."""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename)
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _pdf_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": _content_disposition("inline", filename)},
    )


# ─── Job Endpoints ───────────────────────────────────────────────────


@app.post(
    "/jobs",
    status_code=202,
    summary="Upload PDFs and start an extraction job",
    tags=["Jobs"],
    responses={
        400: {"description": "No files, or more than 10 files"},
        413: {"description": "A file exceeds 50 MB"},
        415: {"description": "A file is not a PDF"},
        503: {"description": "Registry full or pipeline not initialised"},
    },
)
async def submit_job(files: list[UploadFile]) -> SubmitResponse:
    """Start a job over the uploaded bundle and return its id immediately.

    File names decide each document's role: names containing `dot`, `deed`
    or `recorded` are the authoritative recorded instrument; `fund`, `pkg`
    or `package` mark the funding package; `servicelink` / `sub-trustee`
    mark the jurisdiction trustee listing.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > MAX_FILES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_FILES} files per job")

    payload: list[tuple[str, bytes]] = []
    for file in files:
        if not _is_pdf(file):
            raise HTTPException(status_code=415, detail=f"Only PDF files are allowed: {file.filename}")
        if file.size and file.size > MAX_FILE_BYTES:
            raise HTTPException(status_code=413, detail=f"File too large (max 50 MB): {file.filename}")
        content = await file.read()
        if len(content) > MAX_FILE_BYTES:
            raise HTTPException(status_code=413, detail=f"File too large (max 50 MB): {file.filename}")
        payload.append((file.filename or "document.pdf", content))

    pipeline = _get_pipeline()
    job_id = pipeline.submit(payload)
    return SubmitResponse(job_id=job_id, file_names=[name for name, _ in payload])


@app.get("/jobs/{job_id}", summary="Job status", tags=["Jobs"])
def job_status(job_id: str) -> JobSnapshot:
    return _get_pipeline().status(job_id)


@app.post("/jobs/{job_id}/identity", summary="Submit identity fields", tags=["Jobs"])
def submit_identity(job_id: str, identity: IdentityFields) -> IdentityResponse:
    """Hand the manually-entered government id and date of birth to the job.

    The first submission is accepted; later ones are ignored without error.
    """
    accepted = _get_pipeline().submit_identity(job_id, identity)
    return IdentityResponse(accepted=accepted)


@app.post(
    "/jobs/{job_id}/cancel",
    summary="Cancel a running job",
    tags=["Jobs"],
    responses={409: {"description": "Job is not running"}},
)
def cancel_job(job_id: str) -> JobSnapshot:
    return _get_pipeline().cancel(job_id)


@app.get(
    "/jobs/{job_id}/result",
    summary="Extraction result",
    tags=["Jobs"],
    responses={409: {"description": "Job not completed"}},
)
def job_result(job_id: str) -> JobResultResponse:
    job = _get_pipeline().result(job_id)
    assert job.abstract is not None and job.validation is not None
    return JobResultResponse(
        job_id=job.id,
        fields=job.abstract,
        validation=job.validation,
        can_generate=job.can_generate,
        pipeline=job.summary,
        file_names=job.file_names,
    )


@app.get("/jobs/{job_id}/preview", summary="Funding package first page", tags=["Jobs"])
def job_preview(job_id: str) -> Response:
    job = _get_pipeline().registry.get(job_id)
    if job.preview is None:
        raise HTTPException(status_code=404, detail="Preview not available")
    return _pdf_response(job.preview, "funding-preview.pdf")


@app.get("/jobs/{job_id}/funding-package", summary="Full funding package", tags=["Jobs"])
def job_funding_package(job_id: str) -> Response:
    job = _get_pipeline().registry.get(job_id)
    if job.funding_package is None:
        raise HTTPException(status_code=404, detail="Funding package not available")
    return _pdf_response(job.funding_package, "funding-package.pdf")


# ─── Validation & Generation ────────────────────────────────────────


@app.post("/validate", summary="Re-validate edited fields", tags=["Validation"])
def validate_fields(request: FieldsRequest) -> ValidateResponse:
    """Validate fields in isolation — no chunking, no merging, no LLM."""
    validation = AbstractPipeline.revalidate(request.fields)
    return ValidateResponse(validation=validation, can_generate=validation.can_generate)


@app.post(
    "/generate",
    summary="Generate the File Abstract document",
    tags=["Validation"],
    responses={400: {"description": "Unresolved validation errors"}},
)
def generate(request: FieldsRequest) -> Response:
    """Re-validates server-side and refuses while errors remain."""
    document = AbstractPipeline.generate(request.fields)
    return Response(
        content=document,
        media_type="text/plain; charset=utf-8",
        headers={
            "Content-Disposition": _content_disposition("attachment", output_file_name(request.fields))
        },
    )


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def health_check() -> HealthResponse:
    """Returns service status and configuration info."""
    pipeline = _get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        model=pipeline.settings.model,
        api_key_configured=bool(pipeline.settings.openai_api_key),
        active_jobs=len(pipeline.registry),
    )
