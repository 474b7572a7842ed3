"""
Custom exception hierarchy for the File Abstract pipeline.

Exceptions are reserved for problems with the *machinery* (configuration,
unreadable PDFs, unknown jobs, illegal job transitions). Problems with the
*data* (missing fields, jurisdiction lookup misses, malformed legal
descriptions) are reported as validation findings and never raised.
"""

from __future__ import annotations


class AbstractPipelineError(Exception):
    """Base exception for all File Abstract pipeline failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AbstractPipelineError):
    """A required setting (API key, model, limits) is missing or invalid."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("CONFIGURATION_INVALID", message, details)


class PdfReadError(AbstractPipelineError):
    """A PDF could not be opened, split, or have its text extracted."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("PDF_UNREADABLE", message, details)


class JobNotFoundError(AbstractPipelineError):
    """No job with this id exists (never created, or already reaped)."""

    def __init__(self, job_id: str):
        super().__init__("JOB_NOT_FOUND", f"Job '{job_id}' not found", {"job_id": job_id})


class JobStateError(AbstractPipelineError):
    """The requested operation is not allowed in the job's current status."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("JOB_STATE_INVALID", message, details)


class RegistryFullError(AbstractPipelineError):
    """The job registry is at capacity even after sweeping expired jobs."""

    def __init__(self, capacity: int):
        super().__init__(
            "REGISTRY_FULL",
            f"Job registry is full ({capacity} active jobs). Try again later.",
            {"capacity": capacity},
        )


class GenerationBlockedError(AbstractPipelineError):
    """Document generation refused: the abstract still has blocking errors."""

    def __init__(self, errors: list[str]):
        super().__init__(
            "GENERATION_BLOCKED",
            "Cannot generate — unresolved validation errors",
            {"validation_errors": list(errors)},
        )
        self.errors = list(errors)
