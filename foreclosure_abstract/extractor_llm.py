"""
LLM-based extraction from PDF chunks using OpenAI file input.

The LLM is used as a "smart reader" of scanned foreclosure documents — it
handles layout, handwriting-adjacent OCR and legal boilerplate far better than
patterns could. BUT we never trust it blindly: every reply is parsed
leniently, merged under fixed precedence rules, and checked by the
deterministic validators.

Design:
  - The service contract is tiny: PDF bytes + instruction in, free text out.
  - No SDK retries: the orchestrator owns back-off so a slow chunk can never
    stall the job.
  - Failures are classified, not handled, here.
"""

from __future__ import annotations

import base64
import logging
from enum import Enum
from typing import Protocol

import openai
from openai import AsyncOpenAI

from .config import PipelineSettings
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ─── Extraction Prompt ───────────────────────────────────────────────

UNIFIED_EXTRACTION_PROMPT = """\
Extract ALL foreclosure-related information from this PDF chunk.

Return JSON with these fields (use null if not present):

BORROWER / GRANTOR:
- grantor_name: string | null (exact legal name as written)
- grantor_rep: string | null
- grantor_rep_title: string | null
- common_address: string | null
- ein: string | null (Employer Identification Number if present)
- county: string | null (e.g., "Collin County, Texas" or "Dallas County")

PROMISSORY NOTE:
- note_date: string | null
- note_amount: string | null (numeric value only, no $ or commas)
- note_maturity_date: string | null
- interest_rate: string | null (include % if shown)
- loan_servicer: string | null

DEED OF TRUST:
- trustee: string | null
- original_grantee: string | null (full legal name)
- current_grantee: string | null (full legal name, only if an assignment is recorded)
- dot_effective_date: string | null
- dot_recording_date: string | null
- dot_instrument_number: string | null
- legal_description_recording: string | null (copy the COMPLETE text verbatim - do NOT truncate)
- legal_description_metes_bounds: string | null (copy the COMPLETE text verbatim - do NOT truncate)

TRUSTEE LISTING (only if this page is a county substitute-trustee listing):
- jurisdiction_trustees: string[] | null (trustee names from this page)
- county_seat: string | null (city name)
- sale_hours: string | null (time range, e.g., "10:00 AM to 4:00 PM")
- sale_location: string | null (copy the FULL sentence verbatim)
- jurisdiction_date: string | null

CRITICAL RULES:
- Return ONLY valid JSON
- Use null for missing fields
- NEVER guess, infer, or fabricate values
- Preserve exact text from the document - do not paraphrase
- Dates stay in document format
- Do NOT extract government ID numbers or dates of birth (collected separately)

Return JSON only, no markdown, no explanation.
"""


# ─── Service Contract ────────────────────────────────────────────────


class DocumentService(Protocol):
    """Anything that reads a PDF and answers an instruction with free text."""

    async def extract(self, document: bytes, instruction: str, *, label: str = "") -> str:
        ...


class OpenAIDocumentService:
    """Document service backed by an OpenAI model with PDF file input."""

    def __init__(self, settings: PipelineSettings, client: AsyncOpenAI | None = None):
        if client is None:
            if not settings.openai_api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY is not set — the document service is unavailable"
                )
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.request_timeout,
                max_retries=0,
            )
        self._client = client
        self.model = settings.model
        self.max_output_tokens = settings.max_output_tokens

    async def extract(self, document: bytes, instruction: str, *, label: str = "") -> str:
        encoded = base64.b64encode(document).decode("ascii")
        response = await self._client.chat.completions.create(
            model=self.model,
            max_completion_tokens=self.max_output_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "file",
                            "file": {
                                "filename": f"{label or 'chunk'}.pdf",
                                "file_data": f"data:application/pdf;base64,{encoded}",
                            },
                        },
                        {"type": "text", "text": instruction},
                    ],
                }
            ],
        )
        content = response.choices[0].message.content
        if content is None:
            logger.warning("Document service returned empty content for %s", label)
            return ""
        return content


# ─── Failure Classification ──────────────────────────────────────────


class FailureKind(str, Enum):
    """How a failed chunk request should be treated."""

    RATE_LIMITED = "rate_limited"  # long back-off, then drop
    TRANSIENT = "transient"  # timeout / overload: short back-off, then drop
    MALFORMED = "malformed"  # reply was not JSON: drop now
    FATAL = "fatal"  # anything else: drop now


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception from the document service to a FailureKind."""
    if isinstance(exc, openai.RateLimitError):
        return FailureKind.RATE_LIMITED
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return FailureKind.TRANSIENT

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == 429:
        return FailureKind.RATE_LIMITED
    if isinstance(status, int) and status >= 500:
        return FailureKind.TRANSIENT

    message = str(exc).lower()
    if "rate_limit" in message or "rate limit" in message:
        return FailureKind.RATE_LIMITED
    if "overloaded" in message or "timeout" in message or "timed out" in message:
        return FailureKind.TRANSIENT
    return FailureKind.FATAL
