"""
Pipeline settings.

Defaults are the production values; every one can be overridden through an
``ABSTRACT_*`` environment variable (the entry points load ``.env`` first).
Tests construct ``PipelineSettings(...)`` directly with tiny timeouts.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError


class PipelineSettings(BaseModel):
    """All tunables of the extraction pipeline and job controller."""

    # Document-understanding service
    openai_api_key: Optional[str] = None
    model: str = "gpt-5"
    request_timeout: float = Field(120.0, gt=0)
    max_output_tokens: int = Field(8192, gt=0)

    # Chunking & concurrency
    max_pages_per_chunk: int = Field(15, ge=1)
    concurrency: int = Field(3, ge=1)

    # Failure back-off (seconds)
    rate_limit_backoff: float = Field(60.0, ge=0)
    transient_backoff: float = Field(10.0, ge=0)

    # Identity rendezvous (seconds)
    identity_poll_interval: float = Field(0.5, gt=0)
    identity_wait_timeout: float = Field(30 * 60.0, ge=0)

    # Job registry
    job_retention: float = Field(60 * 60.0, gt=0)
    sweep_interval: float = Field(30 * 60.0, gt=0)
    max_jobs: int = Field(100, ge=1)

    # File-name keywords used to infer each document's role
    jurisdiction_keywords: tuple[str, ...] = ("servicelink", "sub-trustee", "subtrustee")
    recorded_keywords: tuple[str, ...] = ("dot", "deed", "recorded")
    funding_keywords: tuple[str, ...] = ("fund", "pkg", "package")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> PipelineSettings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: if a variable is present but not a valid value.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        if env.get("OPENAI_API_KEY"):
            overrides["openai_api_key"] = env["OPENAI_API_KEY"]

        for name in cls.model_fields:
            if name == "openai_api_key":
                continue
            raw = env.get(f"ABSTRACT_{name.upper()}")
            if raw is None or raw == "":
                continue
            if name.endswith("_keywords"):
                overrides[name] = tuple(k.strip().lower() for k in raw.split(",") if k.strip())
            else:
                overrides[name] = raw

        try:
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid pipeline settings: {e.errors()[0]['msg']}",
                {"errors": [str(err["loc"]) for err in e.errors()]},
            ) from e
