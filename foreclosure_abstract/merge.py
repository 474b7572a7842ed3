"""
Merge engine — folds per-chunk partial results into the one FileAbstract.

Chunks finish in whatever order the document service answers, so precedence
is decided by *where a value came from*, never by *when it arrived*:

  - a recorded instrument (authoritative) beats a funding package;
  - between sources of equal authority, the earlier chunk in the bundle wins.

Every field remembers the rank of the source that set it. An incoming value
replaces the current one only if its source ranks at least as high, which
makes the final abstract identical for any arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .models import (
    ARRAY_FIELDS,
    IDENTITY_FIELDS,
    MONETARY_FIELDS,
    FileAbstract,
    is_empty_value,
)

logger = logging.getLogger(__name__)

Rank = tuple[int, int]  # (0 = authoritative / 1 = not, chunk ordinal); lower wins

# Values already present without provenance: authoritative sources may
# overwrite them, non-authoritative ones may not.
_UNKNOWN_RANK: Rank = (1, -1)

_PLACEHOLDERS = frozenset({"null", "none"})

# Exponents past this are not dollar figures; the raw text is kept for validation.
_MAX_DOLLAR_DIGITS = 40


@dataclass
class MergeProvenance:
    """Which source set each field, and where each trustee name first appeared."""

    ranks: dict[str, Rank] = field(default_factory=dict)
    trustee_positions: dict[str, tuple[int, int]] = field(default_factory=dict)


# ─── Normalization ───────────────────────────────────────────────────


def normalize_dollar(value: str) -> str:
    """Strip currency symbols, separators and zero cents.

    "$1,234,567.00" → "1234567"
    "1,250.50"      → "1250.50"
    """
    cleaned = re.sub(r"[$,\s]|USD", "", value, flags=re.IGNORECASE)
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return cleaned
    if not amount.is_finite() or abs(amount.adjusted()) > _MAX_DOLLAR_DIGITS:
        return cleaned
    # Plain formatting, no arithmetic: exponents beyond the context precision are fine.
    whole, _, cents = format(amount, "f").partition(".")
    if cents.strip("0"):
        return cleaned
    return whole


def _scalar(value: Any) -> str | None:
    if isinstance(value, (dict, list, tuple, set)):
        return None
    text = str(value).strip()
    if not text or text.lower() in _PLACEHOLDERS:
        return None
    return text


# ─── Pure Merge ──────────────────────────────────────────────────────


def merge_into_abstract(
    abstract: FileAbstract,
    partial: Mapping[str, Any],
    is_authoritative: bool,
    *,
    ordinal: int = 0,
    provenance: MergeProvenance | None = None,
) -> int:
    """Merge one partial record into ``abstract`` in place.

    Returns:
        Number of abstract fields whose value changed.
    """
    if provenance is None:
        provenance = MergeProvenance()
    rank: Rank = (0 if is_authoritative else 1, ordinal)
    known = FileAbstract.model_fields
    changed = 0

    for key, value in partial.items():
        if key not in known or key in IDENTITY_FIELDS or value is None:
            continue

        if key in ARRAY_FIELDS:
            changed += _merge_trustees(abstract, value, ordinal, provenance)
            continue

        text = _scalar(value)
        if text is None:
            continue
        if key in MONETARY_FIELDS:
            text = normalize_dollar(text)

        current = getattr(abstract, key)
        if is_empty_value(current):
            accept = True
        else:
            # Legal descriptions follow the scalar rule: the recorded
            # instrument overrides, a funding package never displaces it.
            accept = rank <= provenance.ranks.get(key, _UNKNOWN_RANK)

        if accept:
            provenance.ranks[key] = rank
            if current != text:
                setattr(abstract, key, text)
                changed += 1

    return changed


def _merge_trustees(
    abstract: FileAbstract, value: Any, ordinal: int, provenance: MergeProvenance
) -> int:
    """Set-union trustee names, ordered by first appearance in the bundle."""
    items = value if isinstance(value, (list, tuple)) else [value]
    incoming = [t for t in (_scalar(item) for item in items) if t]
    if not incoming:
        return 0

    positions = provenance.trustee_positions
    existing = abstract.jurisdiction_trustees or []
    for i, name in enumerate(existing):
        positions.setdefault(name, (-1, i))
    for i, name in enumerate(incoming):
        pos = (ordinal, i)
        if name not in positions or pos < positions[name]:
            positions[name] = pos

    merged = sorted(set(existing) | set(incoming), key=lambda n: positions[n])
    if merged == existing:
        return 0
    abstract.jurisdiction_trustees = merged
    return 1


# ─── Serialized Engine ───────────────────────────────────────────────


class MergeEngine:
    """Single writer of the abstract during extraction and repair.

    ``merge`` is serialized by an asyncio lock that is held for exactly one
    merge call — never across a call to the document service. Each merge is
    all-or-nothing: it runs against a staged copy and is committed in place
    only if it completes.
    """

    def __init__(self, abstract: FileAbstract | None = None):
        self.abstract = abstract if abstract is not None else FileAbstract()
        self.provenance = MergeProvenance()
        self._lock = asyncio.Lock()

    async def merge(
        self,
        partial: Mapping[str, Any],
        *,
        authoritative: bool,
        ordinal: int,
    ) -> int:
        async with self._lock:
            staged = self.abstract.model_copy(deep=True)
            provenance = MergeProvenance(
                ranks=dict(self.provenance.ranks),
                trustee_positions=dict(self.provenance.trustee_positions),
            )
            changed = merge_into_abstract(
                staged,
                partial,
                authoritative,
                ordinal=ordinal,
                provenance=provenance,
            )
            # Commit in place: callers hold references to self.abstract.
            for name in FileAbstract.model_fields:
                setattr(self.abstract, name, getattr(staged, name))
            self.provenance = provenance
        logger.debug("Merged chunk #%d (authoritative=%s): %d field(s) changed", ordinal, authoritative, changed)
        return changed
