"""
Extraction orchestrator — a bounded worker pool over the chunk list.

Each worker pulls the next chunk from a shared cursor, sends it to the
document service with the instruction, parses the reply, and hands the
partial record to the merge engine. A failing chunk is logged, backed off
according to its failure kind, and contributes nothing. It never aborts the
job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection, Sequence

from .config import PipelineSettings
from .extractor_llm import DocumentService, FailureKind, classify_failure
from .merge import MergeEngine
from .models import Chunk, ChunkResult, is_empty_value
from .response_parser import parse_json_response

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


async def run_extraction(
    chunks: Sequence[Chunk],
    instruction: str,
    service: DocumentService,
    merge_engine: MergeEngine,
    *,
    settings: PipelineSettings,
    is_cancelled: Callable[[], bool] = lambda: False,
    on_progress: ProgressCallback | None = None,
    allowed_fields: Collection[str] | None = None,
    concurrency: int | None = None,
) -> list[ChunkResult]:
    """Extract every chunk with at most ``concurrency`` requests in flight.

    Args:
        allowed_fields: if given, only these keys of each reply are merged
            (the repair pass uses this to stay on its requested fields).

    Returns:
        One ChunkResult per chunk, in chunk order. Chunks skipped because of
        cancellation are reported with zero fields.
    """
    total = len(chunks)
    results: list[ChunkResult | None] = [None] * total
    limit = max(1, concurrency or settings.concurrency)
    cursor = 0
    done = 0

    async def worker() -> None:
        nonlocal cursor, done
        while cursor < total and not is_cancelled():
            position = cursor
            cursor += 1
            chunk = chunks[position]
            results[position] = await _extract_chunk(
                chunk, instruction, service, merge_engine, settings, allowed_fields
            )
            done += 1
            if on_progress is not None:
                on_progress(done, total)

    await asyncio.gather(*(worker() for _ in range(min(limit, total))))

    return [
        result
        if result is not None
        else ChunkResult(source_file=chunk.source_file, page_range=chunk.page_range)
        for chunk, result in zip(chunks, results)
    ]


async def _extract_chunk(
    chunk: Chunk,
    instruction: str,
    service: DocumentService,
    merge_engine: MergeEngine,
    settings: PipelineSettings,
    allowed_fields: Collection[str] | None,
) -> ChunkResult:
    empty = ChunkResult(source_file=chunk.source_file, page_range=chunk.page_range)

    try:
        reply = await service.extract(chunk.data, instruction, label=chunk.label)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        await _back_off(chunk, classify_failure(e), e, settings)
        return empty

    parsed = parse_json_response(reply)
    if not parsed.ok:
        logger.warning(
            "Dropping %s (%s: %s): %.200s", chunk.label, FailureKind.MALFORMED.value, parsed.error, reply
        )
        return empty

    partial = parsed.data or {}
    if allowed_fields is not None:
        partial = {k: v for k, v in partial.items() if k in allowed_fields}

    fields_found = sum(1 for v in partial.values() if not is_empty_value(v))
    try:
        merged = await merge_engine.merge(
            partial, authoritative=chunk.authoritative, ordinal=chunk.ordinal
        )
    except Exception as e:
        logger.error("Dropping %s: merge failed: %s", chunk.label, e)
        return empty
    logger.info("Extracted %s: %d field(s) found, %d merged", chunk.label, fields_found, merged)
    return ChunkResult(
        source_file=chunk.source_file,
        page_range=chunk.page_range,
        fields_found=fields_found,
        fields_merged=merged,
    )


async def _back_off(
    chunk: Chunk, kind: FailureKind, error: Exception, settings: PipelineSettings
) -> None:
    if kind == FailureKind.RATE_LIMITED:
        logger.warning("Rate limited on %s — backing off %.0fs, chunk dropped", chunk.label, settings.rate_limit_backoff)
        await asyncio.sleep(settings.rate_limit_backoff)
    elif kind == FailureKind.TRANSIENT:
        logger.warning("Timeout/overload on %s — backing off %.0fs, chunk dropped", chunk.label, settings.transient_backoff)
        await asyncio.sleep(settings.transient_backoff)
    else:
        logger.error("Extraction failed for %s: %s", chunk.label, error)
