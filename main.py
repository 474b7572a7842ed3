#!/usr/bin/env python3
"""
File Abstract Extractor — Entry Point
=====================================

Runs the full extraction pipeline over a bundle of PDFs and prints the
File Abstract with its validation report.

Usage:
    python main.py funding_pkg.pdf recorded_dot.pdf servicelink.pdf
    python main.py *.pdf --government-id 123456789 --date-of-birth 01/02/1970
    python main.py *.pdf -v                 # Log every chunk and stage

Needs OPENAI_API_KEY (environment or .env). Exit code is 0 when the abstract
may be used to generate documents, 1 when validation blocks it, 2 when the
job itself failed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from foreclosure_abstract.config import PipelineSettings
from foreclosure_abstract.exceptions import AbstractPipelineError
from foreclosure_abstract.models import FileAbstract, IdentityFields, JobStatus, Severity
from foreclosure_abstract.pipeline import AbstractPipeline

load_dotenv()


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer Helpers ─────────────────────────────────────────


def _print_abstract(abstract: FileAbstract) -> None:
    """Print every field, dimming the empty ones."""
    for name in FileAbstract.field_names():
        value = getattr(abstract, name)
        if name == "government_id" and value:
            value = f"***{value[-4:]}"
        if isinstance(value, list):
            value = "; ".join(value)
        if value:
            text = value if len(value) <= 80 else value[:77] + "..."
            print(f"  {name:<32} {text}")
        else:
            print(f"  {_DIM}{name:<32} —{_RESET}")


def _print_messages(messages: list[str], color: str, label: str) -> None:
    if not messages:
        return
    print(f"\n  {color}{_BOLD}{label} ({len(messages)}){_RESET}")
    for message in messages:
        print(f"    {color}•{_RESET} {message}")


# ─── Pretty Printer ─────────────────────────────────────────────────


def print_report(pipeline: AbstractPipeline, job_id: str) -> int:
    """Pretty-print the finished job.

    Returns:
        0 if generation is allowed, 1 if blocked, 2 if the job did not complete.
    """
    snapshot = pipeline.status(job_id)
    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  FILE ABSTRACT REPORT{_RESET}")
    print(f"{'=' * _WIDTH}")
    print(f"  Job:         {snapshot.job_id}")
    print(f"  Files:       {', '.join(snapshot.file_names)}")
    print(f"  Status:      {snapshot.status.value}")

    if snapshot.status != JobStatus.COMPLETED:
        print(f"  {_RED}{_BOLD}JOB {snapshot.status.value.upper()}: {snapshot.error}{_RESET}")
        print(f"{'=' * _WIDTH}\n")
        return 2

    job = pipeline.result(job_id)
    assert job.abstract is not None and job.validation is not None
    validation = job.validation

    if job.summary is not None:
        summary = job.summary
        print(
            f"  Chunks:      {summary.extracted_chunks}/{summary.total_chunks} produced data"
        )
        if summary.repair.ran:
            print(
                f"  Repair:      {summary.repair.fields_fixed} change(s) over "
                f"{len(summary.repair.fields_attempted)} field(s)"
            )
        print(f"  Identity:    {summary.identity_wait}")
    print(f"{'─' * _WIDTH}")

    _print_abstract(job.abstract)

    print(f"{'─' * _WIDTH}")
    print(
        f"  Completion:  {validation.filled_fields}/{validation.total_fields} "
        f"({round(validation.completion_ratio * 100)}%)   "
        f"Confidence: {validation.confidence:.2f}   "
        f"Checks passed: {validation.checks_passed}"
    )
    _print_messages(validation.errors, _RED, "ERRORS")
    _print_messages(validation.warnings, _YELLOW, "WARNINGS")
    infos = [f for f in validation.findings if f.severity == Severity.INFO]
    if infos:
        print(f"\n  {_CYAN}INFO ({len(infos)}){_RESET}")
        for finding in infos:
            print(f"    [{finding.code}] {finding.message}")

    print(f"\n{'=' * _WIDTH}")
    if job.can_generate:
        print(f"  {_GREEN}{_BOLD}READY TO GENERATE{_RESET}")
    else:
        print(f"  {_RED}{_BOLD}GENERATION BLOCKED  --  {len(validation.errors)} error(s){_RESET}")
    print(f"{'=' * _WIDTH}\n")

    return 0 if job.can_generate else 1


# ─── Main ────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract a foreclosure File Abstract from a bundle of PDFs."
    )
    parser.add_argument("pdfs", nargs="+", type=Path, help="PDF files of one case")
    parser.add_argument("--government-id", help="Borrower government id (manual input)")
    parser.add_argument("--date-of-birth", help="Borrower date of birth (manual input)")
    parser.add_argument(
        "--identity-timeout",
        type=float,
        default=0.0,
        help="Seconds to wait for identity fields (default: do not wait)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


async def run(args: argparse.Namespace) -> int:
    settings = PipelineSettings.from_env().model_copy(
        update={"identity_wait_timeout": args.identity_timeout}
    )
    pipeline = AbstractPipeline(settings)

    files = [(path.name, path.read_bytes()) for path in args.pdfs]
    job_id = pipeline.submit(files)
    if args.government_id and args.date_of_birth:
        pipeline.submit_identity(
            job_id,
            IdentityFields(government_id=args.government_id, date_of_birth=args.date_of_birth),
        )

    await pipeline.wait(job_id)
    return print_report(pipeline, job_id)


def main() -> None:
    """Run the pipeline over the given PDFs and print the report."""
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    missing = [str(p) for p in args.pdfs if not p.is_file()]
    if missing:
        print(f"{_RED}File(s) not found: {', '.join(missing)}{_RESET}", file=sys.stderr)
        sys.exit(2)

    print("\n  Starting File Abstract Extractor...")
    print(f"  Processing {len(args.pdfs)} PDF(s)...\n")

    try:
        exit_code = asyncio.run(run(args))
    except AbstractPipelineError as e:
        print(f"{_RED}{e.code}: {e}{_RESET}", file=sys.stderr)
        exit_code = 2
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
