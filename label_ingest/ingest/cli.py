"""CLI entry point for one-shot bulk ingestion of a local directory.

Usage: python -m label_ingest.ingest /path/to/audio/ [--publish] [--no-release-match]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from label_ingest.ingest.files import AudioFile
from label_ingest.ingest.models import Batch, UploadableTrack
from label_ingest.ingest.orchestrator import IngestionOrchestrator, StageTimeouts
from label_ingest.ingest.registry import Collaborators
from label_ingest.ingest.status import (
    STATUS_LABELS,
    ReportLevel,
    RunReport,
    format_duration,
    format_file_size,
)
from label_ingest.ingest.validator import ValidationOutcome
from label_ingest.settings import settings

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INCOMPLETE = 2


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m label_ingest.ingest",
        description="Upload every audio file in a directory and create track records.",
    )
    parser.add_argument("directory", type=Path, help="Directory to scan (recursively)")
    parser.add_argument(
        "--publish",
        action="store_true",
        default=settings.publish_on_create,
        help="Publish tracks as soon as they are created",
    )
    parser.add_argument(
        "--no-release-match",
        dest="auto_release",
        action="store_false",
        default=settings.auto_match_or_create_release,
        help="Do not match or create releases from album metadata",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the bulk ingestion CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args = _parse_args(argv)
    if not args.directory.is_dir():
        print(f"Error: '{args.directory}' is not a directory", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_USAGE)

    sys.exit(asyncio.run(_run_ingestion(args.directory, args.auto_release, args.publish)))


def _scan(directory: Path) -> list[AudioFile]:
    return [AudioFile.from_path(p) for p in sorted(directory.rglob("*")) if p.is_file()]


async def _run_ingestion(directory: Path, auto_release: bool, publish: bool) -> int:
    """Run one ingestion pass and print the report; returns the exit code."""
    log = logging.getLogger(__name__)
    files = _scan(directory)
    log.info("Found %d file(s) in %s", len(files), directory)

    async with httpx.AsyncClient(timeout=settings.upload_timeout_seconds) as http:
        collaborators = Collaborators.from_settings(http)
        orchestrator = IngestionOrchestrator(
            Batch(auto_match_or_create_release=auto_release, publish_on_create=publish),
            extractor=collaborators.extractor,
            credentials=collaborators.credentials,
            uploader=collaborators.uploader,
            committer=collaborators.committer,
            timeouts=StageTimeouts.from_settings(),
            max_concurrent_extractions=settings.max_concurrent_extractions,
            max_concurrent_uploads=settings.max_concurrent_uploads,
        )

        validation = await orchestrator.ingest_files(files)
        if validation.outcome in (ValidationOutcome.EMPTY, ValidationOutcome.NO_SUPPORTED_FILES):
            print(validation.message, file=sys.stderr)  # noqa: T201
            return EXIT_USAGE
        if validation.outcome == ValidationOutcome.SOME_SKIPPED:
            log.warning(validation.message)

        report = await orchestrator.run()

    _print_report(report, orchestrator.batch.tracks)
    return EXIT_OK if report.level == ReportLevel.SUCCESS else EXIT_INCOMPLETE


def _print_report(report: RunReport, tracks: list[UploadableTrack]) -> None:
    print(f"\n{'=' * 72}")  # noqa: T201
    print("Bulk Ingestion Report")  # noqa: T201
    print(f"{'=' * 72}")  # noqa: T201
    for track in sorted(tracks, key=lambda t: t.position):
        print(  # noqa: T201
            f"{track.position:>3}. {track.title[:36]:<36} "
            f"{format_duration(track.duration_seconds):>8} "
            f"{format_file_size(track.file.size):>10}  {STATUS_LABELS[track.status]}"
        )
        if track.error:
            print(f"     ! {track.error}")  # noqa: T201
        elif track.release_title:
            suffix = " (new)" if track.release_created else ""
            print(f"     Release: {track.release_title}{suffix}")  # noqa: T201
    print(f"{'-' * 72}")  # noqa: T201
    print(f"[{report.level.upper()}] {report.message}")  # noqa: T201
    print(f"{'=' * 72}")  # noqa: T201
