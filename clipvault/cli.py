"""Command-line entry point.

Usage:
    clipvault upload clip1.mp4 clip2.mov --title "Site walk" --tag safety --tag roof

    # Re-encode videos at 60% quality before upload
    clipvault upload clip.mp4 --title "Site walk" --compress --quality 0.6
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from clipvault.core.exceptions import BatchInputError, ConfigError
from clipvault.core.logging import get_logger, setup_logging
from clipvault.services.uploader.models import (
    BatchSummary,
    JobStatus,
    JobUpdate,
    SharedMetadata,
    UploadOptions,
)
from clipvault.services.uploader.orchestrator import UploadQueueOrchestrator

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def _quality(value: str) -> float:
    quality = float(value)
    if not 0.0 < quality <= 1.0:
        raise argparse.ArgumentTypeError("quality must be in (0, 1]")
    return quality


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="clipvault",
        description="Upload local video files and register them as records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a batch of files")
    upload.add_argument("files", nargs="+", type=Path, help="Files to upload, in order")
    upload.add_argument("--title", required=True, help="Record title")
    upload.add_argument("--description", default="", help="Record description")
    upload.add_argument("--project", default="General", help="Project name")
    upload.add_argument("--company-id", default=None, help="Owning company ID")
    upload.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=[],
        help="Tag name (repeatable)",
    )
    upload.add_argument(
        "--compress",
        action="store_true",
        help="Re-encode videos before upload",
    )
    upload.add_argument(
        "--quality",
        type=_quality,
        default=0.8,
        help="Compression quality in (0, 1] (default: 0.8)",
    )
    return parser


def format_update(update: JobUpdate) -> str:
    """Render one update as a console line."""
    line = (
        f"[{update.aggregate_progress:5.1f}%] {update.file_name}: {update.status.value}"
    )
    if update.status is JobStatus.UPLOADING:
        line += f" {update.progress_percent:.0f}%"
    elif update.status is JobStatus.COMPLETED and update.record_id:
        line += f" (record {update.record_id})"
    elif update.status is JobStatus.FAILED and update.failure_reason:
        line += f" - {update.failure_reason}"
    return line


async def run_upload(
    args: argparse.Namespace,
    orchestrator: UploadQueueOrchestrator,
) -> BatchSummary:
    """Submit the batch described by parsed arguments and print its updates.

    Args:
        args: Parsed "upload" arguments
        orchestrator: Orchestrator to run the batch on

    Returns:
        Batch summary

    Raises:
        BatchInputError: If the batch is rejected before processing
    """
    metadata = SharedMetadata(
        title=args.title,
        description=args.description,
        project=args.project,
        company_id=args.company_id,
        tags=args.tags,
    )
    options = UploadOptions(compress=args.compress, quality=args.quality)
    run = orchestrator.submit_batch(args.files, metadata, options)

    async for update in run:
        print(format_update(update), flush=True)

    assert run.summary is not None
    print(run.summary.message)
    return run.summary


async def _main_async(args: argparse.Namespace) -> int:
    from clipvault.core.container import container, shutdown_container

    orchestrator = container.orchestrator()
    try:
        summary = await run_upload(args, orchestrator)
    finally:
        await shutdown_container(container)
    return EXIT_OK if summary.failed == 0 else EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code
    """
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        return asyncio.run(_main_async(args))
    except BatchInputError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except ValidationError as e:
        print(f"error: invalid metadata: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except KeyboardInterrupt:
        logger.info("Upload cancelled by user")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
