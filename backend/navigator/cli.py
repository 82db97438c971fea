"""CLI to embed a directory of patient bundles into Qdrant.

Usage:
    embed-patients --directory ./fhir
    embed-patients --directory ./fhir --collection patients --concurrency 4
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.table import Table

from navigator.config import settings
from navigator.errors import CollectionConfigError, DirectoryUnreadable
from navigator.logging_config import configure_logging
from navigator.models.records import RunReport
from navigator.services.embedding_client import get_embedding_client
from navigator.services.index_writer import get_qdrant_client
from navigator.services.pipeline import IngestionPipeline, PipelineConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_DOCUMENT_FAILURES = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Embed patient bundles into Qdrant")
    parser.add_argument(
        "--directory", type=Path, default=Path(settings.fhir_dir), help="Directory of bundle files"
    )
    parser.add_argument("--collection", type=str, default=None, help="Qdrant collection name override")
    parser.add_argument(
        "--concurrency", type=int, default=None, help="Max embedding requests in flight"
    )
    parser.add_argument(
        "--truncate", action="store_true", help="Truncate oversized histories instead of failing them"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def print_report(report: RunReport, console: Console | None = None) -> None:
    console = console or Console()
    summary = Table(title="Embedding run", show_header=False)
    summary.add_row("Processed", str(report.processed_count))
    summary.add_row("Skipped (no Patient)", str(report.skipped_count))
    summary.add_row("Failed", str(report.failed_count))
    if report.cancelled:
        summary.add_row("Cancelled", "yes")
    console.print(summary)

    if report.failed:
        failures = Table(title="Failures")
        failures.add_column("File")
        failures.add_column("Patient")
        failures.add_column("Kind")
        failures.add_column("Reason")
        for f in report.failed:
            failures.add_row(f.source_file, f.patient_id or "-", f.kind.value, f.reason)
        console.print(failures)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug or settings.debug)

    run_settings = settings.model_copy(
        update={
            k: v
            for k, v in {
                "qdrant_collection": args.collection,
                "ingest_concurrency": args.concurrency,
                "embedding_truncate": True if args.truncate else None,
            }.items()
            if v is not None
        }
    )

    cancel_event = threading.Event()

    def _on_sigint(signum, frame) -> None:
        logger.warning("Interrupt received; finishing current document")
        cancel_event.set()

    signal.signal(signal.SIGINT, _on_sigint)

    pipeline = IngestionPipeline(
        embedder=get_embedding_client(run_settings),
        qdrant=get_qdrant_client(run_settings),
        config=PipelineConfig.from_settings(run_settings),
        cancel_event=cancel_event,
    )

    try:
        report = pipeline.run(args.directory)
    except (DirectoryUnreadable, CollectionConfigError) as e:
        logger.error("Run aborted: %s", e.reason)
        return EXIT_FATAL

    print_report(report)
    return EXIT_DOCUMENT_FAILURES if report.failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
