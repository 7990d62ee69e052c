#!/usr/bin/env python3
"""
Wine graph ingestion CLI tool.

Usage:
    python scripts/ingest.py --source winemag                # Ingest a configured source
    python scripts/ingest.py --file data/reviews.jsonl.gz    # Ingest an ad-hoc NDJSON file
    python scripts/ingest.py --source winemag --lenient      # Skip invalid records instead of aborting
    python scripts/ingest.py --preview 5 --source winemag    # Normalize and print 5 records, no writes
    python scripts/ingest.py --stats                         # Show graph statistics

Ctrl-C stops after the batch in flight has committed.
"""

# Load environment variables from .env file FIRST
from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from winegraph.config import Config
from winegraph.db import graph_stats, open_graph_session
from winegraph.errors import ConfigError, ValidationError
from winegraph.ingestion.adapters import ConfigDrivenJsonLinesAdapter, JsonLinesAdapter
from winegraph.ingestion.normalizers import RecordNormalizer
from winegraph.ingestion.pipeline import IngestionOrchestrator
from winegraph.ingestion.protocols import IngestionReport

logger = logging.getLogger("ingest")

CONFIG_DIR = backend_path / "winegraph" / "ingestion" / "adapters" / "configs"

# Available data sources and their configs
SOURCES = {
    "winemag": CONFIG_DIR / "winemag.yaml",
    "winemag_sample": CONFIG_DIR / "winemag_sample.yaml",
}


def get_adapter(source_name: str | None, file_path: str | None) -> JsonLinesAdapter:
    """Build the adapter for a configured source or an ad-hoc file."""
    if file_path:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {path}")
        return JsonLinesAdapter(str(path))

    if source_name not in SOURCES:
        available = ", ".join(SOURCES.keys())
        raise ValueError(f"Unknown source: {source_name}. Available: {available}")

    # Relative data paths in the configs are resolved from the repo root
    adapter = ConfigDrivenJsonLinesAdapter(str(SOURCES[source_name]), base_path=str(backend_path.parent))
    if not adapter.file_path.exists():
        print(f"\nError: data file not found for '{source_name}': {adapter.file_path}")
        raise FileNotFoundError(f"Missing data file for {source_name}")
    return adapter


def print_report(report: IngestionReport) -> None:
    """Print an ingestion report."""
    print(f"\nCompleted in {report.duration_seconds:.1f}s")
    print(f"  Records read: {report.records_read:,}")
    print(f"  Records normalized: {report.records_normalized:,}")
    print(f"  Records written: {report.records_written:,}")
    print(f"  Batches ok: {report.batches_processed:,}")
    print(f"  Batches failed: {report.batches_failed:,}")
    if report.cancelled:
        print("  Cancelled before completion")

    for outcome in [b for b in report.batches if not b.succeeded][:5]:
        print(f"    - [{outcome.min_id}, {outcome.max_id}] {outcome.error}")
    if report.batches_failed > 5:
        print(f"    ... and {report.batches_failed - 5} more")

    if report.rejected:
        print(f"  Rejected records: {len(report.rejected):,}")
        for rejected in report.rejected[:5]:
            print(f"    - #{rejected.position}: {rejected.reason}")


def build_orchestrator(adapter: JsonLinesAdapter, args: argparse.Namespace) -> IngestionOrchestrator:
    """Build the orchestrator for a run; raises ConfigError on bad settings."""
    return IngestionOrchestrator(
        normalizer=RecordNormalizer(aliases=adapter.field_aliases),
        batch_size=args.batch_size,
        strict=not args.lenient,
        max_retries=args.retries,
    )


async def ingest(orchestrator: IngestionOrchestrator, adapter: JsonLinesAdapter) -> IngestionReport:
    """Run one ingestion, cancelling gracefully on SIGINT."""
    print(f"\n{'='*60}")
    print(f"Ingesting: {adapter.get_source_name()}")
    print(f"{'='*60}")

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.request_cancel)
    except NotImplementedError:
        # Windows: Ctrl-C cancels the task, which still finishes the current batch
        pass

    return await orchestrator.ingest(adapter)


def preview(orchestrator: IngestionOrchestrator, adapter: JsonLinesAdapter, limit: int) -> None:
    """Print normalized records without writing."""
    print(f"\nPreview: {adapter.get_source_name()} (first {limit} records)")
    print("="*60)

    for i, record in enumerate(orchestrator.preview(adapter, limit=limit), 1):
        if "error" in record:
            print(f"\n{i}. INVALID: {record['error']}")
            continue
        print(f"\n{i}. [{record['id']}] {record['title']}")
        print(f"   Points: {record['points']}, Price: {record.get('price') or 'N/A'}")
        print(f"   Country: {record['country']}, Province: {record.get('province') or 'N/A'}")
        print(f"   Variety: {record.get('variety') or 'N/A'}, Taster: {record.get('taster_name') or 'N/A'}")


async def show_stats() -> None:
    """Show graph statistics."""
    print("\n" + "="*60)
    print("Wine Graph Statistics")
    print("="*60)

    async with open_graph_session() as graph:
        stats = await graph_stats(graph)

    print("\nNodes:")
    for label, count in stats["nodes"].items():
        print(f"  {label}: {count:,}")
    print("\nRelationships:")
    for rel_type, count in stats["relationships"].items():
        print(f"  {rel_type}: {count:,}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Wine graph ingestion CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--source", "-s",
        choices=list(SOURCES.keys()),
        help="Configured data source to ingest"
    )
    source.add_argument(
        "--file",
        help="Path to an NDJSON file (.jsonl, .jsonl.gz, .jsonl.bz2)"
    )
    parser.add_argument(
        "--batch-size", "-b",
        type=int,
        default=Config.batch_size(),
        help=f"Records per transaction (default: {Config.batch_size():,})"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Skip invalid records instead of aborting the run"
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=Config.max_batch_retries(),
        help="Re-submit a batch this many times after a transient failure"
    )
    parser.add_argument(
        "--preview", "-p",
        type=int,
        metavar="N",
        help="Normalize and print the first N records without writing"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show graph statistics"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the ingestion report as JSON"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, Config.log_level(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.stats and not (args.source or args.file):
        asyncio.run(show_stats())
        return 0

    if not (args.source or args.file):
        parser.print_help()
        return 2

    try:
        adapter = get_adapter(args.source, args.file)
        orchestrator = build_orchestrator(adapter, args)
    except (FileNotFoundError, ValueError, ConfigError) as e:
        print(f"Error: {e}")
        return 2

    if args.preview:
        preview(orchestrator, adapter, args.preview)
        return 0

    try:
        report = asyncio.run(ingest(orchestrator, adapter))
    except (ValidationError, ConfigError) as e:
        print(f"\nAborted, nothing written: {e}")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)

    if args.stats:
        asyncio.run(show_stats())

    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
