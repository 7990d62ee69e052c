"""
Wine graph ingestion pipeline.

Orchestrates the flow: adapter → normalizer → batcher → upsert engine → graph

Batches are written strictly one at a time: the store only lets a
relationship attach to nodes visible from committed transactions, so two
in-flight batches could race a node and an edge that depends on it.
Cancellation is honoured between batches only; a batch in flight always
runs to commit or failure.
"""

import asyncio
import logging
import time
from contextlib import AbstractAsyncContextManager
from itertools import islice
from typing import Callable, Iterable, Iterator, Optional

from ..config import Config
from ..db import GraphSession, ensure_schema, open_graph_session
from ..errors import TransactionError, ValidationError
from .batcher import chunk, require_batch_size
from .graph_writer import GraphUpsertEngine
from .normalizers import RecordNormalizer
from .protocols import Batch, BatchOutcome, DataSourceAdapter, IngestionReport, RawRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[GraphSession]]
EngineFactory = Callable[[GraphSession], GraphUpsertEngine]


class IngestionOrchestrator:
    """
    Main ingestion pipeline for wine review data.

    Coordinates:
    1. Acquiring the graph session (sole owner for the run)
    2. Ensuring constraints and indexes
    3. Normalizing the full source
    4. Partitioning into batches
    5. Writing batches sequentially, isolating per-batch failures
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        normalizer: Optional[RecordNormalizer] = None,
        batch_size: Optional[int] = None,
        strict: bool = True,
        max_retries: Optional[int] = None,
        engine_factory: Optional[EngineFactory] = None,
        progress_every: int = Config.PROGRESS_EVERY_BATCHES,
    ):
        """
        Initialize pipeline.

        Args:
            session_factory: Returns an async context manager yielding the
                graph session (defaults to open_graph_session)
            normalizer: Record normalizer (creates default if None)
            batch_size: Records per transaction (defaults to Config.batch_size())
            strict: Abort on the first invalid record if True, else skip
                and report invalid records
            max_retries: Re-submissions of a batch after a transient failure
                (defaults to Config.max_batch_retries())
            engine_factory: Builds the upsert engine from the session
            progress_every: Log progress every N batches

        Raises:
            ConfigError: If the batch size is not a positive integer
        """
        self.session_factory = session_factory or open_graph_session
        self.normalizer = normalizer or RecordNormalizer()
        self.batch_size = require_batch_size(batch_size if batch_size is not None else Config.batch_size())
        self.strict = strict
        self.max_retries = max_retries if max_retries is not None else Config.max_batch_retries()
        self.engine_factory = engine_factory or GraphUpsertEngine
        self.progress_every = max(1, progress_every)
        self._cancel_requested = False

    def request_cancel(self) -> None:
        """Stop before the next batch. The batch in flight still completes."""
        self._cancel_requested = True

    async def ingest(self, adapter: DataSourceAdapter) -> IngestionReport:
        """
        Ingest data from an adapter.

        Args:
            adapter: Data source adapter

        Returns:
            IngestionReport with results
        """
        source_name = adapter.get_source_name()
        file_hash = adapter.get_file_hash()
        if file_hash:
            logger.info(f"Ingesting {source_name} (sha256 {file_hash[:12]})")
        return await self.run(adapter.iter_records(), source_name=source_name)

    async def run(self, source: Iterable[RawRecord], source_name: str = "stream") -> IngestionReport:
        """
        Normalize, batch and write a whole source.

        Returns:
            IngestionReport with one BatchOutcome per submitted batch

        Raises:
            ValidationError: In strict mode, when any record is invalid
                (nothing is written)
        """
        self._cancel_requested = False
        report = IngestionReport(source_name=source_name)
        start = time.monotonic()
        interrupted = False

        async with self.session_factory() as graph:
            await ensure_schema(graph)

            counted = self._count(source, report)
            if self.strict:
                try:
                    records = self.normalizer.normalize_all(counted)
                except ValidationError as e:
                    logger.error(f"Normalization aborted {source_name}: {e}")
                    report.aborted = str(e)
                    report.duration_seconds = time.monotonic() - start
                    logger.info(report.summary())
                    raise
            else:
                records, rejected = self.normalizer.normalize_all_lenient(counted)
                report.rejected.extend(rejected)
                if rejected:
                    logger.warning(f"Skipped {len(rejected)} invalid records from {source_name}")
            report.records_normalized = len(records)

            batches = chunk(records, self.batch_size)
            total = len(batches)
            logger.info(f"Normalized {len(records):,} records into {total} batches of <= {self.batch_size:,}")

            engine = self.engine_factory(graph)
            for batch in batches:
                if self._cancel_requested:
                    report.cancelled = True
                    logger.warning(f"Cancelled before batch {batch.index + 1}/{total}")
                    break

                outcome, interrupted = await self._submit_shielded(engine, batch)
                report.batches.append(outcome)

                if (batch.index + 1) % self.progress_every == 0:
                    logger.info(
                        f"Progress: {batch.index + 1}/{total} batches "
                        f"({report.batches_failed} failed)"
                    )
                if interrupted:
                    report.cancelled = True
                    break

        report.duration_seconds = time.monotonic() - start
        logger.info(report.summary())
        if interrupted:
            raise asyncio.CancelledError()
        return report

    @staticmethod
    def _count(source: Iterable[RawRecord], report: IngestionReport) -> Iterator[RawRecord]:
        for raw in source:
            report.records_read += 1
            yield raw

    async def _submit_shielded(self, engine: GraphUpsertEngine, batch: Batch) -> tuple[BatchOutcome, bool]:
        """
        Submit a batch, letting it finish even if the run task is cancelled.

        Returns:
            Tuple of (outcome, interrupted) where interrupted means the run
            task was cancelled while the batch was in flight
        """
        task = asyncio.ensure_future(self._submit(engine, batch))
        try:
            return await asyncio.shield(task), False
        except asyncio.CancelledError:
            self._cancel_requested = True
            logger.warning(f"Cancellation received, finishing batch {batch.index + 1} first")
            while not task.done():
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    continue
            return task.result(), True

    async def _submit(self, engine: GraphUpsertEngine, batch: Batch) -> BatchOutcome:
        """Write one batch, retrying transient failures up to max_retries."""
        attempts = 0
        logger.debug(f"Batch {batch.index + 1}: {len(batch)} records [{batch.min_id}, {batch.max_id}]")
        while True:
            attempts += 1
            try:
                result = await engine.upsert(batch)
            except TransactionError as e:
                if e.retryable and attempts <= self.max_retries and not self._cancel_requested:
                    logger.warning(
                        f"Batch {batch.index + 1} [{e.min_id}, {e.max_id}] transient failure, "
                        f"retry {attempts}/{self.max_retries}: {e.cause}"
                    )
                    continue
                logger.error(f"Batch {batch.index + 1} [{e.min_id}, {e.max_id}] failed: {e.cause}")
                return BatchOutcome(
                    batch_index=batch.index,
                    min_id=e.min_id,
                    max_id=e.max_id,
                    records=len(batch),
                    succeeded=False,
                    attempts=attempts,
                    error=f"{type(e.cause).__name__}: {e.cause}",
                )

            logger.info(
                f"Batch {batch.index + 1} committed: {result.records_processed} records "
                f"[{result.min_id}, {result.max_id}]"
            )
            return BatchOutcome(
                batch_index=batch.index,
                min_id=result.min_id,
                max_id=result.max_id,
                records=result.records_processed,
                succeeded=True,
                attempts=attempts,
            )

    def preview(self, adapter: DataSourceAdapter, limit: int = 10) -> list[dict]:
        """
        Preview normalized records without writing.

        Args:
            adapter: Data source adapter
            limit: Max records to return

        Returns:
            List of normalized record dicts (invalid ones carry an "error" key)
        """
        results = []
        for position, raw in enumerate(islice(adapter.iter_records(), limit)):
            try:
                results.append(self.normalizer.normalize(raw).to_dict())
            except ValidationError as e:
                results.append({"position": position, "error": str(e)})
        return results
