"""
Wine graph ingestion package.

Provides a pipeline for loading wine review records into the graph store:
normalization, fixed-size batching, and idempotent per-batch upserts.
"""

from .batcher import BatchSequence, chunk
from .graph_writer import GraphUpsertEngine, MergeProgram, build_wine_program
from .normalizers import RecordNormalizer, normalize, normalize_all
from .pipeline import IngestionOrchestrator
from .protocols import (
    Batch,
    BatchOutcome,
    DataSourceAdapter,
    IngestionReport,
    NormalizedRecord,
    RawRecord,
    UnreadableLine,
    UpsertResult,
)

__all__ = [
    "Batch",
    "BatchOutcome",
    "BatchSequence",
    "DataSourceAdapter",
    "GraphUpsertEngine",
    "IngestionOrchestrator",
    "IngestionReport",
    "MergeProgram",
    "NormalizedRecord",
    "RawRecord",
    "RecordNormalizer",
    "UnreadableLine",
    "UpsertResult",
    "build_wine_program",
    "chunk",
    "normalize",
    "normalize_all",
]
