"""
Protocols and data classes for wine graph ingestion.

Defines the records flowing through the pipeline and the interface that
data source adapters must implement.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Iterator, Optional, Protocol, Union

# One decoded JSON line, as-is. No invariants.
RawRecord = dict[str, Any]

# Scalar Wine node attributes (Country/Province/Person become nodes instead)
WINE_ATTRIBUTES = (
    "id",
    "points",
    "title",
    "description",
    "price",
    "variety",
    "winery",
    "vineyard",
    "region_1",
    "region_2",
)


@dataclass(frozen=True)
class NormalizedRecord:
    """
    A validated wine review with a fixed, typed field set.

    Built once per raw record by the normalizer and never mutated.
    Optional fields are either None (absent) or hold their declared type;
    country is never None.
    """
    id: int
    points: int
    title: str
    country: str
    description: Optional[str] = None
    price: Optional[float] = None
    variety: Optional[str] = None
    winery: Optional[str] = None
    province: Optional[str] = None
    region_1: Optional[str] = None
    region_2: Optional[str] = None
    taster_name: Optional[str] = None
    taster_twitter_handle: Optional[str] = None
    vineyard: Optional[str] = None

    def wine_properties(self) -> dict[str, Any]:
        """Scalar Wine attributes, absent ones omitted."""
        return {
            name: getattr(self, name)
            for name in WINE_ATTRIBUTES
            if getattr(self, name) is not None
        }

    def to_row(self) -> dict[str, Any]:
        """Parameter map bound to one UNWIND row of the upsert statement."""
        return {
            "id": self.id,
            "wine": self.wine_properties(),
            "country": self.country,
            "province": self.province,
            "taster_name": self.taster_name,
            "taster_twitter_handle": self.taster_twitter_handle,
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RejectedRecord:
    """A raw record the normalizer refused (lenient mode only)."""
    position: int
    reason: str
    field: Optional[str] = None


@dataclass(frozen=True)
class UnreadableLine:
    """
    A source line that could not be decoded into a record.

    Adapters yield it in place of the record so the run's normalization
    policy decides whether it aborts the run or is skipped.
    """
    line: int
    reason: str


class DataSourceAdapter(Protocol):
    """
    Protocol for data source adapters.

    Each adapter reads from a specific source format and yields raw
    records, one per source line, or an UnreadableLine for a line it
    cannot decode.
    """

    def iter_records(self) -> Iterator[Union[RawRecord, UnreadableLine]]:
        """
        Iterate over raw records from the source.

        Yields:
            RawRecord for each line in the source, UnreadableLine for a
            line that is not a decodable record
        """
        ...

    def get_source_name(self) -> str:
        """
        Get the unique identifier for this source.

        Returns:
            Source name (e.g., 'winemag_130k')
        """
        ...

    def get_file_hash(self) -> Optional[str]:
        """
        Get hash of the source file for provenance logging.

        Returns:
            SHA256 hash of source file, or None if not file-based
        """
        ...


@dataclass(frozen=True)
class Batch:
    """An ordered, non-overlapping slice of normalized records."""
    index: int
    records: tuple[NormalizedRecord, ...]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[NormalizedRecord]:
        return iter(self.records)

    @property
    def min_id(self) -> int:
        return min(r.id for r in self.records)

    @property
    def max_id(self) -> int:
        return max(r.id for r in self.records)

    def rows(self) -> list[dict[str, Any]]:
        return [r.to_row() for r in self.records]


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of one committed batch."""
    batch_index: int
    records_processed: int
    min_id: int
    max_id: int


@dataclass
class BatchOutcome:
    """Per-batch line of the ingestion report."""
    batch_index: int
    min_id: int
    max_id: int
    records: int
    succeeded: bool
    attempts: int = 1
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IngestionReport:
    """Statistics from an ingestion run."""
    source_name: str
    records_read: int = 0
    records_normalized: int = 0
    batches: list[BatchOutcome] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)
    cancelled: bool = False
    aborted: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def batches_processed(self) -> int:
        return sum(1 for b in self.batches if b.succeeded)

    @property
    def batches_failed(self) -> int:
        return sum(1 for b in self.batches if not b.succeeded)

    @property
    def records_written(self) -> int:
        return sum(b.records for b in self.batches if b.succeeded)

    @property
    def succeeded(self) -> bool:
        return self.batches_failed == 0 and not self.cancelled and self.aborted is None

    @property
    def failed_ranges(self) -> list[tuple[int, int]]:
        return [(b.min_id, b.max_id) for b in self.batches if not b.succeeded]

    def summary(self) -> str:
        if self.aborted is not None:
            status = "aborted"
        elif self.cancelled:
            status = "cancelled"
        else:
            status = "ok" if self.succeeded else "failed"
        return (
            f"Ingestion {self.source_name} [{status}]: "
            f"{self.batches_processed} batches ok, {self.batches_failed} failed | "
            f"{self.records_written}/{self.records_read} records written | "
            f"{len(self.rejected)} rejected | {self.duration_seconds:.1f}s"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/storage."""
        return {
            "source_name": self.source_name,
            "records_read": self.records_read,
            "records_normalized": self.records_normalized,
            "records_written": self.records_written,
            "batches_processed": self.batches_processed,
            "batches_failed": self.batches_failed,
            "failed_ranges": self.failed_ranges,
            "rejected_count": len(self.rejected),
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "duration_seconds": round(self.duration_seconds, 3),
        }
