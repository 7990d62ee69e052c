"""
Centralized configuration for the wine graph backend.

All constants are defined here to avoid scattered magic numbers.
Connection credentials live in settings.py (pydantic-settings).
"""

import os
from pathlib import Path


class Config:
    """Application configuration constants."""

    # === Ingestion ===
    BATCH_SIZE = 10_000               # Records per atomic write transaction
    PROGRESS_EVERY_BATCHES = 5        # Log progress every N batches
    UNKNOWN_COUNTRY = "Unknown"       # Sentinel keeping Wine->Country always queryable

    # === Query ===
    SEARCH_LIMIT = 5
    MAX_RESULT_LIMIT = 50
    PRICE_NOT_AVAILABLE = -1.0        # Sentinel for absent price in read results
    TEXT_NOT_AVAILABLE = "Not available"
    FULLTEXT_INDEX = "searchText"

    # === Environment ===
    @staticmethod
    def log_level() -> str:
        """Log level (DEBUG, INFO, WARNING, ERROR)."""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def batch_size() -> int:
        """Ingestion chunk size. Default: 10,000."""
        try:
            return int(os.getenv("INGEST_BATCH_SIZE", str(Config.BATCH_SIZE)))
        except ValueError:
            return Config.BATCH_SIZE

    @staticmethod
    def max_batch_retries() -> int:
        """Re-submissions of a batch that failed with a transient error. Default: 0."""
        try:
            return max(0, int(os.getenv("INGEST_MAX_RETRIES", "0")))
        except ValueError:
            return 0

    @staticmethod
    def query_timeout_seconds() -> float:
        """Caller-facing timeout for read queries. Default: 10.0."""
        try:
            return float(os.getenv("QUERY_TIMEOUT_SECONDS", "10.0"))
        except ValueError:
            return 10.0

    @staticmethod
    def data_dir() -> Path:
        """Directory holding raw NDJSON dumps. Default: <repo>/data."""
        default = Path(__file__).resolve().parent.parent.parent / "data"
        return Path(os.getenv("WINEGRAPH_DATA_DIR", str(default)))
