"""
Data source adapters for wine graph ingestion.

Each adapter reads from a specific format and yields raw record dicts.
"""

from .jsonl_adapter import ConfigDrivenJsonLinesAdapter, JsonLinesAdapter

__all__ = ["ConfigDrivenJsonLinesAdapter", "JsonLinesAdapter"]
