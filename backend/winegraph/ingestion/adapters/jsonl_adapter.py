"""
Newline-delimited JSON adapters for wine review ingestion.

One JSON object per line; the file may be gzip or bzip2 compressed, chosen
by extension (.gz, .bz2). Blank lines are skipped. Lines are decoded one at
a time, so a line that is not valid text or not valid JSON is yielded as an
UnreadableLine carrying its line number and the rest of the file still reads.
"""

import bz2
import gzip
import hashlib
import json
from pathlib import Path
from typing import IO, Iterator, Optional, Union

import yaml

from ...errors import ConfigError
from ..normalizers import KNOWN_FIELDS
from ..protocols import RawRecord, UnreadableLine


def _open_binary(path: Path) -> IO[bytes]:
    suffix = path.suffix.lower()
    if suffix == ".gz":
        return gzip.open(path, "rb")
    if suffix == ".bz2":
        return bz2.open(path, "rb")
    return open(path, "rb")


class JsonLinesAdapter:
    """Reads raw review records from an NDJSON file."""

    def __init__(
        self,
        file_path: str,
        source_name: Optional[str] = None,
        encoding: str = "utf-8",
        field_aliases: Optional[dict[str, str]] = None,
    ):
        """
        Initialize adapter.

        Args:
            file_path: Path to the .json/.jsonl file (optionally .gz or .bz2)
            source_name: Identifier for logs and reports (defaults to file stem)
            encoding: Text encoding of the decompressed stream
            field_aliases: Source-field renames passed on to the normalizer
        """
        self.file_path = Path(file_path)
        self.source_name = source_name or self.file_path.name.split(".")[0]
        self.encoding = encoding
        self.field_aliases = dict(field_aliases or {})
        self._file_hash: Optional[str] = None

    def get_source_name(self) -> str:
        return self.source_name

    def get_file_hash(self) -> Optional[str]:
        """Calculate SHA256 hash of the (compressed) source file."""
        if self._file_hash:
            return self._file_hash
        if not self.file_path.exists():
            return None

        sha256 = hashlib.sha256()
        with open(self.file_path, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                sha256.update(block)

        self._file_hash = sha256.hexdigest()
        return self._file_hash

    def iter_records(self) -> Iterator[Union[RawRecord, UnreadableLine]]:
        """
        Iterate over decoded lines lazily.

        Yields:
            The decoded JSON value of each non-blank line, or an
            UnreadableLine when the line is not valid text or JSON
        """
        name = self.file_path.name
        with _open_binary(self.file_path) as f:
            for line_num, data in enumerate(f, start=1):
                try:
                    line = data.decode(self.encoding)
                except UnicodeDecodeError as e:
                    yield UnreadableLine(line_num, f"{name} line {line_num}: invalid {self.encoding} ({e.reason})")
                    continue
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    yield UnreadableLine(line_num, f"{name} line {line_num}: invalid JSON ({e.msg})")


class ConfigDrivenJsonLinesAdapter(JsonLinesAdapter):
    """
    NDJSON adapter configured via YAML.

    Config structure:
    ```yaml
    source_name: winemag_130k
    file_path: data/winemag-data-130k-v2.jsonl.gz
    encoding: utf-8

    field_aliases:
      designation: vineyard
    ```
    """

    REQUIRED = ("source_name", "file_path")

    def __init__(self, config_path: str, base_path: Optional[str] = None):
        """
        Initialize adapter from YAML config.

        Args:
            config_path: Path to YAML config file
            base_path: Base path for resolving relative file paths (defaults to cwd)

        Raises:
            ConfigError: If the config is missing required keys or an alias
                targets an unknown field
        """
        self.config_path = Path(config_path)
        self.base_path = Path(base_path) if base_path else Path.cwd()

        with open(config_path, "r") as f:
            self.config = yaml.safe_load(f) or {}

        for key in self.REQUIRED:
            if key not in self.config:
                raise ConfigError(f"Missing required config field: {key}")
        aliases = self.config.get("field_aliases") or {}
        if not isinstance(aliases, dict):
            raise ConfigError("field_aliases must be a mapping")
        unknown = sorted(str(t) for t in aliases.values() if t not in KNOWN_FIELDS)
        if unknown:
            raise ConfigError(f"field_aliases target unknown fields: {', '.join(unknown)}")

        super().__init__(
            file_path=str(self._resolve_path(self.config["file_path"])),
            source_name=self.config["source_name"],
            encoding=self.config.get("encoding", "utf-8"),
            field_aliases=aliases,
        )

    def _resolve_path(self, path: str) -> Path:
        p = Path(path)
        if p.is_absolute():
            return p
        return self.base_path / p
