"""
Record normalization for wine graph ingestion.

Turns heterogeneous raw review records into NormalizedRecord instances.
Rules are applied per field in a fixed order:

1. rename aliased source fields (designation -> vineyard), drop unknown ones
2. coerce numeric fields from unambiguous string forms, else fail
3. None, the literal "null" and blank strings mark a nullable field absent
4. absent country becomes the "Unknown" sentinel
5. strip surrounding whitespace from every string

Every value is first classified as ABSENT, NULL_SENTINEL or PRESENT so that
only present values are coerced; downstream code sees a value or None.
"""

import math
import re
from enum import Enum
from typing import Any, Iterable, Optional

from ..config import Config
from ..errors import ValidationError
from .protocols import NormalizedRecord, RawRecord, RejectedRecord, UnreadableLine

DEFAULT_ALIASES = {
    "designation": "vineyard",
}

REQUIRED_FIELDS = ("id", "points", "title")
INT_FIELDS = ("id", "points")
FLOAT_FIELDS = ("price",)
STRING_FIELDS = (
    "title",
    "description",
    "variety",
    "winery",
    "country",
    "province",
    "region_1",
    "region_2",
    "taster_name",
    "taster_twitter_handle",
    "vineyard",
)
ALL_FIELDS = INT_FIELDS + FLOAT_FIELDS + STRING_FIELDS
KNOWN_FIELDS = frozenset(ALL_FIELDS)

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class FieldState(str, Enum):
    """Presence of a raw field value before coercion."""
    ABSENT = "absent"
    NULL_SENTINEL = "null_sentinel"
    PRESENT = "present"


def classify(value: Any) -> FieldState:
    """Classify a raw value as absent, a null sentinel, or present."""
    if value is None:
        return FieldState.ABSENT
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() == "null":
            return FieldState.NULL_SENTINEL
    return FieldState.PRESENT


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got boolean", field=name)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        raise ValidationError(f"{name} must be an integer, got {value!r}", field=name)
    if isinstance(value, str) and _INT_PATTERN.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{name} must be an integer, got {value!r}", field=name)


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got boolean", field=name)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and _FLOAT_PATTERN.match(value.strip()):
        number = float(value.strip())
    else:
        raise ValidationError(f"{name} must be a number, got {value!r}", field=name)
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}", field=name)
    return number


def _to_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {type(value).__name__}", field=name)
    return value.strip()


class RecordNormalizer:
    """
    Validates and coerces raw wine review records.

    Pure: normalize() has no side effects and may be called from any thread.
    """

    def __init__(
        self,
        aliases: Optional[dict[str, str]] = None,
        unknown_country: str = Config.UNKNOWN_COUNTRY,
    ):
        """
        Initialize normalizer.

        Args:
            aliases: Extra source-field -> canonical-field renames, merged
                over the defaults
            unknown_country: Sentinel used when country is absent
        """
        self.aliases = {**DEFAULT_ALIASES, **(aliases or {})}
        for target in self.aliases.values():
            if target not in KNOWN_FIELDS:
                raise ValueError(f"Alias target is not a known field: {target}")
        self.unknown_country = unknown_country

    def _rename(self, raw: RawRecord) -> dict[str, Any]:
        """Apply aliases and drop fields outside the known set."""
        renamed: dict[str, Any] = {}
        for key, value in raw.items():
            canonical = self.aliases.get(key, key)
            if canonical not in KNOWN_FIELDS:
                continue
            # A canonical field wins over an alias that maps onto it
            if canonical in renamed and key != canonical:
                continue
            renamed[canonical] = value
        return renamed

    def normalize(self, raw: RawRecord) -> NormalizedRecord:
        """
        Normalize one raw record.

        Raises:
            ValidationError: A required field is missing or untypeable, or
                an optional field holds the wrong primitive type
        """
        if isinstance(raw, UnreadableLine):
            raise ValidationError(raw.reason)
        if not isinstance(raw, dict):
            raise ValidationError(f"record must be an object, got {type(raw).__name__}")

        fields = self._rename(raw)
        values: dict[str, Any] = {}

        for name in ALL_FIELDS:
            value = fields.get(name)
            state = classify(value)
            if state is not FieldState.PRESENT:
                if name in REQUIRED_FIELDS:
                    raise ValidationError(f"missing required field '{name}'", field=name)
                continue

            if name in INT_FIELDS:
                values[name] = _to_int(name, value)
            elif name in FLOAT_FIELDS:
                values[name] = _to_float(name, value)
            else:
                values[name] = _to_str(name, value)

        if "country" not in values:
            values["country"] = self.unknown_country

        return NormalizedRecord(**values)

    def normalize_all(self, raws: Iterable[RawRecord]) -> list[NormalizedRecord]:
        """
        Normalize a whole source, failing fast.

        Any invalid record, or an id seen twice, aborts the call.

        Raises:
            ValidationError: With the zero-based position of the offending record
        """
        records: list[NormalizedRecord] = []
        seen_ids: set[int] = set()
        for position, raw in enumerate(raws):
            try:
                record = self.normalize(raw)
            except ValidationError as e:
                raise ValidationError(str(e), field=e.field, position=position) from e
            if record.id in seen_ids:
                raise ValidationError(f"duplicate id {record.id}", field="id", position=position)
            seen_ids.add(record.id)
            records.append(record)
        return records

    def normalize_all_lenient(
        self, raws: Iterable[RawRecord]
    ) -> tuple[list[NormalizedRecord], list[RejectedRecord]]:
        """
        Normalize a whole source, skipping invalid records.

        Returns:
            Tuple of (accepted records, rejected records)
        """
        records: list[NormalizedRecord] = []
        rejected: list[RejectedRecord] = []
        seen_ids: set[int] = set()
        for position, raw in enumerate(raws):
            try:
                record = self.normalize(raw)
            except ValidationError as e:
                rejected.append(RejectedRecord(position=position, reason=str(e), field=e.field))
                continue
            if record.id in seen_ids:
                rejected.append(RejectedRecord(position=position, reason=f"duplicate id {record.id}", field="id"))
                continue
            seen_ids.add(record.id)
            records.append(record)
        return records, rejected


_default_normalizer = RecordNormalizer()


def normalize(raw: RawRecord) -> NormalizedRecord:
    """Normalize one record with the default aliases."""
    return _default_normalizer.normalize(raw)


def normalize_all(raws: Iterable[RawRecord]) -> list[NormalizedRecord]:
    """Normalize a whole source with the default aliases, failing fast."""
    return _default_normalizer.normalize_all(raws)
