"""
Tests for record normalization.
"""

import pytest

from winegraph.errors import ValidationError
from winegraph.ingestion.normalizers import (
    FieldState,
    RecordNormalizer,
    classify,
    normalize,
    normalize_all,
)
from sample_records import make_raw


class TestClassify:
    """Tests for raw value classification."""

    def test_none_is_absent(self):
        assert classify(None) is FieldState.ABSENT

    @pytest.mark.parametrize("value", ["null", "NULL", " Null ", "", "   "])
    def test_null_sentinels(self, value):
        assert classify(value) is FieldState.NULL_SENTINEL

    @pytest.mark.parametrize("value", ["Italy", 0, 0.0, False, "nullish"])
    def test_present(self, value):
        assert classify(value) is FieldState.PRESENT


class TestNormalize:
    """Tests for single-record normalization."""

    def test_happy_path(self, chianti_record):
        record = normalize(chianti_record)

        assert record.id == 40825
        assert record.points == 90
        assert record.title == "Castello San Donato in Perano 2009 Riserva (Chianti Classico)"
        assert record.country == "Italy"
        assert record.province == "Tuscany"
        assert record.taster_name == "Kerin O'Keefe"
        assert record.price is None
        assert record.variety is None

    def test_string_id_coerced(self):
        record = normalize({"id": " 17 ", "points": 88, "title": "A"})
        assert record.id == 17

    def test_integral_float_points_coerced(self):
        record = normalize({"id": 1, "points": 88.0, "title": "A"})
        assert record.points == 88
        assert isinstance(record.points, int)

    def test_price_from_string(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "price": "23.50"})
        assert record.price == 23.5

    def test_integer_price_becomes_float(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "price": 15})
        assert record.price == 15.0
        assert isinstance(record.price, float)

    def test_missing_country_defaults_to_unknown(self):
        record = normalize({"id": 1, "points": 88, "title": "A"})
        assert record.country == "Unknown"

    def test_null_string_country_defaults_to_unknown(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "country": "null"})
        assert record.country == "Unknown"

    def test_custom_unknown_country(self):
        normalizer = RecordNormalizer(unknown_country="N/A")
        assert normalizer.normalize({"id": 1, "points": 88, "title": "A"}).country == "N/A"

    def test_null_string_treated_as_absent(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "province": "null", "price": "null"})
        assert record.province is None
        assert record.price is None

    def test_blank_string_treated_as_absent(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "taster_name": "  "})
        assert record.taster_name is None

    def test_strings_stripped(self):
        record = normalize({"id": 1, "points": 88, "title": "  Barolo  ", "country": " Italy\n"})
        assert record.title == "Barolo"
        assert record.country == "Italy"

    def test_designation_renamed_to_vineyard(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "designation": "Vigna Rionda"})
        assert record.vineyard == "Vigna Rionda"

    def test_canonical_field_wins_over_alias(self):
        record = normalize({
            "id": 1, "points": 88, "title": "A",
            "vineyard": "Cannubi", "designation": "Vigna Rionda",
        })
        assert record.vineyard == "Cannubi"

    def test_unknown_fields_dropped(self):
        record = normalize({"id": 1, "points": 88, "title": "A", "rating_source": "magazine"})
        assert "rating_source" not in record.to_dict()

    def test_full_record(self):
        record = normalize(make_raw(5, designation="Riserva"))
        assert record.winery == "Test Winery 5"
        assert record.region_1 == "Chianti"
        assert record.region_2 is None
        assert record.taster_twitter_handle == "@kerinokeefe"
        assert record.vineyard == "Riserva"

    @pytest.mark.parametrize("missing", ["id", "points", "title"])
    def test_missing_required_field(self, missing):
        raw = {"id": 1, "points": 88, "title": "A"}
        del raw[missing]
        with pytest.raises(ValidationError) as exc:
            normalize(raw)
        assert exc.value.field == missing
        assert missing in str(exc.value)

    def test_null_title_is_missing(self):
        with pytest.raises(ValidationError, match="title"):
            normalize({"id": 1, "points": 88, "title": "null"})

    @pytest.mark.parametrize("points", ["ninety", "90.5", 90.5, True, [90]])
    def test_untypeable_points(self, points):
        with pytest.raises(ValidationError) as exc:
            normalize({"id": 1, "points": points, "title": "A"})
        assert exc.value.field == "points"

    @pytest.mark.parametrize("price", ["cheap", "nan", float("inf"), False])
    def test_untypeable_price(self, price):
        with pytest.raises(ValidationError) as exc:
            normalize({"id": 1, "points": 88, "title": "A", "price": price})
        assert exc.value.field == "price"

    def test_non_string_text_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            normalize({"id": 1, "points": 88, "title": "A", "variety": 42})
        assert exc.value.field == "variety"

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError, match="object"):
            normalize(["id", 1])

    def test_record_is_immutable(self):
        record = normalize({"id": 1, "points": 88, "title": "A"})
        with pytest.raises(AttributeError):
            record.points = 99


class TestNormalizedRecordRows:
    """Tests for the row handed to the upsert statement."""

    def test_row_shape(self, chianti_record):
        row = normalize(chianti_record).to_row()

        assert row["id"] == 40825
        assert row["country"] == "Italy"
        assert row["province"] == "Tuscany"
        assert row["taster_name"] == "Kerin O'Keefe"
        assert row["taster_twitter_handle"] is None

    def test_wine_properties_omit_absent_and_node_fields(self, chianti_record):
        props = normalize(chianti_record).wine_properties()

        assert props == {
            "id": 40825,
            "points": 90,
            "title": "Castello San Donato in Perano 2009 Riserva (Chianti Classico)",
        }


class TestNormalizeAll:
    """Tests for whole-source normalization."""

    def test_preserves_order(self, raw_records):
        records = normalize_all(raw_records)
        assert [r.id for r in records] == list(range(1, 26))

    def test_accepts_generator(self, raw_records):
        records = normalize_all(r for r in raw_records)
        assert len(records) == 25

    def test_fails_fast_with_position(self, raw_records):
        raw_records[3]["title"] = None
        raw_records[7]["points"] = "bad"

        with pytest.raises(ValidationError) as exc:
            normalize_all(raw_records)
        assert exc.value.position == 3
        assert str(exc.value).startswith("record 3:")

    def test_duplicate_id_rejected(self, raw_records):
        raw_records[10]["id"] = 2

        with pytest.raises(ValidationError, match="duplicate id 2") as exc:
            normalize_all(raw_records)
        assert exc.value.position == 10

    def test_lenient_skips_invalid(self, raw_records):
        raw_records[3]["title"] = None
        raw_records[10]["id"] = 2
        normalizer = RecordNormalizer()

        records, rejected = normalizer.normalize_all_lenient(raw_records)

        assert len(records) == 23
        assert [r.position for r in rejected] == [3, 10]
        assert rejected[0].field == "title"
        assert "duplicate" in rejected[1].reason


class TestAliases:
    """Tests for configurable field aliases."""

    def test_extra_alias(self):
        normalizer = RecordNormalizer(aliases={"taster": "taster_name"})
        record = normalizer.normalize({"id": 1, "points": 88, "title": "A", "taster": "Roger Voss"})
        assert record.taster_name == "Roger Voss"

    def test_default_alias_kept(self):
        normalizer = RecordNormalizer(aliases={"taster": "taster_name"})
        record = normalizer.normalize({"id": 1, "points": 88, "title": "A", "designation": "Cru"})
        assert record.vineyard == "Cru"

    def test_unknown_alias_target_rejected(self):
        with pytest.raises(ValueError, match="not a known field"):
            RecordNormalizer(aliases={"colour": "color"})
