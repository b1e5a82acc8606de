"""
Unit tests for field parsers and the Normalizer.
"""
from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from review_history.core.config import DEFAULT_DATE_FORMATS, PipelineConfig
from review_history.core.errors import MalformedRecordError
from review_history.core.models import CanonicalRecord, RejectedRecord
from review_history.core.normalization import (
    Normalizer,
    clean_text,
    parse_entity_ref,
    parse_epoch,
    parse_event_date,
    parse_flag,
    parse_measured_value,
)


@pytest.mark.unit
class TestParsers:
    """Tests for the individual field parsers"""

    def test_entity_ref_trimmed_and_upper_cased(self):
        assert parse_entity_ref("  b000fa64pk ") == "B000FA64PK"

    def test_entity_ref_blank_is_none(self):
        assert parse_entity_ref("   ") is None
        assert parse_entity_ref(None) is None

    def test_measured_value_casts_strings(self):
        assert parse_measured_value("4.5") == 4.5
        assert parse_measured_value(" 3 ") == 3.0

    def test_measured_value_clamped(self):
        assert parse_measured_value(7) == 5.0
        assert parse_measured_value(-2) == 0.0
        assert parse_measured_value(12, lower=1.0, upper=10.0) == 10.0

    @pytest.mark.parametrize("value", [None, "", "abc", "nan", True])
    def test_measured_value_non_numeric_is_none(self, value):
        assert parse_measured_value(value) is None

    @given(st.floats(allow_nan=False))
    def test_property_measured_value_always_in_bounds(self, value):
        """Property test: any finite or infinite float ends up inside [0, 5]"""
        result = parse_measured_value(value)
        assert 0.0 <= result <= 5.0

    @pytest.mark.parametrize("token", ["true", "T", "yes", "Y", "1", True])
    def test_flag_truthy(self, token):
        assert parse_flag(token) is True

    @pytest.mark.parametrize("token", ["false", "F", "no", "N", "0", False])
    def test_flag_falsy(self, token):
        assert parse_flag(token) is False

    @pytest.mark.parametrize("token", [None, "", "maybe", "2"])
    def test_flag_unknown(self, token):
        assert parse_flag(token) is None

    def test_epoch_parsing(self):
        assert parse_epoch(1383350400) == 1383350400
        assert parse_epoch("1383350400") == 1383350400
        assert parse_epoch("1383350400.0") == 1383350400
        assert parse_epoch("1383350400.5") is None
        assert parse_epoch("soon") is None
        assert parse_epoch(None) is None

    @pytest.mark.parametrize("value", [
        2 ** 63,
        -(2 ** 63) - 1,
        "99999999999999999999",
        "-99999999999999999999",
        "1e20",
    ])
    def test_epoch_outside_bigint_is_none(self, value):
        assert parse_epoch(value) is None

    def test_epoch_bigint_bounds_kept(self):
        assert parse_epoch(2 ** 63 - 1) == 2 ** 63 - 1
        assert parse_epoch(str(-(2 ** 63))) == -(2 ** 63)

    @pytest.mark.parametrize("text,expected", [
        ("Nov 2, 2013", date(2013, 11, 2)),
        ("11 2, 2013", date(2013, 11, 2)),
        ("2013-11-02", date(2013, 11, 2)),
        ("02-Nov-2013", date(2013, 11, 2)),
    ])
    def test_event_date_formats(self, text, expected):
        assert parse_event_date(text, None, DEFAULT_DATE_FORMATS) == expected

    def test_event_date_falls_back_to_epoch(self):
        assert parse_event_date("not a date", 1383350400, DEFAULT_DATE_FORMATS) == date(2013, 11, 2)
        assert parse_event_date(None, 0, DEFAULT_DATE_FORMATS) == date(1970, 1, 1)

    def test_event_date_unresolvable(self):
        assert parse_event_date("not a date", None, DEFAULT_DATE_FORMATS) is None
        assert parse_event_date(None, 10**18, DEFAULT_DATE_FORMATS) is None

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  Great \n\t product  ") == "Great product"
        assert clean_text(" \n ") is None
        assert clean_text(None) is None

    @pytest.mark.parametrize("value,expected", [
        ("great\x00product", "greatproduct"),
        ("\x00 Great  product \x00", "Great product"),
        ("\x00", None),
    ])
    def test_clean_text_drops_nul(self, value, expected):
        assert clean_text(value) == expected

    def test_entity_ref_drops_nul(self):
        assert parse_entity_ref("b000\x00fa64pk") == "B000FA64PK"
        assert parse_entity_ref("\x00") is None


@pytest.mark.unit
class TestNormalizer:
    """Tests for Normalizer"""

    def test_normalizes_complete_record(self, make_review):
        record = Normalizer().normalize(make_review(asin=" b000fa64pk ", overall="5"))

        assert record.entity_ref == "B000FA64PK"
        assert record.measured_value == 5.0
        assert record.flag is True
        assert record.event_date == date(2013, 11, 2)
        assert record.event_year == "2013"
        assert record.epoch_timestamp == 1383350400
        assert record.source_ref == "B000FA64PK::1383350400"
        assert record.actor_id == "A1REVIEWER"

    def test_source_ref_uses_date_text_without_epoch(self, make_review):
        record = Normalizer().normalize(make_review(unixReviewTime=None))

        assert record.source_ref == "B000FA64PK::11 2, 2013"
        assert record.epoch_timestamp is None

    def test_event_date_from_epoch_when_text_missing(self, make_review):
        record = Normalizer().normalize(make_review(reviewTime=None))
        assert record.event_date == date(2013, 11, 2)

    def test_out_of_range_epoch_dropped_record_kept(self, make_review):
        record = Normalizer().normalize(make_review(unixReviewTime="99999999999999999999"))

        assert record.epoch_timestamp is None
        assert record.event_date == date(2013, 11, 2)
        assert record.source_ref == "B000FA64PK::11 2, 2013"

    def test_out_of_range_epoch_without_date_text_rejected(self, make_review):
        with pytest.raises(MalformedRecordError) as exc_info:
            Normalizer().normalize(make_review(reviewTime=None, unixReviewTime=2 ** 64))

        assert exc_info.value.field_name == "event_date"

    def test_nul_characters_removed_from_text_fields(self, make_review):
        record = Normalizer().normalize(
            make_review(reviewText="great\x00product", summary="\x00", reviewerName="Jo\x00", reviewerID="A1\x00")
        )

        assert record.free_text_1 == "greatproduct"
        assert record.free_text_2 is None
        assert record.actor_label == "Jo"
        assert record.actor_id == "A1"

    def test_optional_fields_absent(self, make_review):
        raw = {"asin": "B1", "overall": 3, "unixReviewTime": 0}
        record = Normalizer().normalize(raw)

        assert record.actor_id is None
        assert record.flag is None
        assert record.free_text_1 is None
        assert record.event_date == date(1970, 1, 1)

    @pytest.mark.parametrize("overrides,field_name", [
        ({"asin": "  "}, "entity_ref"),
        ({"overall": "five"}, "measured_value"),
        ({"overall": None}, "measured_value"),
        ({"reviewTime": "someday", "unixReviewTime": None}, "event_date"),
    ])
    def test_malformed_record_raises(self, make_review, overrides, field_name):
        with pytest.raises(MalformedRecordError) as exc_info:
            Normalizer().normalize(make_review(**overrides))

        assert exc_info.value.field_name == field_name
        assert "malformed_input" in str(exc_info.value)

    def test_custom_field_map_and_bounds(self):
        config = PipelineConfig(
            field_map={"entity_ref": "product", "measured_value": "stars", "epoch_timestamp": "ts"},
            value_min=1.0,
            value_max=10.0,
        )
        record = Normalizer(config).normalize({"product": "p1", "stars": "12", "ts": "86400"})

        assert record.entity_ref == "P1"
        assert record.measured_value == 10.0
        assert record.event_date == date(1970, 1, 2)

    def test_try_normalize_returns_rejection(self, make_review):
        raw = make_review(asin=None)
        outcome = Normalizer().try_normalize(raw)

        assert isinstance(outcome, RejectedRecord)
        assert outcome.field_name == "entity_ref"
        assert outcome.raw_payload == raw

    def test_normalize_batch_separates_rejected(self, make_review):
        raws = [
            make_review(reviewer="A1"),
            make_review(overall="bad"),
            make_review(reviewer="A2"),
        ]
        records, rejected = Normalizer().normalize_batch(raws)

        assert len(records) == 2
        assert all(isinstance(r, CanonicalRecord) for r in records)
        assert [r.field_name for r in rejected] == ["measured_value"]
