"""
Tests for Module 02 — City Record Validator.
"""
import math
from unittest.mock import patch

import pytest

from pipeline.ingestion.validator import (
    NormalizedCity,
    Rejected,
    classify,
    city_name_rejection,
    filter_valid_cities,
    is_valid_city_name,
    is_valid_country,
    is_valid_pollution_value,
    match_rejection_pattern,
    parse_pollution,
)


def _record(**kwargs):
    base = {"name": "Berlin", "country": "Germany", "pollution": 51.3}
    base.update(kwargs)
    return base


class TestRejectionPatterns:
    @pytest.mark.parametrize("value,expected", [
        ("12345", "all_digits"),
        ("---", "no_letters"),
        ("Test", "placeholder_token"),
        ("NULL", "placeholder_token"),
        ("n/a", "placeholder_token"),
        ("Bavaria Region", "administrative_suffix"),
        ("Tristate", "administrative_suffix"),
        ("Berlin", None),
    ])
    def test_first_matching_pattern_is_reported(self, value, expected):
        assert match_rejection_pattern(value) == expected


class TestCityName:
    @pytest.mark.parametrize("name", ["12345", "0", "!!!", "()", "...", "<>{}"])
    def test_numeric_and_punctuation_names_rejected(self, name):
        assert is_valid_city_name(name) is False

    @pytest.mark.parametrize("name", ["test", "SAMPLE", "Dummy", "fake", "N/A", "null", "Undefined"])
    def test_placeholder_tokens_rejected(self, name):
        assert is_valid_city_name(name) is False

    @pytest.mark.parametrize("name", ["Mazovia province", "Texas State", "Orange County", "Central District"])
    def test_administrative_divisions_rejected(self, name):
        assert is_valid_city_name(name) is False

    @pytest.mark.parametrize("name", ["Airport", "Riverside", "Seaside", "Zone", "Lakeshore"])
    def test_single_suspicious_token_rejected(self, name):
        assert city_name_rejection(name) == "suspicious_word"

    @pytest.mark.parametrize("name", ["Port Louis", "Salt Lake City", "Sea Point", "Mountain View"])
    def test_multi_word_suspicious_name_allowed(self, name):
        assert is_valid_city_name(name) is True

    @pytest.mark.parametrize("name", ["Berlin", "  Paris  ", "Kraków", "Saint-Étienne", "Ho Chi Minh City"])
    def test_real_city_names_accepted(self, name):
        assert is_valid_city_name(name) is True

    def test_mostly_digits_rejected(self):
        assert city_name_rejection("A1234") == "mostly_digits"

    def test_equal_letters_and_digits_accepted(self):
        assert is_valid_city_name("AB12") is True

    def test_length_bounds(self):
        assert is_valid_city_name("A" * 100) is True
        assert city_name_rejection("A" * 101) == "name_length"
        assert city_name_rejection("   ") == "name_length"

    def test_non_string_rejected(self):
        assert city_name_rejection(123) == "name_not_string"
        assert city_name_rejection(["Berlin"]) == "name_not_string"


class TestCountry:
    @pytest.mark.parametrize("country", ["DE", "US", "PL", "Germany", "United Kingdom", "  France "])
    def test_valid_countries(self, country):
        assert is_valid_country(country) is True

    @pytest.mark.parametrize("country", ["XX", "ZZ", "D", "", "12", "null", 42, None])
    def test_invalid_countries(self, country):
        assert is_valid_country(country) is False

    def test_lowercase_two_letter_is_treated_as_name(self):
        # Not an uppercase code, so only needs a letter
        assert is_valid_country("xx") is True


class TestPollution:
    @pytest.mark.parametrize("value", [0, 0.0, 1000, 1000.0, "0", "1000", "51.3", " 12.5 ", 999.99, "1e3"])
    def test_in_range_values_accepted(self, value):
        assert is_valid_pollution_value(value) is True

    @pytest.mark.parametrize("value", [-0.1, 1000.1, "-0.1", "1000.1", "abc", "", float("nan"),
                                       float("inf"), "Infinity", True, None, [1], {"v": 1}])
    def test_out_of_range_or_non_numeric_rejected(self, value):
        assert is_valid_pollution_value(value) is False

    def test_parse_string(self):
        assert parse_pollution("51.3") == 51.3

    def test_parse_nan_returns_none(self):
        assert parse_pollution("nan") is None
        assert parse_pollution(math.nan) is None


class TestClassify:
    def test_valid_record_normalized(self):
        result = classify({"name": "  Berlin ", "country": " Germany ", "pollution": "51.3"})
        assert result == NormalizedCity(name="Berlin", country="Germany", pollution=51.3)

    def test_normalized_city_is_immutable(self):
        city = classify(_record())
        with pytest.raises(AttributeError):
            city.name = "Paris"

    @pytest.mark.parametrize("record,reason", [
        (None, "not_a_record"),
        ("Berlin", "not_a_record"),
        (["Berlin", "DE", 5], "not_a_record"),
        ({"country": "DE", "pollution": 5}, "missing_name"),
        ({"name": "", "country": "DE", "pollution": 5}, "missing_name"),
        ({"name": "Berlin", "country": "DE"}, "missing_pollution"),
        ({"name": "Berlin", "country": "DE", "pollution": None}, "missing_pollution"),
        ({"name": "12345", "country": "XX", "pollution": 10}, "all_digits"),
        ({"name": "Berlin", "country": "DE", "pollution": 1000.1}, "pollution_out_of_range"),
    ])
    def test_rejections(self, record, reason):
        result = classify(record)
        assert isinstance(result, Rejected)
        assert result.reason == reason

    def test_zero_pollution_is_present(self):
        assert classify(_record(pollution=0)) == NormalizedCity("Berlin", "Germany", 0.0)

    def test_country_is_advisory_by_default(self):
        result = classify(_record(country="XX"))
        assert isinstance(result, NormalizedCity)
        assert result.country == "XX"

    def test_country_enforced_when_requested(self):
        result = classify(_record(country="XX"), enforce_country=True)
        assert result == Rejected("invalid_country")
        assert isinstance(classify(_record(country="DE"), enforce_country=True), NormalizedCity)

    def test_enforcement_follows_module_setting(self):
        with patch("pipeline.ingestion.validator.ENFORCE_COUNTRY_VALIDATION", True):
            assert classify(_record(country="XX")) == Rejected("invalid_country")
            assert isinstance(classify(_record(country="XX"), enforce_country=False), NormalizedCity)

    def test_missing_country_normalizes_to_empty(self):
        result = classify({"name": "Berlin", "pollution": 5})
        assert result.country == ""


class TestFilterValidCities:
    def test_end_to_end_example(self):
        raw = [
            {"name": "Berlin", "country": "Germany", "pollution": "51.3"},
            {"name": "12345", "country": "XX", "pollution": 10},
            {"name": "Test", "country": "US", "pollution": 5},
        ]
        assert filter_valid_cities(raw) == [NormalizedCity(name="Berlin", country="Germany", pollution=51.3)]

    def test_preserves_input_order(self):
        raw = [
            _record(name="Warsaw", pollution=10),
            _record(name="Test", pollution=20),
            _record(name="Paris", pollution=90),
            None,
            _record(name="Madrid", pollution=50),
        ]
        names = [c.name for c in filter_valid_cities(raw)]
        assert names == ["Warsaw", "Paris", "Madrid"]

    def test_non_list_input_returns_empty(self):
        assert filter_valid_cities({"results": []}) == []
        assert filter_valid_cities(None) == []

    def test_empty_list(self):
        assert filter_valid_cities([]) == []

    def test_summary_is_logged(self, caplog):
        with caplog.at_level("INFO", logger="pipeline.ingestion.validator"):
            filter_valid_cities([_record(), _record(name="fake")])
        assert "Filtered out 1 invalid entries, kept 1 valid cities" in caplog.text
