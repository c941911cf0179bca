import bson
import pytest

from filter_builder import build_property_filter, parse_int, validate_property_query
from memory_store import matches


@pytest.mark.parametrize(
    "query",
    [
        {},
        {"budget": "", "location": "", "bedrooms": "", "bathrooms": "", "minSize": "", "maxSize": "", "amenities": ""},
        {"budget": "abc", "bedrooms": "-2", "bathrooms": "0", "minSize": "x", "maxSize": "-1"},
        {"location": "any", "amenities": " , ,"},
        {"bedrooms": None, "amenities": None},
    ],
)
def test_unusable_criteria_produce_empty_filter(query):
    assert build_property_filter(query) == {}


def test_non_mapping_input_produces_empty_filter():
    assert build_property_filter(None) == {}
    assert build_property_filter(["bedrooms", "3"]) == {}


def test_bedrooms_and_bathrooms_are_minimums():
    query_filter = build_property_filter({"bedrooms": "3", "bathrooms": "2"})
    assert query_filter == {"bedrooms": {"$gte": 3}, "bathrooms": {"$gte": 2}}


@pytest.mark.parametrize("value", ["0", "-1", "abc", "", "  ", "\u0663", "\uff13"])
def test_invalid_bedrooms_add_no_clause(value):
    assert "bedrooms" not in build_property_filter({"bedrooms": value})


def test_non_numeric_bedrooms_is_same_as_omitted():
    base = {"location": "Austin", "budget": "500000"}
    assert build_property_filter({**base, "bedrooms": "abc"}) == build_property_filter(base)


def test_leading_integer_is_used():
    assert parse_int("3.5") == 3
    assert parse_int(" 12abc") == 12
    assert parse_int(4) == 4
    assert parse_int(True) is None
    assert parse_int("abc") is None
    assert build_property_filter({"bedrooms": "2.7"}) == {"bedrooms": {"$gte": 2}}


def test_budget_keeps_unpriced_listings():
    query_filter = build_property_filter({"budget": "400000"})
    assert query_filter == {
        "$or": [
            {"price": {"$lte": 400000}},
            {"price": {"$exists": False}},
            {"price": 0},
        ]
    }


def test_budget_matching():
    query_filter = build_property_filter({"budget": "1000"})
    assert matches({"price": 1000}, query_filter)
    assert matches({"price": 999}, query_filter)
    assert matches({"price": 0}, query_filter)
    assert matches({"title": "no price"}, query_filter)
    assert not matches({"price": 1001}, query_filter)


def test_size_bounds_share_one_clause():
    query_filter = build_property_filter({"minSize": "500", "maxSize": "1000"})
    assert query_filter == {"size_sqft": {"$gte": 500, "$lte": 1000}}
    assert matches({"size_sqft": 750}, query_filter)
    assert not matches({"size_sqft": 400}, query_filter)
    assert not matches({"size_sqft": 1200}, query_filter)


def test_single_size_bound():
    assert build_property_filter({"maxSize": "900"}) == {"size_sqft": {"$lte": 900}}
    assert build_property_filter({"minSize": "900", "maxSize": "0"}) == {"size_sqft": {"$gte": 900}}


def test_location_is_case_insensitive_substring():
    query_filter = build_property_filter({"location": "Austin"})
    assert query_filter == {"location": {"$regex": "Austin", "$options": "i"}}
    assert matches({"location": "austin, tx"}, query_filter)
    assert matches({"location": "North Austin"}, query_filter)
    assert not matches({"location": "Dallas, TX"}, query_filter)


def test_location_metacharacters_match_literally():
    query_filter = build_property_filter({"location": "St. Louis (MO)"})
    assert matches({"location": "Downtown St. Louis (MO)"}, query_filter)
    assert not matches({"location": "Stx Louis MO"}, query_filter)


def test_amenities_match_any():
    query_filter = build_property_filter({"amenities": "pool, gym"})
    assert query_filter == {"amenities": {"$in": ["pool", "gym"]}}
    assert matches({"amenities": ["gym"]}, query_filter)
    assert not matches({"amenities": ["sauna", "garden"]}, query_filter)


def test_amenities_drop_empty_tokens():
    assert build_property_filter({"amenities": " pool ,, , "}) == {"amenities": {"$in": ["pool"]}}


def test_all_fields_combined():
    query = {
        "budget": "500000",
        "location": "Austin",
        "bedrooms": "2",
        "bathrooms": "1",
        "minSize": "700",
        "maxSize": "2000",
        "amenities": "pool,gym",
    }
    query_filter = build_property_filter(query)
    assert set(query_filter) == {"$or", "location", "bedrooms", "bathrooms", "size_sqft", "amenities"}
    assert matches(
        {"price": 450000, "location": "Austin, TX", "bedrooms": 3, "bathrooms": 2, "size_sqft": 1800, "amenities": ["pool"]},
        query_filter,
    )
    assert not matches(
        {"price": 450000, "location": "Austin, TX", "bedrooms": 1, "bathrooms": 2, "size_sqft": 1800, "amenities": ["pool"]},
        query_filter,
    )


def test_building_twice_gives_equal_filters():
    query = {"budget": "300000", "minSize": "500", "amenities": "pool"}
    first = build_property_filter(query)
    second = build_property_filter(query)
    assert first == second
    assert first is not second
    assert first["size_sqft"] is not second["size_sqft"]


class TestValidatePropertyQuery:
    def test_accepts_numbers_and_blanks(self):
        assert validate_property_query({"bedrooms": "3", "budget": "", "minSize": "2.5"}) is None
        assert validate_property_query({}) is None

    def test_rejects_non_numeric(self):
        assert validate_property_query({"bedrooms": "abc"}) == "bedrooms must be a valid number"
        assert validate_property_query({"maxSize": "big"}) == "maxSize must be a valid number"
        assert validate_property_query({"bedrooms": "\u0663"}) == "bedrooms must be a valid number"

    def test_ignores_non_numeric_fields(self):
        assert validate_property_query({"location": "Austin", "amenities": "pool"}) is None


def test_numbers_beyond_64_bits_are_ignored():
    query_filter = build_property_filter({"budget": "9" * 20, "bedrooms": "2"})
    assert query_filter == {"bedrooms": {"$gte": 2}}
    bson.encode(query_filter)


def test_largest_64_bit_budget_is_kept():
    query_filter = build_property_filter({"budget": str(2**63 - 1)})
    assert query_filter["$or"][0] == {"price": {"$lte": 2**63 - 1}}
    bson.encode(query_filter)
