import json
from pathlib import Path

import pytest

from filter_builder import build_property_filter
from memory_store import InMemoryListingStore, matches

FIXTURES = Path(__file__).parent / "fixtures"


def _load_fixture(name: str):
    with open(FIXTURES / name, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture()
def store():
    return InMemoryListingStore(_load_fixture("properties.json"))


def _ids(results):
    return [doc["id"] for doc in results]


class TestMatches:
    def test_missing_field_fails_comparison(self):
        assert not matches({}, {"bedrooms": {"$gte": 1}})

    def test_exists(self):
        assert matches({}, {"price": {"$exists": False}})
        assert not matches({"price": 10}, {"price": {"$exists": False}})
        assert matches({"price": 10}, {"price": {"$exists": True}})

    def test_equality_does_not_match_missing_field(self):
        assert not matches({}, {"price": 0})

    def test_numbers_and_strings_do_not_compare(self):
        assert not matches({"bedrooms": "3"}, {"bedrooms": {"$gte": 1}})

    def test_unsupported_operator(self):
        with pytest.raises(ValueError):
            matches({"price": 1}, {"price": {"$mod": [2, 0]}})


def test_empty_filter_returns_everything_up_to_limit(store):
    assert _ids(store.find_properties({}, 50)) == [1, 2, 3, 4, 5]
    assert _ids(store.find_properties({}, 2)) == [1, 2]


def test_budget_search_keeps_unpriced_listings(store):
    results = store.find_properties(build_property_filter({"budget": "400000"}), 50)
    assert _ids(results) == [2, 3, 4]


def test_location_and_bedrooms(store):
    results = store.find_properties(build_property_filter({"location": "austin", "bedrooms": "3"}), 50)
    assert _ids(results) == [1, 5]


def test_amenities_and_size(store):
    query_filter = build_property_filter({"amenities": "gym, sauna", "minSize": "500", "maxSize": "2000"})
    assert _ids(store.find_properties(query_filter, 50)) == [2]


def test_results_are_copies(store):
    result = store.find_properties({}, 1)[0]
    result["title"] = "changed"
    assert store.get_property(1)["title"] == "Modern family home"


def test_get_property(store):
    assert store.get_property(3)["title"] == "Lakeside cottage"
    assert store.get_property(99) is None

    object_id = store.get_property(3)["_id"]
    assert store.get_property_by_object_id(object_id)["id"] == 3
    assert store.get_property_by_object_id("missing") is None


def test_upsert_assigns_ids_and_updates(store):
    assert store.upsert_properties([{"title": "New build"}, {"id": 2, "price": 300000}]) == 2
    assert store.get_property(6)["title"] == "New build"
    assert store.get_property(2)["price"] == 300000
    assert store.get_property(2)["title"] == "Downtown loft"


class TestPreferences:
    def test_missing_user(self, store):
        assert store.get_preferences("nobody") is None
        assert store.remove_saved_property("nobody", "x") is None

    def test_create_then_merge(self, store):
        store.save_preferences("u1", preferences={"location": "Austin"}, search_history={"bedrooms": "2"})
        record = store.save_preferences("u1", preferences={"budget": "500000"}, search_history={"budget": "500000"})

        assert record["preferences"] == {"location": "Austin", "budget": "500000"}
        assert record["searchHistory"] == [{"bedrooms": "2"}, {"budget": "500000"}]
        assert record["savedProperties"] == []

    def test_saved_properties_replace(self, store):
        first = store.get_property(1)["_id"]
        second = store.get_property(2)["_id"]
        store.save_preferences("u1", saved_properties=[first])
        record = store.save_preferences("u1", saved_properties=[second])
        assert record["savedProperties"] == [second]

    def test_add_saved_property_is_deduplicated(self, store):
        object_id = store.get_property(1)["_id"]
        store.add_saved_property("u1", object_id)
        record = store.add_saved_property("u1", object_id)
        assert record["savedProperties"] == [object_id]

    def test_get_preferences_populates_saved_properties(self, store):
        object_id = store.get_property(5)["_id"]
        store.add_saved_property("u1", object_id)
        record = store.get_preferences("u1")
        assert record["savedProperties"][0]["title"] == "Hill country estate"

    def test_remove_saved_property(self, store):
        object_id = store.get_property(1)["_id"]
        store.add_saved_property("u1", object_id)
        record = store.remove_saved_property("u1", object_id)
        assert record["savedProperties"] == []
