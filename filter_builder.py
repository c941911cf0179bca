# filter_builder.py
import re
from typing import Any, Mapping, Optional

NUMERIC_FIELDS = ("budget", "bedrooms", "bathrooms", "minSize", "maxSize")

# Leading optionally-signed integer, the way a browser's parseInt reads "3.5" or "12abc"
_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)", re.ASCII)

# Largest integer a BSON query can carry
MAX_INT64 = 2**63 - 1


def parse_int(value: Any) -> Optional[int]:
    """Returns the integer a query value starts with, or None if there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def parse_positive_int(value: Any) -> Optional[int]:
    number = parse_int(value)
    if number is None or number <= 0 or number > MAX_INT64:
        return None
    return number


def parse_location(value: Any) -> Optional[str]:
    if not isinstance(value, str) or value == "" or value == "any":
        return None
    return value


def parse_amenities(value: Any) -> list:
    """
    Splits a comma-separated amenity string into trimmed, non-empty names.

    A list of strings (as returned by the LLM extractor) is accepted too,
    each element being split the same way.
    """
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [p for item in value if isinstance(item, str) for p in item.split(",")]
    else:
        return []
    return [p.strip() for p in parts if p.strip()]


def build_property_filter(query: Mapping[str, Any]) -> dict:
    """
    Builds a MongoDB filter from search query parameters.

    Every field is optional. Missing, empty, non-numeric or non-positive
    values are ignored, so an unusable parameter behaves exactly as if it
    had not been sent. Nothing here raises.

    Args:
        query (Mapping): Raw query parameters (budget, location, bedrooms,
            bathrooms, minSize, maxSize, amenities)

    Returns:
        dict: Filter for Collection.find; empty when no usable criteria
    """
    if not isinstance(query, Mapping):
        return {}

    query_filter: dict = {}

    bedrooms = parse_positive_int(query.get("bedrooms"))
    if bedrooms is not None:
        query_filter["bedrooms"] = {"$gte": bedrooms}

    bathrooms = parse_positive_int(query.get("bathrooms"))
    if bathrooms is not None:
        query_filter["bathrooms"] = {"$gte": bathrooms}

    # Matched literally, anywhere in the field, ignoring case
    location = parse_location(query.get("location"))
    if location is not None:
        query_filter["location"] = {"$regex": re.escape(location), "$options": "i"}

    # Many listings have no price (or the default 0); they must stay visible
    budget = parse_positive_int(query.get("budget"))
    if budget is not None:
        query_filter["$or"] = [
            {"price": {"$lte": budget}},
            {"price": {"$exists": False}},
            {"price": 0},
        ]

    # Both bounds share one range object on size_sqft
    min_size = parse_positive_int(query.get("minSize"))
    if min_size is not None:
        query_filter.setdefault("size_sqft", {})["$gte"] = min_size

    max_size = parse_positive_int(query.get("maxSize"))
    if max_size is not None:
        query_filter.setdefault("size_sqft", {})["$lte"] = max_size

    amenity_list = parse_amenities(query.get("amenities"))
    if amenity_list:
        query_filter["amenities"] = {"$in": amenity_list}

    return query_filter


def validate_property_query(query: Mapping[str, Any]) -> Optional[str]:
    """Returns an error message for the first numeric field that is not a number, else None."""
    for key in NUMERIC_FIELDS:
        value = query.get(key)
        if value is None or value == "":
            continue
        if parse_int(value) is None:
            return f"{key} must be a valid number"
    return None
