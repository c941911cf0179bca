from __future__ import annotations

import copy
import re
import uuid
from datetime import datetime, timezone
from numbers import Number
from typing import Any, Dict, Iterable, List, Optional


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _candidates(value: Any) -> List[Any]:
    # Array fields match when any element does, as in MongoDB
    if isinstance(value, list):
        return value
    return [value]


def _compare(op: str, value: Any, operand: Any) -> bool:
    for item in _candidates(value):
        comparable = (_is_number(item) and _is_number(operand)) or (
            isinstance(item, str) and isinstance(operand, str)
        )
        if not comparable:
            continue
        if op == "$gte" and item >= operand:
            return True
        if op == "$lte" and item <= operand:
            return True
        if op == "$gt" and item > operand:
            return True
        if op == "$lt" and item < operand:
            return True
    return False


def _equals(value: Any, operand: Any) -> bool:
    if isinstance(operand, list):
        return value == operand
    return any(item == operand for item in _candidates(value))


def _apply_operator(op: str, operand: Any, value: Any, present: bool, condition: Dict[str, Any]) -> bool:
    if op == "$exists":
        return present == bool(operand)
    if op == "$eq":
        return present and _equals(value, operand)
    if op == "$ne":
        return not (present and _equals(value, operand))
    if op in ("$gte", "$lte", "$gt", "$lt"):
        return present and _compare(op, value, operand)
    if op == "$in":
        if not present:
            return None in operand
        return any(item in operand for item in _candidates(value))
    if op == "$regex":
        flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
        pattern = re.compile(operand, flags)
        return present and any(isinstance(item, str) and pattern.search(item) for item in _candidates(value))
    if op == "$options":
        return True
    raise ValueError(f"Unsupported query operator: {op}")


def _match_field(document: Dict[str, Any], field: str, condition: Any) -> bool:
    present = field in document
    value = document.get(field)
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        return all(_apply_operator(op, operand, value, present, condition) for op, operand in condition.items())
    if condition is None:
        return value is None
    return present and _equals(value, condition)


def matches(document: Dict[str, Any], query_filter: Dict[str, Any]) -> bool:
    """Evaluates a MongoDB-style filter against a single document."""
    for key, condition in query_filter.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif not _match_field(document, key, condition):
            return False
    return True


class InMemoryListingStore:
    """Demo-mode store used when MongoDB is unavailable."""

    def __init__(self, properties: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self.properties: List[Dict[str, Any]] = []
        self.preferences: Dict[str, Dict[str, Any]] = {}
        if properties:
            self.upsert_properties(properties)

    # Property methods -----------------------------------------------------
    def find_properties(self, query_filter: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        results = []
        for doc in self.properties:
            if len(results) >= limit:
                break
            if matches(doc, query_filter):
                results.append(copy.deepcopy(doc))
        return results

    def get_property(self, property_id: int) -> Optional[Dict[str, Any]]:
        for doc in self.properties:
            if doc.get("id") == property_id:
                return copy.deepcopy(doc)
        return None

    def get_property_by_object_id(self, object_id: str) -> Optional[Dict[str, Any]]:
        for doc in self.properties:
            if doc["_id"] == object_id:
                return copy.deepcopy(doc)
        return None

    def upsert_properties(self, documents: Iterable[Dict[str, Any]]) -> int:
        count = 0
        next_id = max((doc.get("id", 0) for doc in self.properties), default=0) + 1
        for document in documents:
            doc = copy.deepcopy(document)
            if doc.get("id") is None:
                doc["id"] = next_id
            next_id = max(next_id, doc["id"] + 1)
            existing = next((p for p in self.properties if p.get("id") == doc["id"]), None)
            if existing:
                existing.update(doc)
            else:
                doc.setdefault("_id", uuid.uuid4().hex[:24])
                self.properties.append(doc)
            count += 1
        return count

    def clear_properties(self) -> None:
        self.properties = []

    # Preference methods ---------------------------------------------------
    def _populated(self, record: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(record)
        saved = []
        for property_id in record["savedProperties"]:
            doc = self.get_property_by_object_id(property_id)
            if doc:
                saved.append(doc)
        result["savedProperties"] = saved
        return result

    def _create_preferences(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        now = _now_iso()
        record = {
            "_id": uuid.uuid4().hex[:24],
            "userId": user_id,
            "savedProperties": fields.get("savedProperties") or [],
            "preferences": fields.get("preferences") or {},
            "searchHistory": fields.get("searchHistory") or [],
            "createdAt": now,
            "updatedAt": now,
        }
        self.preferences[user_id] = record
        return record

    def get_preferences(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self.preferences.get(user_id)
        if not record:
            return None
        return self._populated(record)

    def save_preferences(
        self,
        user_id: str,
        saved_properties: Optional[List[str]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        search_history: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        record = self.preferences.get(user_id)
        if record:
            if saved_properties is not None:
                record["savedProperties"] = list(saved_properties)
            if preferences is not None:
                record["preferences"] = {**record["preferences"], **preferences}
            if search_history:
                record["searchHistory"].append(search_history)
            record["updatedAt"] = _now_iso()
        else:
            record = self._create_preferences(
                user_id,
                savedProperties=list(saved_properties or []),
                preferences=preferences,
                searchHistory=[search_history] if search_history else [],
            )
        return copy.deepcopy(record)

    def add_saved_property(self, user_id: str, property_id: str) -> Dict[str, Any]:
        record = self.preferences.get(user_id)
        if not record:
            record = self._create_preferences(user_id, savedProperties=[property_id])
        elif property_id not in record["savedProperties"]:
            record["savedProperties"].append(property_id)
            record["updatedAt"] = _now_iso()
        return copy.deepcopy(record)

    def remove_saved_property(self, user_id: str, property_id: str) -> Optional[Dict[str, Any]]:
        record = self.preferences.get(user_id)
        if not record:
            return None
        record["savedProperties"] = [pid for pid in record["savedProperties"] if str(pid) != property_id]
        record["updatedAt"] = _now_iso()
        return copy.deepcopy(record)
