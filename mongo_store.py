# mongo_store.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import MongoClient, ReturnDocument

from config import MONGO_DB_NAME, MONGO_URI, PREFERENCES_COLLECTION, PROPERTIES_COLLECTION

logger = logging.getLogger(__name__)


def serialize_document(value: Any) -> Any:
    """Converts ObjectIds (at any depth) to strings so documents can be returned as JSON."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, list):
        return [serialize_document(item) for item in value]
    return value


def to_object_id(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


class MongoListingStore:
    """
    Listings and user preferences kept in MongoDB.

    Collections:
        properties       - listing documents, public integer id in "id"
        userpreferences  - one document per userId
    """

    def __init__(self, client: Optional[MongoClient] = None, db_name: str = MONGO_DB_NAME):
        self.client = client or MongoClient(MONGO_URI)
        self.db = self.client[db_name]
        self.properties = self.db[PROPERTIES_COLLECTION]
        self.preferences = self.db[PREFERENCES_COLLECTION]

    # Properties ----------------------------------------------------------
    def find_properties(self, query_filter: Dict, limit: int) -> List[Dict]:
        cursor = self.properties.find(query_filter).limit(limit)
        return [serialize_document(doc) for doc in cursor]

    def get_property(self, property_id: int) -> Optional[Dict]:
        doc = self.properties.find_one({"id": property_id})
        return serialize_document(doc) if doc else None

    def get_property_by_object_id(self, object_id: str) -> Optional[Dict]:
        doc = self.properties.find_one({"_id": to_object_id(object_id)})
        return serialize_document(doc) if doc else None

    def upsert_properties(self, documents: Iterable[Dict]) -> int:
        """
        Inserts or updates listings keyed on their public id.

        Documents without an id get the next free one.

        Returns:
            int: Number of documents written
        """
        last = self.properties.find_one({}, sort=[("id", -1)], projection={"id": 1})
        next_id = (last or {}).get("id", 0) + 1

        count = 0
        for document in documents:
            doc = dict(document)
            doc.pop("_id", None)
            if doc.get("id") is None:
                doc["id"] = next_id
            next_id = max(next_id, doc["id"] + 1)

            result = self.properties.update_one({"id": doc["id"]}, {"$set": doc}, upsert=True)
            if result.upserted_id or result.modified_count > 0:
                count += 1
        return count

    def clear_properties(self) -> None:
        result = self.properties.delete_many({})
        logger.info(f"Deleted {result.deleted_count} properties")

    # Preferences ---------------------------------------------------------
    def get_preferences(self, user_id: str) -> Optional[Dict]:
        record = self.preferences.find_one({"userId": user_id})
        if not record:
            return None

        saved_ids = record.get("savedProperties", [])
        saved = {doc["_id"]: doc for doc in self.properties.find({"_id": {"$in": saved_ids}})}
        record["savedProperties"] = [saved[pid] for pid in saved_ids if pid in saved]
        return serialize_document(record)

    def save_preferences(
        self,
        user_id: str,
        saved_properties: Optional[List[str]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        search_history: Optional[Dict[str, Any]] = None,
    ) -> Dict:
        now = datetime.now(timezone.utc)
        record = self.preferences.find_one({"userId": user_id})

        if record:
            fields: Dict[str, Any] = {"updatedAt": now}
            if saved_properties is not None:
                fields["savedProperties"] = [to_object_id(pid) for pid in saved_properties]
            if preferences is not None:
                fields["preferences"] = {**record.get("preferences", {}), **preferences}
            update: Dict[str, Any] = {"$set": fields}
            if search_history:
                update["$push"] = {"searchHistory": search_history}
            record = self.preferences.find_one_and_update(
                {"_id": record["_id"]}, update, return_document=ReturnDocument.AFTER
            )
        else:
            record = {
                "userId": user_id,
                "savedProperties": [to_object_id(pid) for pid in saved_properties or []],
                "preferences": preferences or {},
                "searchHistory": [search_history] if search_history else [],
                "createdAt": now,
                "updatedAt": now,
            }
            record["_id"] = self.preferences.insert_one(record).inserted_id

        return serialize_document(record)

    def add_saved_property(self, user_id: str, property_id: str) -> Dict:
        now = datetime.now(timezone.utc)
        # $addToSet leaves the list alone when the property is already saved
        record = self.preferences.find_one_and_update(
            {"userId": user_id},
            {
                "$addToSet": {"savedProperties": to_object_id(property_id)},
                "$set": {"updatedAt": now},
                "$setOnInsert": {"preferences": {}, "searchHistory": [], "createdAt": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(record)

    def remove_saved_property(self, user_id: str, property_id: str) -> Optional[Dict]:
        record = self.preferences.find_one_and_update(
            {"userId": user_id},
            {
                "$pull": {"savedProperties": to_object_id(property_id)},
                "$set": {"updatedAt": datetime.now(timezone.utc)},
            },
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(record) if record else None
