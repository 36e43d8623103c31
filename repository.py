"""
Collection access for products and users.

ProductRepository is the only path to product documents: CRUD, reviews,
exports and image uploads all go through it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from schemas import User

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a client supplied id; malformed ids are treated as unknown."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(value: Any) -> Any:
    """Make a document JSON friendly (ObjectId -> str, recursively)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


class ProductRepository:
    def __init__(self, db: Database):
        self.collection = db["product"]

    # Queries

    def count(self, criteria: Dict[str, Any]) -> int:
        return self.collection.count_documents(criteria)

    def find(
        self,
        criteria: Dict[str, Any],
        projection: Optional[Dict[str, int]] = None,
        sort: Optional[List[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[dict]:
        cursor = self.collection.find(criteria, projection or None)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_all(self) -> List[dict]:
        return list(self.collection.find({}))

    def get(self, product_id: str) -> Optional[dict]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    # Mutations

    def insert(self, doc: Dict[str, Any]) -> ObjectId:
        now = _now()
        doc = {**doc, "reviews": [], "created_at": now, "updated_at": now}
        res = self.collection.insert_one(doc)
        return res.inserted_id

    def update(self, product_id: str, fields: Dict[str, Any]) -> Optional[dict]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )

    def delete(self, product_id: str) -> bool:
        oid = to_object_id(product_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count > 0

    def set_image(self, product_id: str, url: str) -> bool:
        oid = to_object_id(product_id)
        if oid is None:
            return False
        res = self.collection.update_one({"_id": oid}, {"$set": {"image_url": url, "updated_at": _now()}})
        return res.matched_count > 0

    # Reviews (embedded in the product document)

    def push_review(self, product_id: str, review: Dict[str, Any]) -> Optional[List[dict]]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        now = _now()
        review = {**review, "_id": ObjectId(), "created_at": now}
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$push": {"reviews": review}, "$set": {"updated_at": now}},
            projection={"reviews": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return doc.get("reviews", [])

    def get_reviews(self, product_id: str) -> Optional[List[dict]]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        doc = self.collection.find_one({"_id": oid}, {"reviews": 1, "_id": 0})
        if doc is None:
            return None
        return doc.get("reviews", [])

    def replace_review(self, product_id: str, review_id: str, review: Dict[str, Any]) -> Optional[dict]:
        oid, rid = to_object_id(product_id), to_object_id(review_id)
        if oid is None or rid is None:
            return None
        now = _now()
        # the review keeps its id; all other fields are replaced
        return self.collection.find_one_and_update(
            {"_id": oid, "reviews._id": rid},
            {"$set": {"reviews.$": {**review, "_id": rid, "updated_at": now}, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

    def pull_review(self, product_id: str, review_id: str) -> Optional[dict]:
        oid, rid = to_object_id(product_id), to_object_id(review_id)
        if oid is None or rid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid, "reviews._id": rid},
            {"$pull": {"reviews": {"_id": rid}}, "$set": {"updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )


class UserRepository:
    def __init__(self, db: Database):
        self.collection = db["user"]

    def create(self, payload: Dict[str, Any]) -> ObjectId:
        # raises pydantic.ValidationError on bad input (e.g. age out of range)
        user = User.model_validate(payload)
        now = _now()
        doc = {**user.model_dump(), "created_at": now, "updated_at": now}
        res = self.collection.insert_one(doc)
        logger.info("Created user %s", res.inserted_id)
        return res.inserted_id

    def get(self, user_id: str) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})
