"""
Database Module for the Blog API

Holds the MongoDB connection and the ContentStore adapter every service
talks to. The adapter exposes the handful of collection operations the
services need (create/find/update/delete plus aggregation pipelines) and
turns any pymongo failure into a StoreError.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from exceptions import DuplicateRecord, StoreError
from logger import get_logger

logger = get_logger(__name__)

# Collections
COLL_USERS = "user"
COLL_POSTS = "blogpost"
COLL_COMMENTS = "comment"
COLL_SETTINGS = "sitesettings"

SortSpec = List[Tuple[str, int]]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form BSON dates are read back in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return value as an ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(value: Any) -> Any:
    """Recursively convert ObjectIds to strings so documents can be returned as JSON."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


class ContentStore:
    """CRUD and aggregation over the users, posts, comments and settings collections."""

    def __init__(self, database):
        self.db = database

    def _run(self, action: str, collection: str, fn):
        try:
            return fn(self.db[collection])
        except DuplicateKeyError as e:
            logger.warning(f"{action} on '{collection}' hit a duplicate key: {e}")
            raise DuplicateRecord(details=str(e)) from e
        except PyMongoError as e:
            logger.error(f"{action} on '{collection}' failed: {e}")
            raise StoreError(details=str(e)) from e

    def insert(self, collection: str, document: Dict) -> ObjectId:
        """Insert a document, stamping created_at/updated_at unless already present."""
        now = utcnow()
        doc = dict(document)
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", now)
        result = self._run("insert", collection, lambda c: c.insert_one(doc))
        return result.inserted_id

    def find_one(self, collection: str, filter: Optional[Dict] = None,
                 projection: Optional[Dict] = None) -> Optional[Dict]:
        return self._run("find_one", collection, lambda c: c.find_one(filter or {}, projection))

    def find_by_id(self, collection: str, doc_id: Any,
                   projection: Optional[Dict] = None) -> Optional[Dict]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        return self.find_one(collection, {"_id": oid}, projection)

    def find_many(self, collection: str, filter: Optional[Dict] = None,
                  sort: Optional[SortSpec] = None, limit: int = 0,
                  projection: Optional[Dict] = None) -> List[Dict]:
        def query(c):
            cursor = c.find(filter or {}, projection)
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        return self._run("find", collection, query)

    def count(self, collection: str, filter: Optional[Dict] = None) -> int:
        return self._run("count", collection, lambda c: c.count_documents(filter or {}))

    def update_one(self, collection: str, filter: Dict, update: Dict) -> int:
        """Apply an update operator document; returns the matched count."""
        result = self._run("update", collection, lambda c: c.update_one(filter, update))
        return result.matched_count

    def find_one_and_update(self, collection: str, filter: Dict, update: Dict,
                            upsert: bool = False) -> Optional[Dict]:
        """Apply an update and return the document as it is afterwards."""
        return self._run(
            "find_one_and_update", collection,
            lambda c: c.find_one_and_update(
                filter, update, upsert=upsert, return_document=ReturnDocument.AFTER
            ),
        )

    def replace_one(self, collection: str, filter: Dict, document: Dict,
                    upsert: bool = False) -> int:
        result = self._run(
            "replace", collection, lambda c: c.replace_one(filter, document, upsert=upsert)
        )
        return result.matched_count

    def delete_one(self, collection: str, filter: Dict) -> int:
        result = self._run("delete", collection, lambda c: c.delete_one(filter))
        return result.deleted_count

    def delete_many(self, collection: str, filter: Dict) -> int:
        result = self._run("delete_many", collection, lambda c: c.delete_many(filter))
        return result.deleted_count

    def aggregate(self, collection: str, pipeline: Iterable[Dict]) -> List[Dict]:
        return self._run("aggregate", collection, lambda c: list(c.aggregate(list(pipeline))))

    def collection_names(self) -> List[str]:
        try:
            return self.db.list_collection_names()
        except PyMongoError as e:
            logger.error(f"Listing collections failed: {e}")
            raise StoreError(details=str(e)) from e

    def names_by_id(self, user_ids: Iterable[Any]) -> Dict[ObjectId, str]:
        """Resolve a set of user ids to display names in a single query."""
        ids = list({oid for oid in user_ids if isinstance(oid, ObjectId)})
        if not ids:
            return {}
        users = self.find_many(COLL_USERS, {"_id": {"$in": ids}}, projection={"name": 1})
        return {u["_id"]: u.get("name") for u in users}


def _connect():
    if not config.DATABASE_URL:
        logger.warning("DATABASE_URL is not set; database access is disabled")
        return None
    try:
        client = MongoClient(config.DATABASE_URL)
        logger.info(f"Connected to MongoDB database '{config.DATABASE_NAME}'")
        return client[config.DATABASE_NAME]
    except PyMongoError as e:
        logger.error(f"Failed to connect to database: {e}")
        return None


db = _connect()


def get_store() -> ContentStore:
    """FastAPI dependency returning the store over the configured database."""
    if db is None:
        raise StoreError("Database not configured")
    return ContentStore(db)
