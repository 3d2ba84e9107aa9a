import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import PersistenceError

logger = logging.getLogger(__name__)


def get_database(settings: Settings) -> Database:
    """Connect lazily; the first operation fails once the timeouts elapse."""
    client = MongoClient(
        settings.database_url,
        serverSelectionTimeoutMS=settings.db_timeout_ms,
        connectTimeoutMS=settings.db_timeout_ms,
        socketTimeoutMS=settings.db_timeout_ms,
    )
    return client[settings.database_name]


def _object_id(member_id: str) -> Optional[ObjectId]:
    if isinstance(member_id, ObjectId):
        return member_id
    if not ObjectId.is_valid(member_id):
        return None
    return ObjectId(member_id)


class MemberStore:
    """Per-document CRUD over the members collection."""

    def __init__(self, db: Database, collection: str = 'members'):
        self.db = db
        self.collection = db[collection]

    def _fail(self, action: str, exc: PyMongoError) -> PersistenceError:
        logger.error("members store %s failed: %s", action, exc)
        return PersistenceError(f"Error {action} members")

    def find_all(self) -> List[Dict[str, Any]]:
        try:
            return list(self.collection.find({}).sort('createdAt', DESCENDING))
        except PyMongoError as exc:
            raise self._fail('fetching', exc)

    def find_by_id(self, member_id: str) -> Optional[Dict[str, Any]]:
        oid = _object_id(member_id)
        if oid is None:
            return None
        try:
            return self.collection.find_one({'_id': oid})
        except PyMongoError as exc:
            raise self._fail('fetching', exc)

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = self.collection.insert_one(dict(doc))
            return self.collection.find_one({'_id': res.inserted_id})
        except PyMongoError as exc:
            raise self._fail('creating', exc)

    def replace(self, member_id: str, doc: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace the whole document; returns the stored version or None when the id is unknown."""
        oid = _object_id(member_id)
        if oid is None:
            return None
        body = {k: v for k, v in doc.items() if k != '_id'}
        try:
            return self.collection.find_one_and_replace(
                {'_id': oid}, body, return_document=ReturnDocument.AFTER
            )
        except PyMongoError as exc:
            raise self._fail('updating', exc)

    def delete(self, member_id: str) -> Optional[Dict[str, Any]]:
        oid = _object_id(member_id)
        if oid is None:
            return None
        try:
            return self.collection.find_one_and_delete({'_id': oid})
        except PyMongoError as exc:
            raise self._fail('deleting', exc)

    def collection_names(self) -> List[str]:
        try:
            return self.db.list_collection_names()
        except PyMongoError as exc:
            raise self._fail('listing', exc)
