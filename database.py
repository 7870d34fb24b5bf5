"""
Database helpers

MongoDB access for the DrapeGear API. One client per process, created lazily
from the settings; handlers receive the database through get_db().
"""
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import get_settings

logger = logging.getLogger("drapegear.database")

PRODUCTS = "products"
USERS = "users"
CART = "cart"
ORDERS = "orders"


@lru_cache
def get_client() -> MongoClient:
    return MongoClient(get_settings().database_url)


def get_db() -> Database:
    return get_client()[get_settings().database_name]


def ensure_indexes(db: Database) -> None:
    try:
        db[USERS].create_index([("email", ASCENDING)], unique=True)
        db[CART].create_index([("email", ASCENDING), ("productId", ASCENDING)], unique=True)
    except PyMongoError as exc:
        logger.warning("Unable to ensure indexes: %s", exc)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with createdAt and return its id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    doc.setdefault("createdAt", datetime.now(timezone.utc))
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return [serialize_doc(d) for d in db[collection_name].find(filter_dict or {})]


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    # ObjectIds are not JSON serializable
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
