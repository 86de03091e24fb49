"""
MongoDB access for the API.

A single client is created at import time; pymongo connects lazily, so
importing this module never blocks on the server. Request handlers receive
the database through the ``get_db`` dependency, which tests override.
"""
import logging
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[config.DATABASE_NAME]


def get_db() -> Database:
    return db


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["event"].create_index([("eventType", ASCENDING)])
    database["event"].create_index([("userId", ASCENDING)])
    database["event"].create_index([("timestamp", ASCENDING)])
    database["product"].create_index([("category", ASCENDING)])
    logger.info(f"Indexes ensured on {database.name}")


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a path id; malformed ids are treated as unknown documents."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    result = database[collection_name].insert_one(dict(data))
    return str(result.inserted_id)


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc
