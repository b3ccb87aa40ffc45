"""
MongoDB access for the storefront.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; routes obtain the
handle through main.get_db so tests can swap in another database.
"""
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient

import config

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]


def create_document(collection_name: str, data: Union[BaseModel, dict], database=None, doc_id: Optional[str] = None) -> str:
    """Insert one document with created_at/updated_at stamps and return its id as a string."""
    database = database if database is not None else db
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    if doc_id is not None:
        doc["_id"] = doc_id
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, database=None):
    database = database if database is not None else db
    return list(database[collection_name].find(filter_dict or {}))


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    # convert datetimes
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def to_object_id(id_str: str) -> Optional[ObjectId]:
    """Parse a 24-char hex id, or return None when it is not one."""
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        return None
    return ObjectId(id_str)
