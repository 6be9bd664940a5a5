"""
MongoDB access for KEC Study Hub

Each Pydantic model in schemas.py maps to a collection named after the
lowercased class name, e.g. StudyMaterial -> "studymaterial".
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from settings import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

# MongoClient connects lazily, so importing this module never blocks on the server
client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000, tz_aware=True)
db = client[DATABASE_NAME]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document and return its id as a string."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def ensure_indexes(database: Database):
    database["studymaterial"].create_index([("uploadedBy", ASCENDING), ("uploadedAt", DESCENDING)])
    database["studymaterial"].create_index([("likes", DESCENDING)])
    database["message"].create_index([("isGlobal", ASCENDING), ("timestamp", DESCENDING)])
    logger.info(f"MongoDB indexes ensured on {database.name}")
