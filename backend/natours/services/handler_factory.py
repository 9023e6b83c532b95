"""Generic CRUD handlers over a repository.

Each function does the lookup, raises the not-found error and shapes the
response envelope; routers only pick the repository and the status code.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel as Schema
from sqlalchemy.orm import Query

from natours.core.errors import AppError
from .repository import Repository


def get_all(repository: Repository, query_string: Any, query: Optional[Query] = None) -> Dict[str, Any]:
    docs, fields = repository.find_all(query_string, query)
    return {
        "status": "success",
        "totalDocs": len(docs),
        "data": [repository.serialize(doc, fields) for doc in docs],
    }


def get_one(repository: Repository, obj_id: int, schema: Optional[Type[Schema]] = None) -> Dict[str, Any]:
    doc = repository.find_by_id(obj_id)
    if doc is None:
        raise AppError("Requested doc not found", 404)
    return {"status": "success", "data": repository.serialize(doc, schema=schema)}


def create_one(repository: Repository, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = repository.create(data)
    return {"status": "success", "data": repository.serialize(doc)}


def update_one(repository: Repository, obj_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = repository.update_by_id(obj_id, data)
    if doc is None:
        raise AppError("Requested document not found", 404)
    return {"status": "success", "data": repository.serialize(doc)}


def delete_one(repository: Repository, obj_id: int) -> None:
    if not repository.delete_by_id(obj_id):
        raise AppError("Could not perform the deletion. No document found with that ID", 404)
