import logging
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import (
    CATEGORY, create_document, get_db, get_documents, is_valid_id, now,
    serialize, store_read, store_write,
)
from errors import InvalidIdentifier, NotFound, ValidationError
from schemas import Category, CategoryIn, Message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


def _check_id(category_id: str) -> ObjectId:
    if not is_valid_id(category_id):
        raise InvalidIdentifier("Invalid category ID")
    return ObjectId(category_id)


def _clean_name(payload: CategoryIn) -> str:
    name = (payload.name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    return name


@router.get("", response_model=List[Category])
def list_categories(db: Database = Depends(get_db)):
    with store_read():
        docs = get_documents(db, CATEGORY, sort=[("name", 1)])
    return [serialize(d) for d in docs]


@router.get("/{category_id}", response_model=Category)
def get_category(category_id: str, db: Database = Depends(get_db)):
    oid = _check_id(category_id)
    with store_read():
        doc = db[CATEGORY].find_one({"_id": oid})
    if not doc:
        raise NotFound("Category not found")
    return serialize(doc)


@router.post("", response_model=Category, status_code=201)
def create_category(payload: CategoryIn, db: Database = Depends(get_db)):
    name = _clean_name(payload)
    with store_write():
        doc = create_document(db, CATEGORY, {"name": name})
    logger.info("Created category %s (%s)", doc["_id"], name)
    return serialize(doc)


@router.put("/{category_id}", response_model=Category)
def update_category(category_id: str, payload: CategoryIn, db: Database = Depends(get_db)):
    oid = _check_id(category_id)
    name = _clean_name(payload)
    with store_write():
        doc = db[CATEGORY].find_one_and_update(
            {"_id": oid},
            {"$set": {"name": name, "updatedAt": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not doc:
        raise NotFound("Category not found")
    logger.info("Renamed category %s to %s", category_id, name)
    return serialize(doc)


@router.delete("/{category_id}", response_model=Message)
def delete_category(category_id: str, db: Database = Depends(get_db)):
    oid = _check_id(category_id)
    with store_read():
        doc = db[CATEGORY].find_one_and_delete({"_id": oid})
    if not doc:
        raise NotFound("Category not found")
    logger.info("Deleted category %s", category_id)
    return {"message": "Category deleted"}
