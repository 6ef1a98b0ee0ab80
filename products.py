import logging
import math
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo import ReturnDocument
from pymongo.database import Database

from database import (
    CATEGORY, PRODUCT, create_document, get_db, get_documents, is_valid_id, now,
    serialize, store_read, store_write,
)
from errors import InvalidCategory, InvalidIdentifier, NotFound, ValidationError
from schemas import Message, Product, ProductIn, ProductListQuery, ProductPage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

# Keys a client may not write; the store owns them.
PROTECTED_FIELDS = ("id", "_id", "createdAt", "updatedAt")


# Validation

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def validate_product_fields(data: Dict[str, Any]) -> Dict[str, str]:
    """Return ``{field: message}`` for every failing rule, empty when valid."""
    errors: Dict[str, str] = {}

    name = data.get("name")
    if not isinstance(name, str) or len(name.strip()) < 3:
        errors["name"] = "Name must be at least 3 characters"

    price = data.get("price")
    if _blank(price):
        errors["price"] = "Price is required"
    else:
        number = _to_number(price)
        if number is None:
            errors["price"] = "Price must be a number"
        elif number <= 0:
            errors["price"] = "Price must be greater than 0"

    category = data.get("category")
    if _blank(category):
        errors["category"] = "Category is required"
    elif not isinstance(category, str):
        errors["category"] = "Category must be an id string"

    stock = data.get("stock")
    if _blank(stock):
        errors["stock"] = "Stock is required"
    else:
        number = _to_number(stock)
        if number is None:
            errors["stock"] = "Stock must be a number"
        elif number < 0:
            errors["stock"] = "Stock cannot be negative"
        elif not number.is_integer():
            errors["stock"] = "Stock must be a whole number"

    return errors


def normalize_product(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce validated fields to their stored types; extra fields pass through."""
    doc = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
    doc["name"] = data["name"].strip()
    doc["price"] = _to_number(data["price"])
    doc["stock"] = int(_to_number(data["stock"]))
    doc["category"] = ObjectId(data["category"])
    return doc


def _checked_product(db: Database, payload: ProductIn) -> Dict[str, Any]:
    data = payload.model_dump()
    errors = validate_product_fields(data)
    if errors:
        raise ValidationError(errors=errors)
    category = data["category"]
    if not is_valid_id(category):
        raise InvalidCategory("Invalid category")
    with store_read():
        exists = db[CATEGORY].find_one({"_id": ObjectId(category)}, {"_id": 1})
    if not exists:
        raise InvalidCategory("Invalid category")
    return normalize_product(data)


# Query building

def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def resolve_category(db: Database, value: str) -> Optional[ObjectId]:
    """Map a category filter value to an id.

    Well-formed ids are used as is. Anything else is looked up by name,
    exactly first and then case-insensitively. An unknown name resolves
    to None and the caller drops the category condition.
    """
    if is_valid_id(value):
        return ObjectId(value)
    collection = db[CATEGORY]
    doc = collection.find_one({"name": value}, {"_id": 1})
    if doc is None:
        pattern = "^%s$" % re.escape(value)
        doc = collection.find_one({"name": {"$regex": pattern, "$options": "i"}}, {"_id": 1})
    return doc["_id"] if doc else None


def build_product_filter(
    query: ProductListQuery,
    category_id: Optional[ObjectId] = None,
    search_category_ids: Optional[List[ObjectId]] = None,
) -> Dict[str, Any]:
    filter_dict: Dict[str, Any] = {}
    if category_id is not None:
        filter_dict["category"] = category_id

    if query.search:
        filter_dict["$or"] = [
            {"name": _contains(query.search)},
            {"category": {"$in": list(search_category_ids or [])}},
        ]

    stock: Dict[str, float] = {}
    if query.min_stock is not None:
        stock["$gte"] = query.min_stock
    if query.max_stock is not None:
        stock["$lte"] = query.max_stock
    if stock:
        filter_dict["stock"] = stock

    return filter_dict


def populate(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Embed each product's category record; stale ids are left in place."""
    ids = {d["category"] for d in docs if isinstance(d.get("category"), ObjectId)}
    categories = {}
    if ids:
        categories = {c["_id"]: c for c in db[CATEGORY].find({"_id": {"$in": list(ids)}})}
    out = []
    for d in docs:
        d = dict(d)
        if d.get("category") in categories:
            d["category"] = serialize(categories[d["category"]])
        out.append(serialize(d))
    return out


def product_list_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    category: Optional[str] = None,
    min_stock: Optional[float] = Query(None, alias="minStock"),
    max_stock: Optional[float] = Query(None, alias="maxStock"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = "desc",
) -> ProductListQuery:
    return ProductListQuery(
        page=page, limit=limit, search=search, category=category,
        min_stock=min_stock, max_stock=max_stock, sort_by=sort_by, order=order,
    )


def _check_id(product_id: str) -> ObjectId:
    if not is_valid_id(product_id):
        raise InvalidIdentifier("Invalid product ID")
    return ObjectId(product_id)


# Products endpoints

@router.get("", response_model=ProductPage)
def list_products(
    query: ProductListQuery = Depends(product_list_query),
    db: Database = Depends(get_db),
):
    with store_read():
        category_id = resolve_category(db, query.category) if query.category else None
        search_ids = None
        if query.search:
            search_ids = db[CATEGORY].distinct("_id", {"name": _contains(query.search)})
        filter_dict = build_product_filter(query, category_id, search_ids)

        docs = get_documents(
            db, PRODUCT, filter_dict,
            sort=[(query.sort_by, query.direction)],
            skip=query.skip, limit=query.limit,
        )
        total = db[PRODUCT].count_documents(filter_dict)
        products = populate(db, docs)
    return {"products": products, "total": total}


@router.get("/{product_id}", response_model=Product)
def get_product(product_id: str, db: Database = Depends(get_db)):
    oid = _check_id(product_id)
    with store_read():
        doc = db[PRODUCT].find_one({"_id": oid})
        if not doc:
            raise NotFound("Product not found")
        return populate(db, [doc])[0]


@router.post("", response_model=Product, status_code=201)
def create_product(payload: ProductIn, db: Database = Depends(get_db)):
    data = _checked_product(db, payload)
    with store_write():
        doc = create_document(db, PRODUCT, data)
    logger.info("Created product %s (%s)", doc["_id"], data["name"])
    with store_read():
        return populate(db, [doc])[0]


@router.put("/{product_id}", response_model=Product)
def update_product(product_id: str, payload: ProductIn, db: Database = Depends(get_db)):
    oid = _check_id(product_id)
    data = _checked_product(db, payload)
    with store_write():
        doc = db[PRODUCT].find_one_and_update(
            {"_id": oid},
            {"$set": {**data, "updatedAt": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not doc:
        raise NotFound("Product not found")
    logger.info("Updated product %s", product_id)
    with store_read():
        return populate(db, [doc])[0]


@router.delete("/{product_id}", response_model=Message)
def delete_product(product_id: str, db: Database = Depends(get_db)):
    oid = _check_id(product_id)
    with store_read():
        doc = db[PRODUCT].find_one_and_delete({"_id": oid})
    if not doc:
        raise NotFound("Product not found")
    logger.info("Deleted product %s", product_id)
    return {"message": "Product deleted"}
