from bson import ObjectId

from products import build_product_filter, normalize_product, resolve_category, validate_product_fields
from schemas import ProductListQuery

CAT = str(ObjectId())


def test_valid_product_has_no_errors():
    assert validate_product_fields({"name": "Hammer", "price": 9.99, "stock": 5, "category": CAT}) == {}


def test_all_field_errors_reported_at_once():
    errors = validate_product_fields({})
    assert set(errors) == {"name", "price", "stock", "category"}
    assert errors["price"] == "Price is required"
    assert errors["stock"] == "Stock is required"


def test_name_is_trimmed_before_length_check():
    errors = validate_product_fields({"name": "  ab  ", "price": 1, "stock": 0, "category": CAT})
    assert errors == {"name": "Name must be at least 3 characters"}


def test_zero_price_is_present_but_invalid():
    errors = validate_product_fields({"name": "Thing", "price": 0, "stock": 0, "category": CAT})
    assert errors == {"price": "Price must be greater than 0"}


def test_empty_string_price_counts_as_missing():
    errors = validate_product_fields({"name": "Thing", "price": "", "stock": 0, "category": CAT})
    assert errors == {"price": "Price is required"}


def test_non_numeric_and_negative_values():
    errors = validate_product_fields({"name": "Thing", "price": "abc", "stock": -1, "category": CAT})
    assert errors == {"price": "Price must be a number", "stock": "Stock cannot be negative"}


def test_fractional_stock_rejected():
    errors = validate_product_fields({"name": "Thing", "price": 1, "stock": 1.5, "category": CAT})
    assert errors == {"stock": "Stock must be a whole number"}


def test_normalize_coerces_numbers_and_drops_store_fields():
    doc = normalize_product({
        "name": " Hammer ", "price": "9.99", "stock": "5", "category": CAT,
        "id": "x", "createdAt": "yesterday", "description": "steel",
    })
    assert doc == {
        "name": "Hammer", "price": 9.99, "stock": 5,
        "category": ObjectId(CAT), "description": "steel",
    }


def test_filter_without_parameters_is_empty():
    assert build_product_filter(ProductListQuery()) == {}


def test_filter_combines_category_search_and_stock_range():
    cat_id = ObjectId()
    other = ObjectId()
    q = ProductListQuery(search="cab", min_stock=0, max_stock=10)
    f = build_product_filter(q, category_id=cat_id, search_category_ids=[other])
    assert f["category"] == cat_id
    assert f["stock"] == {"$gte": 0, "$lte": 10}
    assert f["$or"] == [
        {"name": {"$regex": "cab", "$options": "i"}},
        {"category": {"$in": [other]}},
    ]


def test_filter_with_single_stock_bound():
    f = build_product_filter(ProductListQuery(max_stock=3))
    assert f == {"stock": {"$lte": 3}}


def test_search_text_is_matched_literally():
    f = build_product_filter(ProductListQuery(search="a.b"), search_category_ids=[])
    assert f["$or"][0]["name"]["$regex"] == r"a\.b"


def test_resolve_category_by_id_name_and_unknown(db):
    cat_id = db["category"].insert_one({"name": "Electronics"}).inserted_id
    assert resolve_category(db, str(cat_id)) == cat_id
    assert resolve_category(db, "Electronics") == cat_id
    assert resolve_category(db, "electronics") == cat_id
    assert resolve_category(db, "Electro") is None
    assert resolve_category(db, "Garden") is None


def test_resolve_category_trusts_well_formed_ids(db):
    missing = ObjectId()
    assert resolve_category(db, str(missing)) == missing


def test_list_query_paging_helpers():
    q = ProductListQuery(page=3, limit=5, order="asc")
    assert q.skip == 10
    assert q.direction == 1
    assert ProductListQuery(order="whatever").direction == -1


def test_non_string_name_and_category_are_field_errors():
    errors = validate_product_fields({"name": 123, "price": 1, "stock": 1, "category": 5})
    assert errors == {
        "name": "Name must be at least 3 characters",
        "category": "Category must be an id string",
    }
