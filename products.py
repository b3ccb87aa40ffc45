"""
Product queries: the filtered, sorted, paginated listing and the single-product fetch.
"""
import math
import re

from loguru import logger
from pydantic import ValidationError as SchemaError
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

import config
from errors import NotFound, ServerError, ValidationError
from reviews import list_reviews
from schemas import Product, ProductFilter, ProductPage

PRODUCT_FIELDS = ("title", "description", "category", "price", "rating", "images", "stock", "tags")

NO_PRODUCTS_MESSAGE = "No products found"

LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_page(value) -> int:
    """Lenient page parsing: the leading integer ("2abc" and "2.5" are page 2); anything else, or below 1, is page 1."""
    match = LEADING_INT.match(str(value)) if value is not None else None
    if not match:
        return 1
    page = int(match.group(1))
    return page if page >= 1 else 1


def normalize_product_id(product_id) -> str:
    """Product ids are stored zero-padded to 3 digits, so "7" and "42" become "007" and "042"."""
    if not isinstance(product_id, str) or not product_id:
        raise ValidationError("Invalid product id")
    if product_id.isascii() and product_id.isdigit() and len(product_id) < 3:
        return product_id.zfill(3)
    return product_id


def apply_product_defaults(doc: dict, reviews=None) -> Product:
    # falsy stored values fall back to the Product defaults; an embedded reviews array is ignored
    data = {field: doc[field] for field in PRODUCT_FIELDS if doc.get(field)}
    if "_id" in doc:
        data["id"] = str(doc["_id"])
    data["reviews"] = reviews or []
    try:
        return Product(**data)
    except SchemaError as e:
        # wrong-typed or out-of-range stored values also fall back to the defaults
        bad_fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        logger.warning("Product {} has malformed fields {}, using defaults", data.get("id"), bad_fields)
        for field in bad_fields:
            data.pop(field, None)
        return Product(**data)


def build_query(filt: ProductFilter) -> dict:
    query = {}
    if filt.search_term:
        query["title"] = {"$gte": filt.search_term, "$lte": filt.search_term + config.SEARCH_SENTINEL}
    if filt.category:
        query["category"] = filt.category
    return query


def build_sort(filt: ProductFilter) -> list:
    if filt.sort_by_price == "asc":
        sort = [("price", ASCENDING)]
    elif filt.sort_by_price == "desc":
        sort = [("price", DESCENDING)]
    else:
        sort = [("title", ASCENDING)]
    # tie-breaker keeps page boundaries stable between requests
    sort.append(("_id", ASCENDING))
    return sort


def list_products(db, filt: ProductFilter) -> ProductPage:
    query = build_query(filt)
    offset = (filt.page - 1) * config.PAGE_SIZE

    try:
        total = db[config.PRODUCTS].count_documents(query)
        if offset >= total:
            return ProductPage(
                items=[],
                current_page=filt.page,
                total_pages=math.ceil(total / config.PAGE_SIZE),
                message=NO_PRODUCTS_MESSAGE,
            )
        cursor = db[config.PRODUCTS].find(query).sort(build_sort(filt)).skip(offset).limit(config.PAGE_SIZE)
        docs = list(cursor)
    except PyMongoError:
        logger.exception("Error fetching products for {}", filt.model_dump())
        raise ServerError("Failed to fetch products")

    return ProductPage(
        items=[apply_product_defaults(doc) for doc in docs],
        current_page=filt.page,
        total_pages=math.ceil(total / config.PAGE_SIZE),
    )


def get_product(db, product_id) -> Product:
    product_id = normalize_product_id(product_id)

    try:
        doc = db[config.PRODUCTS].find_one({"_id": product_id})
    except PyMongoError:
        logger.exception("Error fetching product {}", product_id)
        raise ServerError("Internal Server Error")

    if doc is None:
        raise NotFound("Product not found")

    return apply_product_defaults(doc, reviews=list_reviews(db, product_id))
