"""
Reviews attached to a product.

Writes need an active session, passed in as ``authenticated``. Any signed-in
user may edit or delete any review; reviews carry no author binding.
"""
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError as SchemaError
from pymongo.errors import PyMongoError

import config
from database import get_documents, serialize_doc, to_object_id
from errors import AuthorizationError, NotFound, ServerError, ValidationError
from schemas import Review, ReviewCreate, ReviewUpdate

REQUIRED_FIELDS = ("rating", "comment", "reviewerEmail", "reviewerName")
SORT_KEYS = ("date", "rating")


def _require_session(authenticated: bool, message: str):
    if not authenticated:
        raise AuthorizationError(message)


def _schema_error_message(exc: SchemaError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ()))
    return f"Invalid {field}: {err['msg']}" if field else err["msg"]


def _review_query(product_id: str, review_id: str) -> dict:
    oid = to_object_id(review_id)
    if oid is None:
        raise ValidationError("Invalid review id")
    return {"_id": oid, "product_id": product_id}


def add_review(db, product_id: str, payload: Optional[dict], authenticated: bool) -> str:
    """Validate and store a review, returning its new id. The date is always set here."""
    _require_session(authenticated, "Please login first to submit a review.")

    payload = payload if isinstance(payload, dict) else {}
    if not all(payload.get(field) for field in REQUIRED_FIELDS):
        raise ValidationError("Missing required fields")

    try:
        review = ReviewCreate(**{field: payload[field] for field in REQUIRED_FIELDS})
    except SchemaError as e:
        raise ValidationError(_schema_error_message(e))

    doc = review.model_dump()
    doc["product_id"] = product_id
    doc["date"] = datetime.now(timezone.utc)

    try:
        result = db[config.REVIEWS].insert_one(doc)
    except PyMongoError:
        logger.exception("Error adding review to product {}", product_id)
        raise ServerError("Error adding review")

    logger.info("Review {} added to product {}", result.inserted_id, product_id)
    return str(result.inserted_id)


def list_reviews(db, product_id: str) -> List[Review]:
    try:
        docs = get_documents(config.REVIEWS, {"product_id": product_id}, database=db)
    except PyMongoError:
        logger.exception("Error fetching reviews for product {}", product_id)
        raise ServerError("Failed to fetch reviews")

    reviews = []
    for doc in docs:
        try:
            reviews.append(Review(**serialize_doc(doc)))
        except SchemaError as e:
            # a review without its mandatory fields cannot be shown; the rest still can
            logger.warning("Skipping malformed review {}: {}", doc.get("_id"), _schema_error_message(e))
    return reviews


def sort_reviews(reviews: List[Review], key: str = "date", order: str = "desc") -> List[Review]:
    if key not in SORT_KEYS:
        raise ValidationError("sortBy must be one of: date, rating")
    if order not in ("asc", "desc"):
        raise ValidationError("order must be asc or desc")

    if key == "date":
        def sort_key(review):
            return review.date.timestamp() if review.date else 0
    else:
        def sort_key(review):
            return review.rating

    return sorted(reviews, key=sort_key, reverse=(order == "desc"))


def update_review(db, product_id: str, review_id: str, payload: Optional[dict], authenticated: bool):
    """Replace the comment of a review. No other field can change through here."""
    _require_session(authenticated, "Please login first to edit a review.")
    query = _review_query(product_id, review_id)

    payload = payload if isinstance(payload, dict) else {}
    if not payload.get("comment"):
        raise ValidationError("Missing required fields")
    try:
        update = ReviewUpdate(comment=payload["comment"])
    except SchemaError as e:
        raise ValidationError(_schema_error_message(e))

    try:
        result = db[config.REVIEWS].update_one(query, {"$set": {"comment": update.comment}})
    except PyMongoError:
        logger.exception("Error updating review {}", review_id)
        raise ServerError("Failed to update review.")

    if result.matched_count == 0:
        raise NotFound("Review not found")
    logger.info("Review {} on product {} updated", review_id, product_id)


def delete_review(db, product_id: str, review_id: str, authenticated: bool):
    _require_session(authenticated, "Please login first to delete a review.")
    query = _review_query(product_id, review_id)

    try:
        result = db[config.REVIEWS].delete_one(query)
    except PyMongoError:
        logger.exception("Error deleting review {}", review_id)
        raise ServerError("Failed to delete review.")

    if result.deleted_count == 0:
        raise NotFound("Review not found")
    logger.info("Review {} on product {} deleted", review_id, product_id)
