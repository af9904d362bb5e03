"""Course records and their embedded reviews.

A course document owns its reviews. Its ``rating`` is the mean of the review
ratings and is kept in step with two hidden counters, ``rating_sum`` and
``rating_count``, which are bumped in the same write that appends a review.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from database import COURSES, USERS, create_document, get_documents, to_object_id, to_str_id, utcnow
from errors import Conflict, Forbidden, NotFound
from schemas import CourseCreate, CourseUpdate

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# Keeps skip within what a BSON int64 can carry.
MAX_PAGE = 1_000_000
MAX_LIMIT = 100

INSTRUCTOR_FIELDS = {"first_name": 1, "last_name": 1, "email": 1}
REVIEWER_FIELDS = {"first_name": 1, "last_name": 1}
HIDDEN_FIELDS = ("rating_sum", "rating_count")


def parse_positive_int(value: Optional[str], default: int, ceiling: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    return min(number, ceiling)


async def _users_by_id(db: AsyncIOMotorDatabase, ids: Iterable[ObjectId], projection: dict) -> Dict[ObjectId, dict]:
    ids = list({i for i in ids if i is not None})
    if not ids:
        return {}
    docs = await get_documents(db, USERS, {"_id": {"$in": ids}}, projection)
    return {doc["_id"]: to_str_id(doc) for doc in docs}


def _serialize(doc: Dict[str, Any], instructors: Optional[Dict[ObjectId, dict]] = None, reviewers: Optional[Dict[ObjectId, dict]] = None) -> Dict[str, Any]:
    course = to_str_id(doc)
    for field in HIDDEN_FIELDS:
        course.pop(field, None)

    instructor_id = doc.get("instructor")
    if instructors is not None and instructor_id in instructors:
        course["instructor"] = instructors[instructor_id]
    else:
        course["instructor"] = str(instructor_id)

    reviews = []
    for review in doc.get("reviews", []):
        out = to_str_id(review)
        user_id = review.get("user")
        if reviewers is not None and user_id in reviewers:
            out["user"] = reviewers[user_id]
        else:
            out["user"] = str(user_id)
        reviews.append(out)
    course["reviews"] = reviews
    return course


async def _get_owned(db: AsyncIOMotorDatabase, course_id: str, caller_id: str, action: str) -> Dict[str, Any]:
    course = await db[COURSES].find_one({"_id": to_object_id(course_id)})
    if not course:
        raise NotFound("Course not found")
    if str(course["instructor"]) != str(caller_id):
        raise Forbidden(f"Not authorized to {action} this course")
    return course


async def create_course(db: AsyncIOMotorDatabase, course_in: CourseCreate, instructor_id: str) -> Dict[str, Any]:
    data = course_in.model_dump(mode="json")
    data.update(
        {
            # Authorship always comes from the caller, never the body.
            "instructor": to_object_id(instructor_id),
            "rating": 0.0,
            "rating_sum": 0,
            "rating_count": 0,
            "reviews": [],
        }
    )
    created = await create_document(db, COURSES, data)
    logger.info("Course %s created by %s", created["_id"], instructor_id)
    return _serialize(created)


async def list_courses(db: AsyncIOMotorDatabase, page: Optional[str] = None, limit: Optional[str] = None) -> Dict[str, Any]:
    page = parse_positive_int(page, DEFAULT_PAGE, MAX_PAGE)
    limit = parse_positive_int(limit, DEFAULT_LIMIT, MAX_LIMIT)
    skip = (page - 1) * limit

    cursor = (
        db[COURSES]
        .find({})
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip(skip)
        .limit(limit)
    )
    # Page and total are read separately and may disagree under concurrent writes.
    docs, total = await asyncio.gather(cursor.to_list(length=limit), db[COURSES].count_documents({}))

    instructors = await _users_by_id(db, (d.get("instructor") for d in docs), INSTRUCTOR_FIELDS)
    return {
        "courses": [_serialize(d, instructors=instructors) for d in docs],
        "page": page,
        "pages": math.ceil(total / limit),
        "total": total,
    }


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Dict[str, Any]:
    doc = await db[COURSES].find_one({"_id": to_object_id(course_id)})
    if not doc:
        raise NotFound("Course not found")
    instructors = await _users_by_id(db, [doc.get("instructor")], INSTRUCTOR_FIELDS)
    reviewers = await _users_by_id(db, (r.get("user") for r in doc.get("reviews", [])), REVIEWER_FIELDS)
    return _serialize(doc, instructors=instructors, reviewers=reviewers)


async def update_course(db: AsyncIOMotorDatabase, course_id: str, caller_id: str, changes: CourseUpdate) -> Dict[str, Any]:
    course = await _get_owned(db, course_id, caller_id, "update")
    updates = {k: v for k, v in changes.model_dump(mode="json", exclude_unset=True).items() if v is not None}
    updates["updated_at"] = utcnow()
    updated = await db[COURSES].find_one_and_update(
        {"_id": course["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Course not found")
    logger.info("Course %s updated by %s: %s", course["_id"], caller_id, sorted(updates))
    return _serialize(updated)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str, caller_id: str) -> None:
    course = await _get_owned(db, course_id, caller_id, "delete")
    result = await db[COURSES].delete_one({"_id": course["_id"]})
    if result.deleted_count == 0:
        raise NotFound("Course not found")
    logger.info("Course %s deleted by %s", course["_id"], caller_id)


async def add_review(db: AsyncIOMotorDatabase, course_id: str, user_id: str, rating: int, comment: str) -> None:
    oid = to_object_id(course_id)
    user_oid = to_object_id(user_id)
    if not await db[COURSES].find_one({"_id": oid}, {"_id": 1}):
        raise NotFound("Course not found")

    review = {
        "_id": ObjectId(),
        "user": user_oid,
        "rating": int(rating),
        "comment": comment,
        "created_at": utcnow(),
    }
    # The duplicate check and the append are one write.
    updated = await db[COURSES].find_one_and_update(
        {"_id": oid, "reviews.user": {"$ne": user_oid}},
        {
            "$push": {"reviews": review},
            "$inc": {"rating_sum": review["rating"], "rating_count": 1},
        },
        projection={"rating_sum": 1, "rating_count": 1},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise Conflict("Course already reviewed")

    count = updated["rating_count"]
    mean = updated["rating_sum"] / count
    # Only the writer that saw the latest count may set the mean.
    await db[COURSES].update_one(
        {"_id": oid, "rating_count": count},
        {"$set": {"rating": mean, "updated_at": utcnow()}},
    )
    logger.info("Review by %s on course %s, rating now %s", user_id, oid, mean)
